"""
Unit tests for revert classification and correlation tracing
"""

import logging
import sys
import unittest
from pathlib import Path

from eth_abi import encode as abi_encode

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lp_manager.infra.revert import (
    ERROR_STRING_SELECTOR,
    classify_revert,
    decode_revert_data,
    revert_reason,
)
from lp_manager.infra.tracing import (
    CorrelationContext,
    get_correlation_id,
    log_with_correlation,
)
from lp_manager.errors import (
    DeadlineExpired,
    ErrorCode,
    InsufficientFunds,
    InvalidParameter,
    PositionNotFound,
    RpcError,
    SlippageExceeded,
    TransactionError,
    Unauthorized,
)


def error_string(reason: str) -> bytes:
    return ERROR_STRING_SELECTOR + abi_encode(["string"], [reason])


class FakeContractError(Exception):
    """Shape of web3's ContractLogicError: message plus raw revert data"""

    def __init__(self, message, data=None):
        super().__init__(message)
        self.message = message
        self.data = data


class TestDecodeRevertData(unittest.TestCase):
    """Tests for Error(string) payload decoding"""

    def test_decode_bytes(self):
        self.assertEqual(decode_revert_data(error_string("Too little received")), "Too little received")

    def test_decode_hex(self):
        payload = "0x" + error_string("Transaction too old").hex()
        self.assertEqual(decode_revert_data(payload), "Transaction too old")

    def test_decode_hex_without_prefix(self):
        self.assertEqual(decode_revert_data(error_string("STF").hex()), "STF")

    def test_other_selector(self):
        self.assertIsNone(decode_revert_data(bytes.fromhex("4e487b71") + b"\x00" * 32))

    def test_empty_and_garbage(self):
        self.assertIsNone(decode_revert_data(None))
        self.assertIsNone(decode_revert_data(b""))
        self.assertIsNone(decode_revert_data("0xzz"))
        self.assertIsNone(decode_revert_data(ERROR_STRING_SELECTOR + b"\x01"))

    def test_reason_prefers_decoded_data(self):
        error = FakeContractError("execution reverted", data=error_string("Price slippage check"))
        self.assertEqual(revert_reason(error), "Price slippage check")

    def test_reason_falls_back_to_message(self):
        error = FakeContractError("execution reverted: Not approved")
        self.assertEqual(revert_reason(error), "execution reverted: Not approved")


class TestClassifyRevert(unittest.TestCase):
    """Tests for mapping revert reasons onto manager exceptions"""

    def assertClassified(self, reason, expected):
        result = classify_revert(FakeContractError(f"execution reverted: {reason}"))
        self.assertIsInstance(result, expected, f"{reason!r} -> {type(result).__name__}")
        return result

    def test_slippage(self):
        self.assertClassified("Too little received", SlippageExceeded)
        self.assertClassified("Price slippage check", SlippageExceeded)

    def test_deadline(self):
        self.assertClassified("Transaction too old", DeadlineExpired)

    def test_unauthorized(self):
        self.assertClassified("Not approved", Unauthorized)

    def test_position_not_found(self):
        self.assertClassified("Invalid token ID", PositionNotFound)

    def test_transfer_helper_codes(self):
        self.assertClassified("STF", InsufficientFunds)
        self.assertClassified("ERC20: transfer amount exceeds balance", InsufficientFunds)

    def test_short_codes_match_whole_words(self):
        # "st" inside an ordinary word is not the TransferHelper code
        result = self.assertClassified("something strange happened", TransactionError)
        self.assertEqual(result.code, ErrorCode.TX_SIMULATION_FAILED)

    def test_tick_codes(self):
        result = self.assertClassified("TLU", InvalidParameter)
        self.assertEqual(result.param, "ticks")
        self.assertClassified("TLM", InvalidParameter)

    def test_network_errors(self):
        result = classify_revert(Exception("Read timed out"))
        self.assertIsInstance(result, RpcError)
        self.assertEqual(result.code, ErrorCode.RPC_TIMEOUT)

        result = classify_revert(Exception("Connection refused"))
        self.assertIsInstance(result, RpcError)
        self.assertEqual(result.code, ErrorCode.RPC_CONNECTION_FAILED)

    def test_unknown_reason(self):
        result = self.assertClassified("LOK", TransactionError)
        self.assertIn("LOK", result.message)

    def test_description_prefix(self):
        result = self.assertClassified("Transaction too old", DeadlineExpired)
        self.assertTrue(classify_revert(Exception("Transaction too old"), "mint").message.startswith("mint: "))
        self.assertIn("Transaction too old", result.message)

    def test_manager_errors_pass_through(self):
        original = Unauthorized("already classified")
        self.assertIs(classify_revert(original), original)

    def test_decoded_data_drives_classification(self):
        error = FakeContractError("execution reverted", data="0x" + error_string("Too little received").hex())
        self.assertIsInstance(classify_revert(error), SlippageExceeded)


class TestCorrelationContext(unittest.TestCase):
    """Tests for correlation ID scoping"""

    def test_scoped_id(self):
        self.assertIsNone(get_correlation_id())
        with CorrelationContext("rebalance") as cid:
            self.assertTrue(cid.startswith("rebalance_"))
            self.assertEqual(get_correlation_id(), cid)
        self.assertIsNone(get_correlation_id())

    def test_nested_restores_outer(self):
        with CorrelationContext("outer") as outer:
            with CorrelationContext("inner") as inner:
                self.assertNotEqual(inner, outer)
                self.assertEqual(get_correlation_id(), inner)
            self.assertEqual(get_correlation_id(), outer)

    def test_log_with_correlation(self):
        logger = logging.getLogger("test_revert.correlation")
        with self.assertLogs(logger, level="INFO") as captured:
            with CorrelationContext("close") as cid:
                log_with_correlation(logger, logging.INFO, "Closed #7", "close", token_id=7)

        record = captured.records[0]
        self.assertEqual(record.getMessage(), f"[{cid}] [close] Closed #7")
        self.assertEqual(record.correlation_id, cid)
        self.assertEqual(record.token_id, 7)


if __name__ == "__main__":
    unittest.main()
