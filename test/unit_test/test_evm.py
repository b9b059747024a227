"""
EVM Adapter Unit Tests

Tests the web3-backed collaborators against mocked web3 objects:
transaction execution, token return handling, pool reads, chain clock
and rollback, signer and nonce management, deployment tables.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from eth_abi import encode as abi_encode
from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lp_manager.config import EVMConfig, PancakeSwapConfig, UniswapConfig
from lp_manager.errors import (
    ErrorCode,
    InsufficientFunds,
    MetadataUnavailable,
    PoolUnavailable,
    RpcError,
    SignerError,
    SlippageExceeded,
    TransactionError,
)
from lp_manager.infra.evm import EVMSigner, EvmTransactor, NonceManager
from lp_manager.protocols.evm import EvmChain, EvmPoolReader, EvmTokenLedger, pool_abi
from lp_manager.protocols.pancakeswap import PancakeSwapConnector
from lp_manager.protocols.uniswap import UniswapConnector

CUSTODY = "0x1111111111111111111111111111111111111111"
TOKEN = "0x2222222222222222222222222222222222222222"
POOL = "0x3333333333333333333333333333333333333333"
RECIPIENT = "0x4444444444444444444444444444444444444444"
UNISWAP_FACTORY = "0x1F98431c8aD98523631AE4a59f267346ea31F984"
PANCAKESWAP_FACTORY = "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865"
# Test key - DO NOT use in production
TEST_KEY = "0x" + "11" * 32


class RevertError(Exception):
    """Stand-in for web3's ContractLogicError"""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


def make_transactor(chain_id=1):
    transactor = MagicMock()
    transactor.address = CUSTODY
    transactor.chain_id = chain_id
    return transactor


# =========================================================================
# Transactor
# =========================================================================

class TestEvmTransactor:
    """Tests for preview / broadcast / receipt handling"""

    @pytest.fixture
    def web3(self):
        web3 = MagicMock()
        web3.to_wei = Web3.to_wei
        web3.eth.chain_id = 1
        web3.eth.get_block.return_value = {"baseFeePerGas": 10, "timestamp": 1000}
        return web3

    @pytest.fixture
    def signer(self):
        signer = MagicMock()
        signer.address = CUSTODY
        signer.sign_and_send.return_value = {
            "status": "success",
            "tx_hash": "0xabc",
            "gas_used": 120_000,
            "receipt": {"status": 1, "logs": []},
        }
        return signer

    def test_execute(self, web3, signer):
        transactor = EvmTransactor(web3, signer, EVMConfig(receipt_timeout=30), priority_fee_gwei=0.1)
        fn = MagicMock()
        fn.call.return_value = (7, 1000, 50, 60)
        fn.build_transaction.return_value = {"gas": 500_000, "gasPrice": 1}

        preview, receipt = transactor.execute(fn, 500_000, "mint")

        assert preview == (7, 1000, 50, 60)
        assert receipt == {"status": 1, "logs": []}
        fn.call.assert_called_once_with({"from": CUSTODY})

        tx = signer.sign_and_send.call_args[0][1]
        assert tx["maxPriorityFeePerGas"] == 100_000_000
        assert tx["maxFeePerGas"] == 20 + 100_000_000
        assert "gasPrice" not in tx
        assert signer.sign_and_send.call_args[1]["timeout"] == 30

    def test_legacy_gas_price(self, web3, signer):
        web3.eth.get_block.return_value = {"timestamp": 1000}
        web3.eth.gas_price = 5_000_000_000
        transactor = EvmTransactor(web3, signer, EVMConfig())
        fn = MagicMock()
        fn.build_transaction.return_value = {"gas": 100_000}

        transactor.execute(fn, 100_000, "approve", preview=False)

        tx = signer.sign_and_send.call_args[0][1]
        assert tx["gasPrice"] == 5_000_000_000
        assert "maxFeePerGas" not in tx
        fn.call.assert_not_called()

    def test_preview_revert_is_classified(self, web3, signer):
        transactor = EvmTransactor(web3, signer, EVMConfig())
        fn = MagicMock()
        fn.call.side_effect = RevertError("execution reverted: Too little received")

        with pytest.raises(SlippageExceeded):
            transactor.execute(fn, 300_000, "exactInputSingle")
        signer.sign_and_send.assert_not_called()

    def test_mined_revert(self, web3, signer):
        signer.sign_and_send.return_value = {"status": "failed", "tx_hash": "0xdead"}
        transactor = EvmTransactor(web3, signer, EVMConfig())

        with pytest.raises(TransactionError) as exc_info:
            transactor.execute(MagicMock(), 100_000, "burn")
        assert exc_info.value.code == ErrorCode.TX_REVERTED
        assert exc_info.value.tx_hash == "0xdead"

    def test_send_failure(self, web3, signer):
        signer.sign_and_send.return_value = {"status": "failed", "tx_hash": None, "error": "connection reset"}
        transactor = EvmTransactor(web3, signer, EVMConfig())

        with pytest.raises(TransactionError) as exc_info:
            transactor.execute(MagicMock(), 100_000, "burn")
        assert exc_info.value.code == ErrorCode.TX_SEND_FAILED
        assert exc_info.value.recoverable

    def test_unconfirmed_broadcast(self, web3, signer):
        signer.sign_and_send.return_value = {
            "status": "unconfirmed",
            "tx_hash": "abab",
            "error": "Transaction abab is not in the chain after 120 seconds",
        }
        transactor = EvmTransactor(web3, signer, EVMConfig())

        with pytest.raises(TransactionError) as exc_info:
            transactor.execute(MagicMock(), 400_000, "mint")
        assert exc_info.value.code == ErrorCode.TX_CONFIRMATION_FAILED
        assert exc_info.value.tx_hash == "abab"
        assert "mint" in exc_info.value.message


# =========================================================================
# Token ledger
# =========================================================================

class TestEvmTokenLedger:
    """Tests for ERC20 writes and metadata reads"""

    def make_ledger(self):
        transactor = make_transactor()
        contract = MagicMock()
        contract.address = TOKEN
        contract.encode_abi.return_value = "0xa9059cbb"
        transactor.web3.eth.contract.return_value = contract
        return EvmTokenLedger(transactor, EVMConfig(transfer_gas_limit=111, approve_gas_limit=222)), transactor, contract

    def test_bool_return_handling(self):
        EvmTokenLedger._check_bool_return(b"", "transfer")
        EvmTokenLedger._check_bool_return(abi_encode(["bool"], [True]), "transfer")
        with pytest.raises(TransactionError):
            EvmTokenLedger._check_bool_return(abi_encode(["bool"], [False]), "transfer")
        with pytest.raises(TransactionError):
            EvmTokenLedger._check_bool_return(b"\x01", "transfer")

    def test_transfer_without_return_value(self):
        ledger, transactor, contract = self.make_ledger()
        transactor.web3.eth.call.return_value = b""

        ledger.transfer(TOKEN, RECIPIENT, 500)

        contract.encode_abi.assert_called_once_with("transfer", args=[RECIPIENT, 500])
        transactor.web3.eth.call.assert_called_once_with({"from": CUSTODY, "to": TOKEN, "data": "0xa9059cbb"})
        args = transactor.execute.call_args
        assert args[0][1] == 111
        assert args[1]["preview"] is False

    def test_approve_gas_limit(self):
        ledger, transactor, _ = self.make_ledger()
        transactor.web3.eth.call.return_value = abi_encode(["bool"], [True])
        ledger.approve(TOKEN, RECIPIENT, 0)
        assert transactor.execute.call_args[0][1] == 222

    def test_false_return_not_broadcast(self):
        ledger, transactor, _ = self.make_ledger()
        transactor.web3.eth.call.return_value = abi_encode(["bool"], [False])

        with pytest.raises(TransactionError):
            ledger.transfer_from(TOKEN, RECIPIENT, 500)
        transactor.execute.assert_not_called()

    def test_preview_revert_classified(self):
        ledger, transactor, _ = self.make_ledger()
        transactor.web3.eth.call.side_effect = RevertError("execution reverted: STF")

        with pytest.raises(InsufficientFunds):
            ledger.transfer_from(TOKEN, RECIPIENT, 500)

    def test_bytes32_symbol_fallback(self):
        transactor = make_transactor()
        standard = MagicMock()
        standard.functions.symbol.return_value.call.side_effect = RevertError("execution reverted")
        legacy = MagicMock()
        legacy.functions.symbol.return_value.call.return_value = b"MKR" + b"\x00" * 29
        transactor.web3.eth.contract.side_effect = [standard, legacy]

        assert EvmTokenLedger(transactor, EVMConfig()).symbol(TOKEN) == "MKR"

    def test_unreadable_decimals(self):
        ledger, _, contract = self.make_ledger()
        contract.functions.decimals.return_value.call.side_effect = RevertError("execution reverted")

        with pytest.raises(MetadataUnavailable) as exc_info:
            ledger.decimals(TOKEN)
        assert exc_info.value.field_name == "decimals"


# =========================================================================
# Pool reader
# =========================================================================

class TestEvmPoolReader:
    """Tests for slot0 and immutables reads"""

    def test_read_pool(self):
        web3 = MagicMock()
        web3.eth.get_code.return_value = b"\x60\x80"
        pool = web3.eth.contract.return_value
        pool.functions.token0.return_value.call.return_value = TOKEN
        pool.functions.token1.return_value.call.return_value = RECIPIENT
        pool.functions.fee.return_value.call.return_value = 3000
        pool.functions.tickSpacing.return_value.call.return_value = 60
        pool.functions.liquidity.return_value.call.return_value = 10**18
        pool.functions.slot0.return_value.call.return_value = [2**96, -120, 0, 1, 1, 0, True]

        state = EvmPoolReader(web3, pool_abi("uint8")).read_pool(POOL.lower())

        assert state.address == Web3.to_checksum_address(POOL)
        assert state.fee == 3000
        assert state.tick_spacing == 60
        assert state.sqrt_price_x96 == 2**96
        assert state.tick == -120

    def test_no_code(self):
        web3 = MagicMock()
        web3.eth.get_code.return_value = b""
        with pytest.raises(PoolUnavailable):
            EvmPoolReader(web3, pool_abi("uint8")).read_pool(POOL)

    def test_bad_address(self):
        with pytest.raises(PoolUnavailable):
            EvmPoolReader(MagicMock(), pool_abi("uint8")).read_pool("0x1234")

    def test_not_a_pool(self):
        web3 = MagicMock()
        web3.eth.get_code.return_value = b"\x60\x80"
        web3.eth.contract.return_value.functions.slot0.return_value.call.side_effect = RevertError("execution reverted")
        with pytest.raises(PoolUnavailable):
            EvmPoolReader(web3, pool_abi("uint32")).read_pool(POOL)

    def mock_pool_web3(self, factory):
        web3 = MagicMock()
        web3.eth.get_code.return_value = b"\x60\x80"
        pool = web3.eth.contract.return_value
        pool.functions.token0.return_value.call.return_value = TOKEN
        pool.functions.token1.return_value.call.return_value = RECIPIENT
        pool.functions.fee.return_value.call.return_value = 3000
        pool.functions.tickSpacing.return_value.call.return_value = 60
        pool.functions.liquidity.return_value.call.return_value = 10**18
        pool.functions.slot0.return_value.call.return_value = [2**96, 0, 0, 1, 1, 0, True]
        pool.functions.factory.return_value.call.return_value = factory
        return web3

    def test_factory_match(self):
        web3 = self.mock_pool_web3(UNISWAP_FACTORY)
        reader = EvmPoolReader(web3, pool_abi("uint32"), UNISWAP_FACTORY.lower())
        assert reader.read_pool(POOL).fee == 3000

    def test_pool_from_other_factory_rejected(self):
        # A Uniswap pool decodes under PancakeSwap's wider ABI; the deployer tells them apart
        web3 = self.mock_pool_web3(UNISWAP_FACTORY)
        with pytest.raises(PoolUnavailable) as exc_info:
            EvmPoolReader(web3, pool_abi("uint32"), PANCAKESWAP_FACTORY).read_pool(POOL)
        assert exc_info.value.code == ErrorCode.POOL_INVALID_STATE

    def test_connector_reader_checks_factory(self):
        transactor = make_transactor(56)
        transactor.web3 = self.mock_pool_web3(UNISWAP_FACTORY)
        connector = PancakeSwapConnector(
            transactor, PancakeSwapConfig(position_manager_address="", swap_router_address="", factory_address="")
        )
        assert connector.factory_address() == PANCAKESWAP_FACTORY
        with pytest.raises(PoolUnavailable):
            connector.pool_reader().read_pool(POOL)

    def test_fee_protocol_width(self):
        def fee_protocol(abi):
            slot0 = next(item for item in abi if item["name"] == "slot0")
            return slot0["outputs"][5]["type"]

        assert fee_protocol(UniswapConnector.POOL_ABI) == "uint8"
        assert fee_protocol(PancakeSwapConnector.POOL_ABI) == "uint32"


# =========================================================================
# Chain
# =========================================================================

class TestEvmChain:
    """Tests for the block clock and rollback"""

    def test_now_and_deadline(self):
        transactor = make_transactor()
        transactor.web3.eth.get_block.return_value = {"timestamp": 1000}
        chain = EvmChain(transactor, EVMConfig(tx_deadline_seconds=60))
        assert chain.now() == 1000
        assert chain.deadline() == 1060

    def test_clock_failure(self):
        transactor = make_transactor()
        transactor.web3.eth.get_block.side_effect = ConnectionError("refused")
        with pytest.raises(RpcError):
            EvmChain(transactor, EVMConfig()).now()

    def test_snapshot_rollback(self):
        transactor = make_transactor()
        provider = transactor.web3.provider
        provider.make_request.return_value = {"result": "0x7"}
        chain = EvmChain(transactor, EVMConfig(snapshot_rollback=True))

        with pytest.raises(RuntimeError):
            with chain.atomic():
                raise RuntimeError("mint failed")

        provider.make_request.assert_any_call("evm_snapshot", [])
        provider.make_request.assert_called_with("evm_revert", ["0x7"])

    def test_snapshot_kept_on_success(self):
        transactor = make_transactor()
        provider = transactor.web3.provider
        provider.make_request.return_value = {"result": "0x7"}

        with EvmChain(transactor, EVMConfig(snapshot_rollback=True)).atomic():
            pass
        provider.make_request.assert_called_once_with("evm_snapshot", [])

    def test_journal_rollback(self):
        undo = MagicMock()
        chain = EvmChain(make_transactor(), EVMConfig(snapshot_rollback=False))

        with pytest.raises(RuntimeError):
            with chain.atomic() as journal:
                journal.record("refund", undo)
                raise RuntimeError("swap failed")
        undo.assert_called_once()


# =========================================================================
# Connectors
# =========================================================================

class TestDefaultEntries:
    """Tests for per-chain deployment tables and overrides"""

    def test_uniswap_mainnet(self):
        connector = UniswapConnector(make_transactor(1), UniswapConfig(position_manager_address="", swap_router_address=""))
        assert connector.default_entries() == (
            "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
            "0xE592427A0AEce92De3Edee1F18E0157C05861564",
        )

    def test_uniswap_bsc_has_no_router(self):
        connector = UniswapConnector(make_transactor(56), UniswapConfig(position_manager_address="", swap_router_address=""))
        registry, router = connector.default_entries()
        assert registry == "0x7b8A01B39D58278b5DE7e48c8449c9f4F5170613"
        assert router == ""

    def test_pancakeswap_bsc(self):
        connector = PancakeSwapConnector(
            make_transactor(56), PancakeSwapConfig(position_manager_address="", swap_router_address="")
        )
        assert connector.default_entries() == (
            "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
            "0x1b81D678ffb9C0263b24A97847620C99d213eB14",
        )

    def test_override(self):
        connector = UniswapConnector(
            make_transactor(31337), UniswapConfig(position_manager_address=POOL, swap_router_address=RECIPIENT)
        )
        assert connector.default_entries() == (POOL, RECIPIENT)

    def test_unknown_chain(self):
        connector = PancakeSwapConnector(
            make_transactor(10), PancakeSwapConfig(position_manager_address="", swap_router_address="")
        )
        assert connector.default_entries() == ("", "")


# =========================================================================
# Signer and nonces
# =========================================================================

class TestNonceManager:
    """Tests for local nonce tracking"""

    def test_sequential_nonces(self):
        web3 = MagicMock()
        web3.eth.get_transaction_count.return_value = 5
        nonces = NonceManager()
        assert nonces.get_nonce(web3, CUSTODY) == 5
        assert nonces.get_nonce(web3, CUSTODY) == 6

    def test_release_last_nonce(self):
        web3 = MagicMock()
        web3.eth.get_transaction_count.return_value = 5
        nonces = NonceManager()
        nonces.get_nonce(web3, CUSTODY)
        nonce = nonces.get_nonce(web3, CUSTODY)
        nonces.release_nonce(CUSTODY, nonce)
        assert nonces.get_nonce(web3, CUSTODY) == nonce

    def test_chain_ahead_wins(self):
        web3 = MagicMock()
        web3.eth.get_transaction_count.return_value = 5
        nonces = NonceManager()
        nonces.get_nonce(web3, CUSTODY)
        web3.eth.get_transaction_count.return_value = 9
        assert nonces.get_nonce(web3, CUSTODY) == 9

    def test_reset(self):
        web3 = MagicMock()
        web3.eth.get_transaction_count.return_value = 5
        nonces = NonceManager()
        nonces.get_nonce(web3, CUSTODY)
        nonces.get_nonce(web3, CUSTODY)
        nonces.reset(CUSTODY)
        assert nonces.get_nonce(web3, CUSTODY) == 5


class TestEVMSigner:
    """Tests for local signing"""

    def make_web3(self):
        web3 = MagicMock()
        web3.eth.get_transaction_count.return_value = 3
        web3.eth.chain_id = 1
        web3.eth.send_raw_transaction.return_value = b"\xab" * 32
        web3.eth.wait_for_transaction_receipt.return_value = {
            "status": 1, "blockNumber": 100, "gasUsed": 21_000,
        }
        return web3

    def tx(self):
        return {
            "to": RECIPIENT,
            "value": 0,
            "gas": 21_000,
            "maxFeePerGas": 2_000_000_000,
            "maxPriorityFeePerGas": 100_000_000,
            "data": "0x",
        }

    def test_from_private_key(self):
        with_prefix = EVMSigner.from_private_key(TEST_KEY)
        without_prefix = EVMSigner.from_private_key(TEST_KEY[2:])
        assert with_prefix.address == without_prefix.address
        assert Web3.is_checksum_address(with_prefix.address)

    def test_from_env_missing(self, monkeypatch):
        monkeypatch.delenv("EVM_PRIVATE_KEY", raising=False)
        with pytest.raises(SignerError) as exc_info:
            EVMSigner.from_env()
        assert exc_info.value.code == ErrorCode.SIGNER_NOT_CONFIGURED

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("EVM_PRIVATE_KEY", TEST_KEY)
        assert EVMSigner.from_env().address == EVMSigner.from_private_key(TEST_KEY).address

    def test_sign_and_send(self):
        web3 = self.make_web3()
        signer = EVMSigner(Account.from_key(TEST_KEY), NonceManager())
        tx = self.tx()

        result = signer.sign_and_send(web3, tx)

        assert result["status"] == "success"
        assert result["tx_hash"] == "ab" * 32
        assert result["gas_used"] == 21_000
        assert tx["nonce"] == 3
        assert tx["chainId"] == 1
        web3.eth.send_raw_transaction.assert_called_once()

    def test_pre_send_failure_releases_nonce(self):
        web3 = self.make_web3()
        web3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")
        nonces = NonceManager()
        signer = EVMSigner(Account.from_key(TEST_KEY), nonces)

        result = signer.sign_and_send(web3, self.tx())

        assert result["status"] == "failed"
        assert result["tx_hash"] is None
        assert nonces.get_nonce(web3, signer.address) == 3

    def test_receipt_timeout_keeps_hash_and_nonce(self):
        web3 = self.make_web3()
        web3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted(
            "Transaction 0xabab is not in the chain after 120 seconds"
        )
        nonces = NonceManager()
        signer = EVMSigner(Account.from_key(TEST_KEY), nonces)

        result = signer.sign_and_send(web3, self.tx())

        assert result["status"] == "unconfirmed"
        assert result["tx_hash"] == "ab" * 32
        # The broadcast transaction owns nonce 3; the next one is 4
        assert nonces.get_nonce(web3, signer.address) == 4
