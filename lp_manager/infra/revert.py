"""
Revert reason decoding and classification

Maps the revert strings raised by V3 position managers, routers and
ERC-20 tokens onto the manager's exception taxonomy.
"""

import logging
from typing import Optional, Union

from eth_abi import decode as abi_decode

from ..errors import (
    LpManagerError,
    ErrorCode,
    RpcError,
    SlippageExceeded,
    DeadlineExpired,
    Unauthorized,
    PositionNotFound,
    InsufficientFunds,
    InvalidParameter,
    TransactionError,
)

logger = logging.getLogger(__name__)

# keccak256("Error(string)")[:4]
ERROR_STRING_SELECTOR = bytes.fromhex("08c379a0")

# Error keywords for classification (lowercase)
SLIPPAGE_KEYWORDS = [
    "price slippage check", "too little received", "too much requested",
    "slippage", "insufficient output",
]

DEADLINE_KEYWORDS = [
    "transaction too old", "deadline",
]

UNAUTHORIZED_KEYWORDS = [
    "not approved", "not owner", "caller is not the owner",
    "transfer caller is not owner", "unauthorized",
]

NOT_FOUND_KEYWORDS = [
    "invalid token id", "nonexistent token", "owner query for nonexistent",
]

FUNDS_KEYWORDS = [
    "transfer amount exceeds balance", "transfer amount exceeds allowance",
    "insufficient allowance", "insufficient balance",
]

# TransferHelper short codes: safeTransferFrom, safeTransfer, safeApprove
TRANSFER_HELPER_CODES = ["stf", "st", "sa"]

# Tick validation codes from the pool
TICK_CODES = [
    "tld", "tlu", "tlm", "tum",
]

RECOVERABLE_KEYWORDS = [
    "timeout", "timed out", "connection", "network", "rate limit",
    "too many requests", "503", "502", "504", "service unavailable",
]


def decode_revert_data(data: Union[bytes, str, None]) -> Optional[str]:
    """
    Decode an Error(string) revert payload

    Args:
        data: Raw revert data as bytes or 0x-prefixed hex

    Returns:
        The revert string, or None if the payload is not Error(string)
    """
    if not data:
        return None
    if isinstance(data, str):
        hex_data = data[2:] if data.startswith("0x") else data
        try:
            data = bytes.fromhex(hex_data)
        except ValueError:
            return None
    if len(data) < 4 or data[:4] != ERROR_STRING_SELECTOR:
        return None
    try:
        return abi_decode(["string"], data[4:])[0]
    except Exception as e:
        logger.debug(f"Undecodable revert payload: {e}")
        return None


def revert_reason(error: Exception) -> str:
    """Best-effort human readable reason for a failed call"""
    data = getattr(error, "data", None)
    decoded = decode_revert_data(data) if isinstance(data, (bytes, str)) else None
    if decoded:
        return decoded
    message = getattr(error, "message", None)
    if message:
        return str(message)
    return str(error)


def _matches(reason: str, keywords) -> bool:
    return any(keyword in reason for keyword in keywords)


def _has_token(reason: str, tokens) -> bool:
    # Short revert codes ("STF", "TLU") must match as whole words
    words = reason.replace(":", " ").replace("'", " ").replace('"', " ").split()
    return any(token in words for token in tokens)


def classify_revert(error: Exception, description: str = "") -> LpManagerError:
    """
    Classify a failed contract call into a manager exception.

    Args:
        error: Exception raised by web3 (ContractLogicError, ValueError, ...)
        description: What was being attempted, for the message

    Returns:
        The exception to raise; never raises itself
    """
    if isinstance(error, LpManagerError):
        return error

    reason = revert_reason(error)
    lowered = reason.lower()
    prefix = f"{description}: " if description else ""

    if _matches(lowered, SLIPPAGE_KEYWORDS):
        return SlippageExceeded(f"{prefix}{reason}", original_error=error)
    if _matches(lowered, DEADLINE_KEYWORDS):
        return DeadlineExpired(f"{prefix}{reason}", original_error=error)
    if _matches(lowered, UNAUTHORIZED_KEYWORDS):
        return Unauthorized(f"{prefix}{reason}", original_error=error)
    if _matches(lowered, NOT_FOUND_KEYWORDS):
        return PositionNotFound(f"{prefix}{reason}", original_error=error)
    if _has_token(lowered, TRANSFER_HELPER_CODES) or _matches(lowered, FUNDS_KEYWORDS):
        return InsufficientFunds(f"{prefix}{reason}")
    if _has_token(lowered, TICK_CODES):
        return InvalidParameter(f"{prefix}{reason}", param="ticks")
    if _matches(lowered, RECOVERABLE_KEYWORDS):
        code = ErrorCode.RPC_TIMEOUT if "time" in lowered else ErrorCode.RPC_CONNECTION_FAILED
        return RpcError(f"{prefix}{reason}", code, original_error=error)

    return TransactionError.simulation_failed(f"{prefix}{reason}", original_error=error)
