"""
Error definitions for the LP position manager
"""

from .exceptions import (
    ErrorCode,
    LpManagerError,
    RpcError,
    SlippageExceeded,
    DeadlineExpired,
    InsufficientLiquidity,
    PoolUnavailable,
    MetadataUnavailable,
    InsufficientFunds,
    PositionNotFound,
    EmptyPosition,
    TransactionError,
    SignerError,
    OperationInProgress,
    InvalidParameter,
    Unauthorized,
    ConfigurationError,
    RouterUnavailable,
)

__all__ = [
    "ErrorCode",
    "LpManagerError",
    "RpcError",
    "SlippageExceeded",
    "DeadlineExpired",
    "InsufficientLiquidity",
    "PoolUnavailable",
    "MetadataUnavailable",
    "InsufficientFunds",
    "PositionNotFound",
    "EmptyPosition",
    "TransactionError",
    "SignerError",
    "OperationInProgress",
    "InvalidParameter",
    "Unauthorized",
    "ConfigurationError",
    "RouterUnavailable",
]
