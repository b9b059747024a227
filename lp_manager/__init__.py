"""
LP Manager - Concentrated-liquidity positions across two V3-style venues

Provides all-or-nothing operations for:
- Opening positions (mint from caller funds, refund the remainder)
- Increasing liquidity of existing positions
- Closing positions, fully or partially, with fee collection
- Rebalancing a position to a new range with an optional exchange leg

Venues:
- Uniswap V3
- PancakeSwap V3
"""

from .manager import PositionManager
from .types import (
    Token,
    Venue,
    PoolSnapshot,
    Position,
    OpenPositionResult,
    IncreaseLiquidityResult,
    ClosePositionResult,
    RebalanceResult,
    ExchangeResult,
    ZERO_ADDRESS,
)
from .errors import (
    LpManagerError,
    ErrorCode,
    ConfigurationError,
    RouterUnavailable,
    Unauthorized,
    InvalidParameter,
    OperationInProgress,
    InsufficientLiquidity,
    EmptyPosition,
    PositionNotFound,
    SlippageExceeded,
    DeadlineExpired,
    MetadataUnavailable,
    PoolUnavailable,
    InsufficientFunds,
    TransactionError,
)
from .infra.access import OwnerOnly
from .protocols.coingecko import CoinGeckoAPI

__version__ = "0.1.0"

__all__ = [
    # Manager
    "PositionManager",
    "OwnerOnly",
    "CoinGeckoAPI",
    # Types
    "Token",
    "Venue",
    "PoolSnapshot",
    "Position",
    "OpenPositionResult",
    "IncreaseLiquidityResult",
    "ClosePositionResult",
    "RebalanceResult",
    "ExchangeResult",
    "ZERO_ADDRESS",
    # Errors
    "LpManagerError",
    "ErrorCode",
    "ConfigurationError",
    "RouterUnavailable",
    "Unauthorized",
    "InvalidParameter",
    "OperationInProgress",
    "InsufficientLiquidity",
    "EmptyPosition",
    "PositionNotFound",
    "SlippageExceeded",
    "DeadlineExpired",
    "MetadataUnavailable",
    "PoolUnavailable",
    "InsufficientFunds",
    "TransactionError",
]
