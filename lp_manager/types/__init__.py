"""
Type definitions for the LP position manager
"""

from .common import (
    Token,
    ZERO_ADDRESS,
    MAX_UINT128,
    is_zero_address,
    require_address,
    same_address,
    sort_tokens,
)
from .venue import Venue
from .price import FEE_FACTOR, OhlcvCandle, tick_to_price, sqrt_price_x96_to_price
from .pool import PoolSnapshot
from .position import Position, MintParams
from .result import (
    OpenPositionResult,
    IncreaseLiquidityResult,
    ClosePositionResult,
    ExchangeResult,
    RebalanceResult,
)
from .events import (
    Event,
    RegistryUpdated,
    PositionOpened,
    PositionIncreased,
    PositionClosed,
    ExchangeExecuted,
    PositionRebalanced,
    TokenSwept,
)

__all__ = [
    # Common types
    "Token",
    "ZERO_ADDRESS",
    "MAX_UINT128",
    "is_zero_address",
    "require_address",
    "same_address",
    "sort_tokens",
    "Venue",
    # Prices
    "FEE_FACTOR",
    "OhlcvCandle",
    "tick_to_price",
    "sqrt_price_x96_to_price",
    # Pool / position
    "PoolSnapshot",
    "Position",
    "MintParams",
    # Results
    "OpenPositionResult",
    "IncreaseLiquidityResult",
    "ClosePositionResult",
    "ExchangeResult",
    "RebalanceResult",
    # Events
    "Event",
    "RegistryUpdated",
    "PositionOpened",
    "PositionIncreased",
    "PositionClosed",
    "ExchangeExecuted",
    "PositionRebalanced",
    "TokenSwept",
]
