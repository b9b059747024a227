"""
Pool snapshot type
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, Optional, Tuple

from .common import Token
from .price import FEE_FACTOR, tick_to_price, sqrt_price_x96_to_price
from .venue import Venue


@dataclass(frozen=True)
class PoolSnapshot:
    """
    Normalized read of a concentrated-liquidity pool

    Immutable once read; recomputed on demand, never persisted.

    Attributes:
        address: Pool contract address
        token0: Lower-ordered token with metadata
        token1: Higher-ordered token with metadata
        fee: Fee tier in hundredths of a basis point (e.g. 3000 = 0.3%)
        tick_spacing: Tick spacing of the pool
        current_tick: Current tick from slot0
        sqrt_price_x96: Current square root price (Q64.96)
        liquidity: Active in-range liquidity
        venue: Venue the snapshot was read through, when known
        unavailable_metadata: Token addresses whose metadata read failed
    """
    address: str
    token0: Token
    token1: Token
    fee: int
    tick_spacing: int
    current_tick: int
    sqrt_price_x96: int
    liquidity: int
    venue: Optional[Venue] = None
    unavailable_metadata: FrozenSet[str] = field(default_factory=frozenset)

    def __str__(self) -> str:
        return f"{self.symbol} ({self.venue or 'unknown'})"

    @property
    def symbol(self) -> str:
        return f"{self.token0.symbol}/{self.token1.symbol}"

    @property
    def fee_rate(self) -> Decimal:
        """Trading fee as a fraction (0.003 for the 3000 tier)"""
        return Decimal(self.fee) / FEE_FACTOR

    @property
    def price(self) -> Decimal:
        """Price of token0 in token1 from sqrtPriceX96"""
        return sqrt_price_x96_to_price(
            self.sqrt_price_x96, self.token0.decimals, self.token1.decimals
        )

    @property
    def price0(self) -> Decimal:
        """Price of token0 in token1 at the current tick"""
        return tick_to_price(self.current_tick, self.token0.decimals, self.token1.decimals)

    @property
    def price1(self) -> Decimal:
        """Price of token1 in token0 at the current tick"""
        price0 = self.price0
        if price0 == 0:
            return Decimal(0)
        return Decimal(1) / price0

    @property
    def metadata_complete(self) -> bool:
        return not self.unavailable_metadata

    def tick_range(self, width: int) -> Tuple[int, int]:
        """
        Spacing-aligned range of `width` spacings on each side of the current tick

        The current tick is floored to the spacing grid first, so the
        result is always a valid mint range.
        """
        if width <= 0:
            raise ValueError("width must be positive")
        base = (self.current_tick // self.tick_spacing) * self.tick_spacing
        return base - width * self.tick_spacing, base + width * self.tick_spacing

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dictionary"""
        return {
            "address": self.address,
            "venue": self.venue.value if self.venue else None,
            "symbol": self.symbol,
            "token0": {
                "address": self.token0.address,
                "name": self.token0.name,
                "symbol": self.token0.symbol,
                "decimals": self.token0.decimals,
            },
            "token1": {
                "address": self.token1.address,
                "name": self.token1.name,
                "symbol": self.token1.symbol,
                "decimals": self.token1.decimals,
            },
            "fee": self.fee,
            "fee_rate": str(self.fee_rate),
            "tick_spacing": self.tick_spacing,
            "current_tick": self.current_tick,
            "sqrt_price_x96": str(self.sqrt_price_x96),
            "liquidity": str(self.liquidity),
            "price0": str(self.price0),
            "price1": str(self.price1),
            "unavailable_metadata": sorted(self.unavailable_metadata),
        }
