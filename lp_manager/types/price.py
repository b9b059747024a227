"""
Price helpers and market data types
"""

from dataclasses import dataclass
from decimal import Decimal

# Pool fee tiers are expressed in hundredths of a basis point
FEE_FACTOR = Decimal(1_000_000)

Q96 = 2**96


def tick_to_price(tick: int, decimals0: int, decimals1: int) -> Decimal:
    """
    Price of token0 denominated in token1 at a tick

    price = 1.0001^tick / 10^(decimals1 - decimals0)
    """
    return Decimal("1.0001") ** tick / Decimal(10) ** (decimals1 - decimals0)


def sqrt_price_x96_to_price(sqrt_price_x96: int, decimals0: int, decimals1: int) -> Decimal:
    """Decimal-adjusted token1-per-token0 price from a Q64.96 square root price"""
    ratio = (Decimal(sqrt_price_x96) / Decimal(Q96)) ** 2
    return ratio * Decimal(10) ** (decimals0 - decimals1)


@dataclass(frozen=True)
class OhlcvCandle:
    """
    One OHLCV bar for a pool

    Attributes:
        timestamp: Bar open time (unix seconds)
        open: Opening price
        high: Highest price
        low: Lowest price
        close: Closing price
        volume: Traded volume
    """
    timestamp: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    @classmethod
    def from_row(cls, row: list) -> "OhlcvCandle":
        """Build from a [ts, o, h, l, c, v] row"""
        if len(row) < 6:
            raise ValueError(f"OHLCV row needs 6 fields, got {len(row)}")
        ts, o, h, l, c, v = row[:6]
        return cls(
            timestamp=int(ts),
            open=Decimal(str(o)),
            high=Decimal(str(h)),
            low=Decimal(str(l)),
            close=Decimal(str(c)),
            volume=Decimal(str(v)),
        )
