"""
Position type definitions
"""

from dataclasses import dataclass
from typing import Optional

from .venue import Venue


@dataclass(frozen=True)
class Position:
    """
    Concentrated-liquidity position held on a venue position registry

    Attributes:
        token_id: Certificate id
        venue: Venue whose registry issued the certificate
        token0: Lower-ordered token address
        token1: Higher-ordered token address
        fee: Fee tier
        tick_lower: Lower tick (inclusive)
        tick_upper: Upper tick (exclusive)
        liquidity: Current position liquidity
        tokens_owed0: Uncollected token0 (fees and decreased principal)
        tokens_owed1: Uncollected token1
        owner: Certificate holder, when known
    """
    token_id: int
    venue: Venue
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    liquidity: int
    tokens_owed0: int = 0
    tokens_owed1: int = 0
    owner: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"Position(#{self.token_id}, {self.venue.value}, "
            f"[{self.tick_lower}, {self.tick_upper}), L={self.liquidity})"
        )

    @property
    def is_empty(self) -> bool:
        return self.liquidity == 0

    def in_range(self, tick: int) -> bool:
        return self.tick_lower <= tick < self.tick_upper


@dataclass(frozen=True)
class MintParams:
    """Arguments of a position registry mint call"""
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    amount0_desired: int
    amount1_desired: int
    amount0_min: int
    amount1_min: int
    recipient: str
    deadline: int

    def as_tuple(self) -> tuple:
        """Struct layout expected by NonfungiblePositionManager.mint"""
        return (
            self.token0,
            self.token1,
            self.fee,
            self.tick_lower,
            self.tick_upper,
            self.amount0_desired,
            self.amount1_desired,
            self.amount0_min,
            self.amount1_min,
            self.recipient,
            self.deadline,
        )
