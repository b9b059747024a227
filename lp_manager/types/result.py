"""
Result type definitions for position operations
"""

from dataclasses import dataclass, asdict
from typing import Optional

from .venue import Venue


@dataclass(frozen=True)
class OpenPositionResult:
    """
    Outcome of opening a position

    Attributes:
        venue: Venue the position was minted on
        token_id: New certificate id
        liquidity: Minted liquidity
        amount0: Token0 consumed by the venue
        amount1: Token1 consumed by the venue
        refund0: Token0 returned to the caller
        refund1: Token1 returned to the caller
    """
    venue: Venue
    token_id: int
    liquidity: int
    amount0: int
    amount1: int
    refund0: int = 0
    refund1: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["venue"] = self.venue.value
        return data


@dataclass(frozen=True)
class IncreaseLiquidityResult:
    """Outcome of adding capital to an existing position"""
    venue: Venue
    token_id: int
    liquidity_added: int
    amount0: int
    amount1: int
    refund0: int = 0
    refund1: int = 0


@dataclass(frozen=True)
class ClosePositionResult:
    """
    Outcome of a full or partial withdrawal

    amount0/amount1 are everything collected to the caller: the
    decreased principal plus any fees accrued on the position.
    """
    venue: Venue
    token_id: int
    liquidity_removed: int
    amount0: int
    amount1: int
    burned: bool
    remaining_liquidity: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["venue"] = self.venue.value
        return data


@dataclass(frozen=True)
class ExchangeResult:
    """Outcome of a single-hop exact-input exchange"""
    venue: Venue
    token_in: str
    token_out: str
    fee: int
    amount_in: int
    amount_out: int


@dataclass(frozen=True)
class RebalanceResult:
    """
    Outcome of relocating a position to a new range

    Attributes:
        venue: Home venue of both the old and the new position
        old_token_id: Burned certificate
        new_token_id: Certificate minted to the caller
        new_liquidity: Liquidity of the new position
        withdrawn0: Token0 collected from the old position (principal + fees)
        withdrawn1: Token1 collected from the old position
        amount0: Token0 consumed by the new mint
        amount1: Token1 consumed by the new mint
        refund0: Token0 returned to the caller
        refund1: Token1 returned to the caller
        exchange: Exchange leg, when one was executed
    """
    venue: Venue
    old_token_id: int
    new_token_id: int
    new_liquidity: int
    withdrawn0: int
    withdrawn1: int
    amount0: int
    amount1: int
    refund0: int
    refund1: int
    exchange: Optional[ExchangeResult] = None
