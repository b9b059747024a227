"""
Observability events published by the position manager
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import ClassVar, Optional

from .venue import Venue


@dataclass(frozen=True)
class Event:
    """Base class for published events"""
    name: ClassVar[str] = "event"

    def to_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        data["event"] = self.name
        return data


@dataclass(frozen=True)
class RegistryUpdated(Event):
    name: ClassVar[str] = "registry_updated"

    venue: Venue
    entry: str
    previous: Optional[str]
    address: str
    version: int
    actor: str


@dataclass(frozen=True)
class PositionOpened(Event):
    name: ClassVar[str] = "position_opened"

    venue: Venue
    token_id: int
    liquidity: int
    amount0: int
    amount1: int
    recipient: str


@dataclass(frozen=True)
class PositionIncreased(Event):
    name: ClassVar[str] = "position_increased"

    venue: Venue
    token_id: int
    liquidity: int
    amount0: int
    amount1: int


@dataclass(frozen=True)
class PositionClosed(Event):
    name: ClassVar[str] = "position_closed"

    venue: Venue
    token_id: int
    liquidity: int
    amount0: int
    amount1: int
    burned: bool


@dataclass(frozen=True)
class ExchangeExecuted(Event):
    name: ClassVar[str] = "exchange_executed"

    venue: Venue
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int


@dataclass(frozen=True)
class PositionRebalanced(Event):
    name: ClassVar[str] = "position_rebalanced"

    venue: Venue
    old_token_id: int
    new_token_id: int
    new_liquidity: int


@dataclass(frozen=True)
class TokenSwept(Event):
    name: ClassVar[str] = "token_swept"

    token: str
    amount: int
    to: str
    actor: str
