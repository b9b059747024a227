"""
Venue collaborators

The lifecycle modules only see the abstract seams in base.py. Concrete
venues are reached through connectors: web3-backed Uniswap V3 and
PancakeSwap V3 deployments, or the in-process simulated venue.
"""

from .base import (
    ERC721_RECEIVED,
    Chain,
    CustodyJournal,
    ExchangeRouter,
    PoolReader,
    PoolState,
    PositionRegistry,
    TokenLedger,
    VenueConnector,
)
from .registry import VenueEndpoints, VenueRegistry

__all__ = [
    "ERC721_RECEIVED",
    "Chain",
    "CustodyJournal",
    "ExchangeRouter",
    "PoolReader",
    "PoolState",
    "PositionRegistry",
    "TokenLedger",
    "VenueConnector",
    "VenueEndpoints",
    "VenueRegistry",
]
