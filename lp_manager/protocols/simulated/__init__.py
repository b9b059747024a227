"""
Simulated venues for dry runs and tests
"""

from .chain import SimulatedChain, SimulatedTokenLedger
from .venue import (
    SimulatedVenue,
    SimulatedPositionRegistry,
    SimulatedExchangeRouter,
    SimulatedPoolReader,
)

__all__ = [
    "SimulatedChain",
    "SimulatedTokenLedger",
    "SimulatedVenue",
    "SimulatedPositionRegistry",
    "SimulatedExchangeRouter",
    "SimulatedPoolReader",
]
