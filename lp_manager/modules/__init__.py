"""
Functional modules for PositionManager

Provides the position lifecycle:
- PoolInspector: Pool snapshots, token metadata, OHLCV
- PositionOpener: Mint and increase liquidity
- PositionCloser: Full and partial withdrawal
- Rebalancer: Atomic move of a position to a new range
"""

from .custody import Custody
from .market import PoolInspector
from .opener import PositionOpener
from .closer import PositionCloser
from .rebalance import Rebalancer

__all__ = [
    "Custody",
    "PoolInspector",
    "PositionOpener",
    "PositionCloser",
    "Rebalancer",
]
