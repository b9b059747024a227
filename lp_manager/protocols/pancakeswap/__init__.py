"""
PancakeSwap V3 venue
"""

from .adapter import PancakeSwapConnector
from .api import PANCAKESWAP_FEE_TIERS, TICK_SPACING_BY_FEE

__all__ = [
    "PancakeSwapConnector",
    "PANCAKESWAP_FEE_TIERS",
    "TICK_SPACING_BY_FEE",
]
