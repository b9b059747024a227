"""
Uniswap V3 venue

Usage:
    from lp_manager.protocols.uniswap import UniswapConnector

    connector = UniswapConnector(transactor)
"""

from .adapter import UniswapConnector
from .api import UNISWAP_FEE_TIERS, TICK_SPACING_BY_FEE

__all__ = [
    "UniswapConnector",
    "UNISWAP_FEE_TIERS",
    "TICK_SPACING_BY_FEE",
]
