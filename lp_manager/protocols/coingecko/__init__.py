"""
CoinGecko on-chain market data
"""

from .api import CoinGeckoAPI

__all__ = ["CoinGeckoAPI"]
