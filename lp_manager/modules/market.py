"""
Market Module

Pool snapshots and market data queries.
"""

import logging
from typing import List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from ..manager import PositionManager

from ..errors import MetadataUnavailable, PoolUnavailable
from ..protocols.base import PoolState
from ..types import OhlcvCandle, PoolSnapshot, Token, Venue

logger = logging.getLogger(__name__)

# Substituted when a token's decimals() cannot be read
DEFAULT_DECIMALS = 18


class PoolInspector:
    """
    Pool inspection module

    Provides:
    - Normalized pool snapshots (tokens, fee, spacing, tick, price, liquidity)
    - Token metadata
    - OHLCV history

    Usage:
        manager = PositionManager(...)

        snapshot = manager.market.inspect("0x88e6...")
        lower, upper = snapshot.tick_range(10)

        candles = manager.market.ohlcv("0x88e6...", timeframe="hour", limit=24)
    """

    def __init__(self, client: "PositionManager"):
        """
        Initialize pool inspector

        Args:
            client: PositionManager instance
        """
        self._client = client

    @property
    def strict(self) -> bool:
        """Raise MetadataUnavailable instead of substituting defaults"""
        return self._client.config.manager.strict_token_metadata

    def inspect(self, pool_address: str, venue=None) -> PoolSnapshot:
        """
        Read a pool into a snapshot

        Args:
            pool_address: Pool contract address
            venue: Venue tag; when omitted the default venue is tried
                first, then the other one

        Returns:
            PoolSnapshot

        Raises:
            PoolUnavailable: No venue can read the pool
            MetadataUnavailable: Token metadata unreadable in strict mode
        """
        venue, state = self._read(pool_address, venue)

        unavailable = set()
        token0 = self._token(state.token0, unavailable)
        token1 = self._token(state.token1, unavailable)

        snapshot = PoolSnapshot(
            address=state.address,
            token0=token0,
            token1=token1,
            fee=state.fee,
            tick_spacing=state.tick_spacing,
            current_tick=state.tick,
            sqrt_price_x96=state.sqrt_price_x96,
            liquidity=state.liquidity,
            venue=venue,
            unavailable_metadata=frozenset(unavailable),
        )
        logger.debug(f"Inspected {snapshot} tick={snapshot.current_tick} L={snapshot.liquidity}")
        return snapshot

    def token(self, address: str) -> Token:
        """
        Read a token's metadata

        Missing fields are defaulted unless strict mode is on.
        """
        return self._token(address, set())

    def ohlcv(self, pool_address: str, timeframe: str = "day", limit: int = 1000) -> List[OhlcvCandle]:
        """OHLCV candles for a pool from CoinGecko"""
        return self._client.coingecko.get_pool_ohlcv(pool_address, timeframe=timeframe, limit=limit)

    def _read(self, pool_address: str, venue) -> Tuple[Venue, PoolState]:
        if venue is not None:
            venue = Venue.parse(venue)
            return venue, self._client.venues.pool_reader(venue).read_pool(pool_address)

        default = self._client.default_venue
        last_error: Optional[PoolUnavailable] = None
        for candidate in (default, default.alternate()):
            try:
                return candidate, self._client.venues.pool_reader(candidate).read_pool(pool_address)
            except PoolUnavailable as e:
                logger.debug(f"{candidate.value} cannot read pool {pool_address}: {e}")
                last_error = e
        raise last_error

    def _token(self, address: str, unavailable: set) -> Token:
        ledger = self._client.ledger
        values = {}
        for field_name, default in (("name", ""), ("symbol", ""), ("decimals", DEFAULT_DECIMALS)):
            try:
                values[field_name] = getattr(ledger, field_name)(address)
            except MetadataUnavailable:
                if self.strict:
                    raise
                logger.warning(f"Token {address}: {field_name} unreadable, using {default!r}")
                values[field_name] = default
                unavailable.add(address)

        return Token(
            address=address,
            symbol=values["symbol"],
            decimals=values["decimals"],
            name=values["name"],
        )
