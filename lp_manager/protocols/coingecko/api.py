"""
CoinGecko on-chain market data client

REST client for the GeckoTerminal-backed /onchain endpoints of the
CoinGecko API. Used for pool OHLCV history.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ...config import CoinGeckoConfig, config as global_config
from ...errors import RpcError
from ...types import OhlcvCandle

logger = logging.getLogger(__name__)

TIMEFRAMES = ("day", "hour", "minute")


class CoinGeckoAPI:
    """
    CoinGecko on-chain API client

    Usage:
        with CoinGeckoAPI() as api:
            candles = api.get_pool_ohlcv("0x88e6...", timeframe="hour", limit=24)

    Note:
        The demo key is sent as x-cg-demo-api-key. Set COINGECKO_API_KEY.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        network: Optional[str] = None,
        timeout: Optional[float] = None,
        coingecko_config: Optional[CoinGeckoConfig] = None,
    ):
        settings = coingecko_config or global_config.coingecko
        self._api_key = api_key if api_key is not None else settings.api_key
        self._base_url = (base_url or settings.base_url).rstrip("/")
        self._network = network or settings.network
        self._timeout = timeout or settings.timeout
        self._client: Optional[httpx.Client] = None

    @property
    def network(self) -> str:
        return self._network

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client with auth headers"""
        if self._client is None:
            headers = {"accept": "application/json"}
            if self._api_key:
                headers["x-cg-demo-api-key"] = self._api_key
            self._client = httpx.Client(timeout=self._timeout, headers=headers)
        return self._client

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self._base_url}/{path}"
        try:
            response = self._get_client().get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"CoinGecko API error {status} for {path}")
            if status == 429:
                raise RpcError.rate_limited(url)
            raise RpcError.invalid_response(url, f"HTTP {status}")
        except httpx.TimeoutException:
            raise RpcError.timeout(url, self._timeout)
        except httpx.RequestError as e:
            raise RpcError.connection_failed(url, e)
        except ValueError as e:
            raise RpcError.invalid_response(url, f"invalid JSON: {e}")

    def get_pool_ohlcv(
        self,
        pool_address: str,
        timeframe: str = "day",
        limit: int = 1000,
        token: str = "base",
    ) -> List[OhlcvCandle]:
        """
        Get OHLCV candles for a pool

        Args:
            pool_address: Pool contract address
            timeframe: "day", "hour" or "minute"
            limit: Number of candles (API maximum 1000)
            token: Price the "base" or "quote" token of the pool

        Returns:
            Candles oldest first
        """
        if timeframe not in TIMEFRAMES:
            raise ValueError(f"timeframe must be one of {TIMEFRAMES}, got {timeframe!r}")

        path = f"onchain/networks/{self._network}/pools/{pool_address}/ohlcv/{timeframe}"
        data = self._get(path, params={"token": token, "currency": "token", "limit": limit})

        try:
            rows = data["data"]["attributes"]["ohlcv_list"]
        except (KeyError, TypeError):
            raise RpcError.invalid_response(path, "missing data.attributes.ohlcv_list")

        candles = [OhlcvCandle.from_row(row) for row in rows]
        candles.sort(key=lambda c: c.timestamp)
        logger.debug(f"Fetched {len(candles)} {timeframe} candles for {pool_address}")
        return candles

    def close(self):
        """Close HTTP client"""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
