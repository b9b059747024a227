"""
PositionManager - Unified entry point for position operations

Manages concentrated-liquidity positions on Uniswap V3 and PancakeSwap V3
through functional modules (market, opener, closer, rebalancer).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Optional, Tuple, TYPE_CHECKING

from .config import Config, get_config
from .errors import ConfigurationError, InvalidParameter
from .infra import CorrelationContext, EventBus, OperationGuard, log_with_correlation
from .infra.access import Authorization, OwnerOnly, require
from .protocols import ERC721_RECEIVED, Chain, TokenLedger, VenueConnector, VenueRegistry
from .types import (
    ClosePositionResult,
    IncreaseLiquidityResult,
    OpenPositionResult,
    PoolSnapshot,
    Position,
    RebalanceResult,
    TokenSwept,
    Venue,
    is_zero_address,
    require_address,
)

if TYPE_CHECKING:
    from .infra.evm import EVMSigner
    from .protocols.coingecko import CoinGeckoAPI

logger = logging.getLogger(__name__)


class PositionManager:
    """
    Unified position manager

    Provides access to position operations through functional modules:
    - market: Pool snapshots, token metadata, OHLCV
    - opener: Open positions, increase liquidity
    - closer: Full and partial withdrawal
    - rebalancer: Move a position to a new range

    open/increase/close/rebalance/sweep share one guard: a second call
    while one is in flight fails with OperationInProgress.

    Usage:
        # From environment (EVM_RPC_URL, EVM_PRIVATE_KEY, MANAGER_OWNER_ADDRESS)
        manager = PositionManager.from_config()

        snapshot = manager.inspect_pool("0x88e6...")
        lower, upper = snapshot.tick_range(10)
        opened = manager.open_position(
            caller, Venue.UNISWAP, snapshot.token0.address, snapshot.token1.address,
            snapshot.fee, lower, upper, 10**18, 2_000 * 10**6,
        )
        manager.rebalance_position(caller, Venue.UNISWAP, opened.token_id, lower - 600, upper + 600)
    """

    def __init__(
        self,
        chain: Chain,
        ledger: TokenLedger,
        connectors: Dict[Venue, VenueConnector],
        authorize: Authorization,
        events: Optional[EventBus] = None,
        config: Optional[Config] = None,
        coingecko: Optional["CoinGeckoAPI"] = None,
        entries: Optional[Dict[Venue, Tuple[str, str]]] = None,
    ):
        """
        Initialize PositionManager

        Args:
            chain: Clock and atomicity of the execution environment
            ledger: Token accounts of the custody address
            connectors: Connector per venue tag
            authorize: Capability check for administrative operations
            events: Event bus (a new one is created if None)
            config: Configuration (global config if None)
            coingecko: OHLCV client (created on first use if None)
            entries: Initial venue registry entries (connector defaults if None)
        """
        self._config = config or get_config()
        self._chain = chain
        self._ledger = ledger
        self._authorize = authorize
        self._events = events or EventBus(self._config.manager.event_history_size)
        self._guard = OperationGuard()
        self._venues = VenueRegistry(connectors, authorize, events=self._events, entries=entries)
        self._coingecko = coingecko

        chain.register_receiver(ledger.custody, self.on_certificate_received)

        # Lazy-loaded modules
        self._market: Optional["PoolInspector"] = None
        self._opener: Optional["PositionOpener"] = None
        self._closer: Optional["PositionCloser"] = None
        self._rebalancer: Optional["Rebalancer"] = None

    @classmethod
    def from_config(
        cls,
        config: Optional[Config] = None,
        signer: Optional["EVMSigner"] = None,
    ) -> "PositionManager":
        """
        Build a manager for a live EVM network

        Args:
            config: Configuration (global config if None)
            signer: Custody account signer (EVM_PRIVATE_KEY if None)

        Raises:
            ConfigurationError: EVM_RPC_URL or MANAGER_OWNER_ADDRESS missing
            SignerError: No private key configured
        """
        from .infra.evm import EVMSigner, EvmTransactor, create_web3
        from .protocols.evm import EvmChain, EvmTokenLedger
        from .protocols.pancakeswap import PancakeSwapConnector
        from .protocols.uniswap import UniswapConnector

        config = config or get_config()
        if not config.chain.rpc_url:
            raise ConfigurationError.missing("EVM_RPC_URL")
        authorize = OwnerOnly(config.manager.owner_address)

        web3 = create_web3(config.chain.rpc_url, config.chain.chain_id, config.chain.timeout_seconds)
        signer = signer or EVMSigner.from_env()
        transactor = EvmTransactor(
            web3,
            signer,
            config.evm,
            priority_fee_gwei=max(config.uniswap.priority_fee_gwei, config.pancakeswap.priority_fee_gwei),
        )

        connectors = {
            Venue.UNISWAP: UniswapConnector(transactor, config.uniswap),
            Venue.PANCAKESWAP: PancakeSwapConnector(transactor, config.pancakeswap),
        }
        return cls(
            EvmChain(transactor, config.evm),
            EvmTokenLedger(transactor, config.evm),
            connectors,
            authorize,
            config=config,
        )

    # =========================================================================
    # Collaborators
    # =========================================================================

    @property
    def config(self) -> Config:
        return self._config

    @property
    def chain(self) -> Chain:
        return self._chain

    @property
    def ledger(self) -> TokenLedger:
        return self._ledger

    @property
    def custody(self) -> str:
        """Address that must be approved for callers' tokens and certificates"""
        return self._ledger.custody

    @property
    def venues(self) -> VenueRegistry:
        """Venue registry (setPositionRegistry / setExchangeRouter)"""
        return self._venues

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def guard(self) -> OperationGuard:
        return self._guard

    @property
    def default_venue(self) -> Venue:
        return Venue.parse(self._config.manager.default_venue)

    @property
    def coingecko(self) -> "CoinGeckoAPI":
        if self._coingecko is None:
            from .protocols.coingecko import CoinGeckoAPI
            self._coingecko = CoinGeckoAPI(coingecko_config=self._config.coingecko)
        return self._coingecko

    # =========================================================================
    # Modules
    # =========================================================================

    @property
    def market(self) -> "PoolInspector":
        """
        Pool inspector

        Provides:
        - inspect(pool, venue): Pool snapshot
        - token(address): Token metadata
        - ohlcv(pool, timeframe, limit): OHLCV candles
        """
        if self._market is None:
            from .modules.market import PoolInspector
            self._market = PoolInspector(self)
        return self._market

    @property
    def opener(self) -> "PositionOpener":
        if self._opener is None:
            from .modules.opener import PositionOpener
            self._opener = PositionOpener(self)
        return self._opener

    @property
    def closer(self) -> "PositionCloser":
        if self._closer is None:
            from .modules.closer import PositionCloser
            self._closer = PositionCloser(self)
        return self._closer

    @property
    def rebalancer(self) -> "Rebalancer":
        if self._rebalancer is None:
            from .modules.rebalance import Rebalancer
            self._rebalancer = Rebalancer(self)
        return self._rebalancer

    # =========================================================================
    # Read operations
    # =========================================================================

    def inspect_pool(self, pool_address: str, venue=None) -> PoolSnapshot:
        return self.market.inspect(pool_address, venue)

    def get_position(self, venue, token_id: int) -> Position:
        """
        Raises:
            PositionNotFound: Unknown or burned certificate
        """
        return self._venues.resolve(venue).position_registry.positions(token_id)

    # =========================================================================
    # Mutating operations
    # =========================================================================

    @contextmanager
    def _operation(self, name: str):
        """Guard, correlation id and deferred events for one mutating call"""
        with self._guard.hold(name):
            with CorrelationContext(name):
                with self._events.deferred():
                    yield

    def open_position(self, caller: str, venue, *args, **kwargs) -> OpenPositionResult:
        """See PositionOpener.open"""
        with self._operation("open"):
            return self.opener.open(caller, venue, *args, **kwargs)

    def increase_position(self, caller: str, venue, *args, **kwargs) -> IncreaseLiquidityResult:
        """See PositionOpener.increase"""
        with self._operation("increase"):
            return self.opener.increase(caller, venue, *args, **kwargs)

    def close_position(self, caller: str, venue, *args, **kwargs) -> ClosePositionResult:
        """See PositionCloser.close"""
        with self._operation("close"):
            return self.closer.close(caller, venue, *args, **kwargs)

    def rebalance_position(self, caller: str, venue, *args, **kwargs) -> RebalanceResult:
        """See Rebalancer.rebalance"""
        with self._operation("rebalance"):
            return self.rebalancer.rebalance(caller, venue, *args, **kwargs)

    # =========================================================================
    # Administration
    # =========================================================================

    def set_registry_entry(
        self,
        actor: str,
        venue,
        position_registry: Optional[str] = None,
        exchange_router: Optional[str] = None,
    ) -> int:
        """Update a venue's addresses. Returns the new registry version."""
        return self._venues.set_entry(actor, venue, position_registry, exchange_router)

    def sweep_token(self, actor: str, token: str, amount: int, to: str) -> None:
        """
        Recover tokens sent to the custody account by mistake

        Raises:
            Unauthorized: actor is not the privileged actor
            InvalidParameter: Non-positive amount or zero recipient
            InsufficientFunds: Custody holds less than amount
        """
        require(self._authorize, actor, "sweep tokens")
        if amount <= 0:
            raise InvalidParameter.invalid("amount", f"must be positive, got {amount}")
        require_address(token, "token")
        if not to or is_zero_address(require_address(to, "to")):
            raise InvalidParameter.invalid("to", "zero address")

        with self._operation("sweep"):
            with self._chain.atomic():
                self._ledger.transfer(token, to, amount)
            self._events.publish(TokenSwept(token=token, amount=amount, to=to, actor=actor))
            log_with_correlation(
                logger, logging.WARNING,
                f"Swept {amount} of {token} to {to}",
                "sweep",
                actor=actor,
            )

    # =========================================================================
    # Certificate receiver
    # =========================================================================

    def on_certificate_received(self, operator: str, sender: str, token_id: int, data: bytes = b"") -> bytes:
        """Accept every inbound certificate transfer"""
        logger.debug(f"Certificate #{token_id} received from {sender} (operator {operator})")
        return ERC721_RECEIVED

    def close(self):
        """Close client connections and release resources"""
        if self._coingecko is not None:
            self._coingecko.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"PositionManager(custody={self.custody}, venues={self._venues})"


# Type hints for modules (resolved at runtime)
if TYPE_CHECKING:
    from .modules.market import PoolInspector
    from .modules.opener import PositionOpener
    from .modules.closer import PositionCloser
    from .modules.rebalance import Rebalancer
