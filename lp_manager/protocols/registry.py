"""
Venue registry

Versioned configuration store mapping each venue tag to the position
registry and exchange router it should use. Read by every operation,
written only by the privileged actor.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, TYPE_CHECKING

from web3 import Web3

if TYPE_CHECKING:
    from ..infra.events import EventBus

from .base import ExchangeRouter, PoolReader, PositionRegistry, VenueConnector
from ..errors import ConfigurationError, RouterUnavailable
from ..infra.access import Authorization, require
from ..types import RegistryUpdated, Venue, is_zero_address

logger = logging.getLogger(__name__)

POSITION_REGISTRY = "position_registry"
EXCHANGE_ROUTER = "exchange_router"


@dataclass(frozen=True)
class VenueEndpoints:
    """Resolved collaborators for one venue"""
    venue: Venue
    position_registry: PositionRegistry
    exchange_router: Optional[ExchangeRouter]
    version: int


class VenueRegistry:
    """
    Maps venue tags to concrete position registry and exchange router

    Usage:
        registry = VenueRegistry(connectors, authorize=OwnerOnly(owner))
        endpoints = registry.resolve(Venue.UNISWAP)
        registry.set_exchange_router(owner, Venue.PANCAKESWAP, "0x...")
    """

    def __init__(
        self,
        connectors: Dict[Venue, VenueConnector],
        authorize: Authorization,
        events: Optional["EventBus"] = None,
        entries: Optional[Dict[Venue, Tuple[str, str]]] = None,
    ):
        """
        Args:
            connectors: Connector per venue tag
            authorize: Capability check for administrative writes
            events: Bus receiving RegistryUpdated notifications
            entries: Initial (position registry, exchange router) per venue;
                defaults to each connector's deployment table
        """
        self._connectors = dict(connectors)
        self._authorize = authorize
        self._events = events
        self._lock = threading.Lock()
        self._version = 0
        self._entries: Dict[Venue, Dict[str, str]] = {
            venue: {POSITION_REGISTRY: "", EXCHANGE_ROUTER: ""} for venue in Venue
        }
        self._registries: Dict[Tuple[Venue, str], PositionRegistry] = {}
        self._routers: Dict[Tuple[Venue, str], ExchangeRouter] = {}

        if entries is None:
            entries = {venue: conn.default_entries() for venue, conn in self._connectors.items()}
        for venue, (registry_address, router_address) in entries.items():
            venue = Venue.parse(venue)
            if registry_address:
                self._entries[venue][POSITION_REGISTRY] = self._validate(venue, POSITION_REGISTRY, registry_address)
            if router_address:
                self._entries[venue][EXCHANGE_ROUTER] = self._validate(venue, EXCHANGE_ROUTER, router_address)

        logger.debug(f"VenueRegistry seeded: {self.entries()}")

    @property
    def version(self) -> int:
        """Incremented on every administrative write"""
        return self._version

    def entries(self) -> Dict[str, Dict[str, str]]:
        """Copy of the current configuration keyed by venue name"""
        with self._lock:
            return {venue.value: dict(entry) for venue, entry in self._entries.items()}

    def connector(self, venue) -> VenueConnector:
        venue = Venue.parse(venue)
        if venue not in self._connectors:
            raise ConfigurationError.missing(f"{venue.value} connector")
        return self._connectors[venue]

    # =========================================================================
    # Lookup
    # =========================================================================

    def resolve(self, venue, require_router: bool = False) -> VenueEndpoints:
        """
        Resolve the collaborators of a venue

        Args:
            venue: Venue tag
            require_router: Also fail when the exchange router is unset

        Raises:
            ConfigurationError: Position registry unset for the venue
            RouterUnavailable: require_router and exchange router unset
        """
        venue = Venue.parse(venue)
        with self._lock:
            registry_address = self._entries[venue][POSITION_REGISTRY]
            router_address = self._entries[venue][EXCHANGE_ROUTER]
            version = self._version

        if not registry_address:
            raise ConfigurationError.missing(f"{venue.value} position registry")
        if require_router and not router_address:
            raise RouterUnavailable.unset(venue.value)

        return VenueEndpoints(
            venue=venue,
            position_registry=self._position_registry(venue, registry_address),
            exchange_router=self._exchange_router(venue, router_address) if router_address else None,
            version=version,
        )

    def resolve_router(self, venue) -> ExchangeRouter:
        """
        Resolve only the exchange router of a venue

        Raises:
            RouterUnavailable: Exchange router unset for the venue
        """
        venue = Venue.parse(venue)
        with self._lock:
            router_address = self._entries[venue][EXCHANGE_ROUTER]
        if not router_address:
            raise RouterUnavailable.unset(venue.value)
        return self._exchange_router(venue, router_address)

    def pool_reader(self, venue) -> PoolReader:
        return self.connector(venue).pool_reader()

    def _position_registry(self, venue: Venue, address: str) -> PositionRegistry:
        key = (venue, address)
        if key not in self._registries:
            self._registries[key] = self.connector(venue).position_registry(address)
        return self._registries[key]

    def _exchange_router(self, venue: Venue, address: str) -> ExchangeRouter:
        key = (venue, address)
        if key not in self._routers:
            self._routers[key] = self.connector(venue).exchange_router(address)
        return self._routers[key]

    # =========================================================================
    # Administration
    # =========================================================================

    def set_position_registry(self, actor: str, venue, address: str) -> int:
        """Point a venue at a new position registry. Returns the new version."""
        return self._write(actor, venue, POSITION_REGISTRY, address)

    def set_exchange_router(self, actor: str, venue, address: str) -> int:
        """Point a venue at a new exchange router. Returns the new version."""
        return self._write(actor, venue, EXCHANGE_ROUTER, address)

    def set_entry(
        self,
        actor: str,
        venue,
        position_registry: Optional[str] = None,
        exchange_router: Optional[str] = None,
    ) -> int:
        """
        Update one or both addresses of a venue

        Both addresses are validated before either is written.
        """
        if position_registry is None and exchange_router is None:
            raise ConfigurationError.missing("position_registry or exchange_router")
        require(self._authorize, actor, "update the venue registry")
        venue = Venue.parse(venue)
        if position_registry is not None:
            self._validate(venue, POSITION_REGISTRY, position_registry)
        if exchange_router is not None:
            self._validate(venue, EXCHANGE_ROUTER, exchange_router)

        version = self._version
        if position_registry is not None:
            version = self._write(actor, venue, POSITION_REGISTRY, position_registry)
        if exchange_router is not None:
            version = self._write(actor, venue, EXCHANGE_ROUTER, exchange_router)
        return version

    def _write(self, actor: str, venue, entry: str, address: str) -> int:
        require(self._authorize, actor, "update the venue registry")
        venue = Venue.parse(venue)
        address = self._validate(venue, entry, address)

        with self._lock:
            previous = self._entries[venue][entry] or None
            self._entries[venue][entry] = address
            self._version += 1
            version = self._version

        logger.info(f"Venue registry v{version}: {venue.value}.{entry} {previous} -> {address} (by {actor})")
        if self._events is not None:
            self._events.publish(RegistryUpdated(
                venue=venue,
                entry=entry,
                previous=previous,
                address=address,
                version=version,
                actor=actor,
            ))
        return version

    @staticmethod
    def _validate(venue: Venue, entry: str, address: str) -> str:
        param = f"{venue.value}.{entry}"
        if not isinstance(address, str) or not Web3.is_address(address):
            raise ConfigurationError.invalid(param, f"not an address: {address!r}")
        if is_zero_address(address):
            raise ConfigurationError.invalid(param, "zero address")
        return Web3.to_checksum_address(address)

    def __repr__(self) -> str:
        return f"VenueRegistry(version={self._version}, venues={[v.value for v in self._connectors]})"
