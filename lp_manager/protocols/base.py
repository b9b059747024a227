"""
Collaborator contracts consumed by the position manager

Each venue deployment is reached through these abstract seams so the
same lifecycle logic drives web3-backed contracts and the in-process
simulated venue.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

from ..errors import TransactionError
from ..types import MAX_UINT128, MintParams, Position, Venue, same_address

logger = logging.getLogger(__name__)

# IERC721Receiver.onERC721Received.selector
ERC721_RECEIVED = bytes.fromhex("150b7a02")

CertificateReceiver = Callable[[str, str, int, bytes], bytes]


@dataclass(frozen=True)
class PoolState:
    """Raw pool reads before token metadata is attached"""
    address: str
    token0: str
    token1: str
    fee: int
    tick_spacing: int
    liquidity: int
    sqrt_price_x96: int
    tick: int


class CustodyJournal:
    """
    Compensating actions recorded during one atomic operation

    Chains without native rollback replay these in reverse order when
    the operation fails.
    """

    def __init__(self):
        self._entries: List[Tuple[str, Callable[[], None]]] = []

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, description: str, undo: Callable[[], None]) -> None:
        self._entries.append((description, undo))

    def discard(self) -> None:
        self._entries.clear()

    def unwind(self) -> None:
        """
        Run compensations newest first

        Every compensation is attempted. If any of them fail the
        rollback is incomplete and a TransactionError is raised after
        the rest have run.
        """
        failures = []
        while self._entries:
            description, undo = self._entries.pop()
            try:
                undo()
                logger.info(f"Rolled back: {description}")
            except Exception as e:
                logger.exception(f"Rollback step failed: {description}")
                failures.append(f"{description}: {e}")
        if failures:
            raise TransactionError(
                f"Rollback incomplete ({len(failures)} step(s) failed): {'; '.join(failures)}"
            )


class Chain(ABC):
    """Clock, deadlines and atomicity of the execution environment"""

    @abstractmethod
    def now(self) -> int:
        """Current chain time (unix seconds)"""

    def deadline(self) -> int:
        """Deadline meaning 'now' for a call issued at this moment"""
        return self.now()

    @contextmanager
    def atomic(self) -> Iterator[CustodyJournal]:
        """
        All-or-nothing scope for one operation

        The default implementation unwinds the recorded compensations
        when the block raises.
        """
        journal = CustodyJournal()
        try:
            yield journal
        except BaseException:
            journal.unwind()
            raise
        journal.discard()

    def register_receiver(self, address: str, hook: CertificateReceiver) -> None:
        """Install the certificate receiver hook for a custody contract"""


class TokenLedger(ABC):
    """
    Fungible token accounts as seen from this system's custody account

    Transfers tolerate tokens that return no boolean: the absence of a
    failure signal is success.
    """

    @property
    @abstractmethod
    def custody(self) -> str:
        """Address holding tokens and certificates during an operation"""

    @abstractmethod
    def balance_of(self, token: str, account: str) -> int:
        ...

    @abstractmethod
    def allowance(self, token: str, owner: str, spender: str) -> int:
        ...

    @abstractmethod
    def transfer(self, token: str, to: str, amount: int) -> None:
        """Move tokens out of custody"""

    @abstractmethod
    def transfer_from(self, token: str, owner: str, amount: int) -> None:
        """Pull tokens from owner into custody using owner's allowance"""

    @abstractmethod
    def approve(self, token: str, spender: str, amount: int) -> None:
        """Set custody's allowance for spender"""

    @abstractmethod
    def name(self, token: str) -> str:
        """Raises MetadataUnavailable when unreadable"""

    @abstractmethod
    def symbol(self, token: str) -> str:
        """Raises MetadataUnavailable when unreadable"""

    @abstractmethod
    def decimals(self, token: str) -> int:
        """Raises MetadataUnavailable when unreadable"""


class PositionRegistry(ABC):
    """A venue's non-fungible position manager, called from custody"""

    @property
    @abstractmethod
    def address(self) -> str:
        ...

    @property
    @abstractmethod
    def venue(self) -> Venue:
        ...

    @abstractmethod
    def positions(self, token_id: int) -> Position:
        """Raises PositionNotFound for unknown or burned ids"""

    @abstractmethod
    def owner_of(self, token_id: int) -> str:
        ...

    @abstractmethod
    def get_approved(self, token_id: int) -> Optional[str]:
        """Address approved for this certificate, None when unset"""

    @abstractmethod
    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        ...

    def is_approved_or_owner(self, actor: str, token_id: int) -> bool:
        """ERC-721 authorization: owner, per-token approval or operator"""
        owner = self.owner_of(token_id)
        if same_address(actor, owner):
            return True
        approved = self.get_approved(token_id)
        if approved and same_address(actor, approved):
            return True
        return self.is_approved_for_all(owner, actor)

    @abstractmethod
    def mint(self, params: MintParams) -> Tuple[int, int, int, int]:
        """Returns (token_id, liquidity, amount0, amount1)"""

    @abstractmethod
    def increase_liquidity(
        self,
        token_id: int,
        amount0_desired: int,
        amount1_desired: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
    ) -> Tuple[int, int, int]:
        """Returns (liquidity, amount0, amount1)"""

    @abstractmethod
    def decrease_liquidity(
        self,
        token_id: int,
        liquidity: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
    ) -> Tuple[int, int]:
        """Returns (amount0, amount1) credited to the position"""

    @abstractmethod
    def collect(
        self,
        token_id: int,
        recipient: str,
        amount0_max: int = MAX_UINT128,
        amount1_max: int = MAX_UINT128,
    ) -> Tuple[int, int]:
        """Returns (amount0, amount1) sent to recipient"""

    @abstractmethod
    def burn(self, token_id: int) -> None:
        ...

    @abstractmethod
    def transfer_certificate(self, sender: str, recipient: str, token_id: int) -> None:
        """safeTransferFrom executed by custody (owner or approved operator)"""


class ExchangeRouter(ABC):
    """A venue's single-hop swap router, called from custody"""

    @property
    @abstractmethod
    def address(self) -> str:
        ...

    @property
    @abstractmethod
    def venue(self) -> Venue:
        ...

    @abstractmethod
    def exchange_exact_in(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        recipient: str,
        deadline: int,
        amount_in: int,
        min_amount_out: int,
    ) -> int:
        """Returns amount_out"""


class PoolReader(ABC):
    """Reads raw pool state"""

    @abstractmethod
    def read_pool(self, pool_address: str) -> PoolState:
        """Raises PoolUnavailable when the address is not a pool"""


class VenueConnector(ABC):
    """
    Builds the collaborators of one venue

    The venue registry decides which addresses are used; the connector
    only knows how to talk to contracts of its venue at those addresses.
    """

    @property
    @abstractmethod
    def venue(self) -> Venue:
        ...

    @abstractmethod
    def position_registry(self, address: str) -> PositionRegistry:
        ...

    @abstractmethod
    def exchange_router(self, address: str) -> ExchangeRouter:
        ...

    @abstractmethod
    def pool_reader(self) -> PoolReader:
        ...

    def default_entries(self) -> Tuple[str, str]:
        """(position registry, exchange router) addresses to seed the registry with"""
        return "", ""
