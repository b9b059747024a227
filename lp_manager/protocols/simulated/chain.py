"""
In-process chain for simulated venues

All mutable state lives in one SimulatedState object so atomic() can
snapshot it and restore it wholesale when an operation fails.
"""

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

from web3 import Web3

from ..base import Chain, CustodyJournal, CertificateReceiver, ERC721_RECEIVED, TokenLedger
from ...errors import InsufficientFunds, MetadataUnavailable, TransactionError
from ...types import Venue

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1

TransferHook = Callable[[str, str, str, int], None]


def _k(address: str) -> str:
    return address.lower()


@dataclass
class TokenSpec:
    address: str
    name: str
    symbol: str
    decimals: int
    # Metadata fields whose reads revert ("name", "symbol", "decimals")
    broken: FrozenSet[str] = frozenset()


@dataclass
class SimPool:
    address: str
    venue: Venue
    token0: str
    token1: str
    fee: int
    tick_spacing: int
    sqrt_price_x96: int
    tick: int
    liquidity: int = 0


@dataclass
class SimPosition:
    pool: str
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    liquidity: int = 0
    tokens_owed0: int = 0
    tokens_owed1: int = 0


@dataclass
class RegistryState:
    address: str
    venue: Venue
    next_id: int = 1
    positions: Dict[int, SimPosition] = field(default_factory=dict)
    owners: Dict[int, str] = field(default_factory=dict)
    token_approvals: Dict[int, str] = field(default_factory=dict)
    # (owner, operator) pairs, lowercase
    operators: Set[Tuple[str, str]] = field(default_factory=set)


@dataclass
class SimulatedState:
    timestamp: int
    tokens: Dict[str, TokenSpec] = field(default_factory=dict)
    balances: Dict[str, Dict[str, int]] = field(default_factory=dict)
    allowances: Dict[str, Dict[Tuple[str, str], int]] = field(default_factory=dict)
    pools: Dict[str, SimPool] = field(default_factory=dict)
    pool_index: Dict[Tuple[Venue, str, str, int], str] = field(default_factory=dict)
    registries: Dict[str, RegistryState] = field(default_factory=dict)
    routers: Dict[str, Venue] = field(default_factory=dict)
    contracts: Set[str] = field(default_factory=set)


class SimulatedChain(Chain):
    """
    Deterministic single-process chain

    Usage:
        chain = SimulatedChain()
        weth = chain.create_token("WETH", 18)
        chain.mint_tokens(weth, alice, 10**18)
        with chain.atomic():
            ...   # state restored if the block raises
    """

    def __init__(self, start_time: int = 1_700_000_000, custody: Optional[str] = None):
        self.state = SimulatedState(timestamp=start_time)
        self._receivers: Dict[str, CertificateReceiver] = {}
        self._transfer_hooks: Dict[str, List[TransferHook]] = {}
        self._address_nonce = 0
        self._atomic_depth = 0
        self.custody = custody or self.new_address("custody")
        # Custody is a contract: inbound certificates need an acknowledgement
        self.state.contracts.add(_k(self.custody))
        self.ledger = SimulatedTokenLedger(self)

    # =========================================================================
    # Clock and atomicity
    # =========================================================================

    def now(self) -> int:
        return self.state.timestamp

    def advance(self, seconds: int) -> int:
        self.state.timestamp += seconds
        return self.state.timestamp

    @contextmanager
    def atomic(self) -> Iterator[CustodyJournal]:
        """Snapshot the full state and restore it if the block raises"""
        if self._atomic_depth:
            yield CustodyJournal()
            return
        snapshot = copy.deepcopy(self.state)
        self._atomic_depth += 1
        try:
            yield CustodyJournal()
        except BaseException:
            self.state = snapshot
            logger.debug("Simulated state restored after failed operation")
            raise
        finally:
            self._atomic_depth -= 1

    def new_address(self, label: str = "") -> str:
        self._address_nonce += 1
        digest = Web3.keccak(text=f"simulated:{self._address_nonce}:{label}")
        return Web3.to_checksum_address("0x" + bytes(digest[-20:]).hex())

    def mark_contract(self, address: str) -> None:
        self.state.contracts.add(_k(address))

    def is_contract(self, address: str) -> bool:
        return _k(address) in self.state.contracts

    # =========================================================================
    # Certificate receivers
    # =========================================================================

    def register_receiver(self, address: str, hook: CertificateReceiver) -> None:
        self._receivers[_k(address)] = hook
        self.mark_contract(address)

    def deliver_certificate(self, operator: str, sender: str, recipient: str, token_id: int) -> None:
        """safeTransferFrom acknowledgement check for contract recipients"""
        if not self.is_contract(recipient):
            return
        hook = self._receivers.get(_k(recipient))
        if hook is None or hook(operator, sender, token_id, b"") != ERC721_RECEIVED:
            raise TransactionError.simulation_failed(
                "ERC721: transfer to non ERC721Receiver implementer"
            )

    # =========================================================================
    # Tokens
    # =========================================================================

    def create_token(
        self,
        symbol: str,
        decimals: int = 18,
        name: Optional[str] = None,
        broken: Iterable[str] = (),
    ) -> str:
        address = self.new_address(f"token:{symbol}")
        self.state.tokens[_k(address)] = TokenSpec(
            address=address,
            name=name if name is not None else symbol,
            symbol=symbol,
            decimals=decimals,
            broken=frozenset(broken),
        )
        self.mark_contract(address)
        return address

    def token_field(self, token: str, field_name: str):
        spec = self.state.tokens.get(_k(token))
        if spec is None or field_name in spec.broken:
            raise MetadataUnavailable.unreadable(token, field_name)
        return getattr(spec, field_name)

    def on_transfer(self, token: str, hook: TransferHook) -> None:
        """Call hook(token, sender, recipient, amount) after every transfer of token"""
        self._transfer_hooks.setdefault(_k(token), []).append(hook)

    def mint_tokens(self, token: str, to: str, amount: int) -> None:
        balances = self.state.balances.setdefault(_k(token), {})
        balances[_k(to)] = balances.get(_k(to), 0) + amount

    def balance_of(self, token: str, account: str) -> int:
        return self.state.balances.get(_k(token), {}).get(_k(account), 0)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self.state.allowances.get(_k(token), {}).get((_k(owner), _k(spender)), 0)

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        self.state.allowances.setdefault(_k(token), {})[(_k(owner), _k(spender))] = amount

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("negative transfer")
        balances = self.state.balances.setdefault(_k(token), {})
        available = balances.get(_k(sender), 0)
        if available < amount:
            raise InsufficientFunds.token_balance(token, amount, available)
        balances[_k(sender)] = available - amount
        balances[_k(recipient)] = balances.get(_k(recipient), 0) + amount
        for hook in list(self._transfer_hooks.get(_k(token), [])):
            hook(token, sender, recipient, amount)

    def transfer_from(self, token: str, spender: str, owner: str, recipient: str, amount: int) -> None:
        allowed = self.allowance(token, owner, spender)
        if allowed < amount:
            raise InsufficientFunds.allowance(token, amount, allowed)
        if allowed != MAX_UINT256:
            self.approve(token, owner, spender, allowed - amount)
        self.transfer(token, owner, recipient, amount)


class SimulatedTokenLedger(TokenLedger):
    """TokenLedger acting as the simulated chain's custody account"""

    def __init__(self, chain: SimulatedChain):
        self._chain = chain

    @property
    def custody(self) -> str:
        return self._chain.custody

    def balance_of(self, token: str, account: str) -> int:
        return self._chain.balance_of(token, account)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._chain.allowance(token, owner, spender)

    def transfer(self, token: str, to: str, amount: int) -> None:
        self._chain.transfer(token, self.custody, to, amount)

    def transfer_from(self, token: str, owner: str, amount: int) -> None:
        self._chain.transfer_from(token, self.custody, owner, self.custody, amount)

    def approve(self, token: str, spender: str, amount: int) -> None:
        self._chain.approve(token, self.custody, spender, amount)

    def name(self, token: str) -> str:
        return self._chain.token_field(token, "name")

    def symbol(self, token: str) -> str:
        return self._chain.token_field(token, "symbol")

    def decimals(self, token: str) -> int:
        return self._chain.token_field(token, "decimals")
