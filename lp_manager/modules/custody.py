"""
Custody of tokens and certificates during one operation

Every token or certificate that enters this system's account during an
operation is tracked here and must leave it again before the operation
commits. Each custody action records its compensation in the chain's
journal so a failed operation can hand everything back.
"""

import logging
from typing import Dict, Iterable, Set, Tuple

from ..errors import TransactionError
from ..protocols.base import CustodyJournal, PositionRegistry, TokenLedger
from ..types import MintParams

logger = logging.getLogger(__name__)


class Custody:
    """
    Transient holdings of one operation

    Balances are measured against a baseline captured before the first
    transfer, so tokens already sitting in the custody account are never
    spent and never counted as held.

    Usage:
        with chain.atomic() as journal:
            custody = Custody(ledger, journal, [token0, token1])
            custody.pull(token0, caller, amount0)
            ...
            custody.settle()
    """

    def __init__(self, ledger: TokenLedger, journal: CustodyJournal, tokens: Iterable[str]):
        self._ledger = ledger
        self._journal = journal
        self._baseline: Dict[str, int] = {}
        self._tokens: Dict[str, str] = {}
        # (registry address, token id) of certificates currently held
        self._certificates: Set[Tuple[str, int]] = set()
        for token in tokens:
            self.track(token)

    @property
    def address(self) -> str:
        return self._ledger.custody

    def track(self, token: str) -> None:
        key = token.lower()
        if key not in self._baseline:
            self._tokens[key] = token
            self._baseline[key] = self._ledger.balance_of(token, self.address)

    def held(self, token: str) -> int:
        """Balance acquired during this operation"""
        self.track(token)
        return self._ledger.balance_of(token, self.address) - self._baseline[token.lower()]

    # =========================================================================
    # Tokens
    # =========================================================================

    def pull(self, token: str, owner: str, amount: int) -> None:
        """Move amount from owner into custody using owner's allowance"""
        if amount <= 0:
            return
        self.track(token)
        self._ledger.transfer_from(token, owner, amount)
        self.credit(token, owner, amount)

    def credit(self, token: str, owner: str, amount: int) -> None:
        """Record that up to amount of token held in custody belongs to owner"""
        if amount <= 0:
            return

        def refund():
            refundable = min(amount, self.held(token))
            if refundable > 0:
                self._ledger.transfer(token, owner, refundable)

        self._journal.record(f"refund {amount} of {token} to {owner}", refund)

    def push(self, token: str, to: str, amount: int) -> None:
        if amount <= 0:
            return
        self._ledger.transfer(token, to, amount)

    def grant(self, token: str, spender: str, amount: int) -> None:
        """Approve spender for exactly amount; the approval is reset on rollback"""
        self._ledger.approve(token, spender, amount)
        self._journal.record(
            f"revoke {spender} on {token}",
            lambda: self._ledger.approve(token, spender, 0),
        )

    def revoke(self, token: str, spender: str) -> None:
        self._ledger.approve(token, spender, 0)

    # =========================================================================
    # Certificates
    # =========================================================================

    def claim_certificate(self, registry: PositionRegistry, owner: str, token_id: int) -> None:
        """Take the certificate from owner; it goes back to owner on rollback"""
        registry.transfer_certificate(owner, self.address, token_id)
        key = (registry.address.lower(), token_id)
        self._certificates.add(key)

        def give_back():
            if key in self._certificates:
                registry.transfer_certificate(self.address, owner, token_id)
                self._certificates.discard(key)
            else:
                logger.warning(f"Certificate #{token_id} no longer held, cannot be returned to {owner}")

        self._journal.record(f"return certificate #{token_id} to {owner}", give_back)

    def release_certificate(self, registry: PositionRegistry, to: str, token_id: int) -> None:
        registry.transfer_certificate(self.address, to, token_id)
        self._certificates.discard((registry.address.lower(), token_id))

    def burn_certificate(self, registry: PositionRegistry, token_id: int) -> None:
        registry.burn(token_id)
        self._certificates.discard((registry.address.lower(), token_id))

    # =========================================================================
    # Venue calls funded from custody
    # =========================================================================

    def mint(self, registry: PositionRegistry, params: MintParams, refund_to: str) -> Tuple[int, int, int, int, int, int]:
        """
        Mint from custody: grant, mint, refund the unconsumed remainder, revoke

        Returns:
            (token_id, liquidity, amount0, amount1, refund0, refund1)
        """
        self.grant(params.token0, registry.address, params.amount0_desired)
        self.grant(params.token1, registry.address, params.amount1_desired)

        token_id, liquidity, amount0, amount1 = registry.mint(params)

        refund0 = params.amount0_desired - amount0
        refund1 = params.amount1_desired - amount1
        self.push(params.token0, refund_to, refund0)
        self.push(params.token1, refund_to, refund1)
        self.revoke(params.token0, registry.address)
        self.revoke(params.token1, registry.address)
        return token_id, liquidity, amount0, amount1, refund0, refund1

    def increase(
        self,
        registry: PositionRegistry,
        token_id: int,
        token0: str,
        token1: str,
        amount0_desired: int,
        amount1_desired: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
        refund_to: str,
    ) -> Tuple[int, int, int, int, int]:
        """
        increaseLiquidity from custody with the same grant/refund/revoke discipline

        Returns:
            (liquidity, amount0, amount1, refund0, refund1)
        """
        self.grant(token0, registry.address, amount0_desired)
        self.grant(token1, registry.address, amount1_desired)

        liquidity, amount0, amount1 = registry.increase_liquidity(
            token_id, amount0_desired, amount1_desired, amount0_min, amount1_min, deadline
        )

        refund0 = amount0_desired - amount0
        refund1 = amount1_desired - amount1
        self.push(token0, refund_to, refund0)
        self.push(token1, refund_to, refund1)
        self.revoke(token0, registry.address)
        self.revoke(token1, registry.address)
        return liquidity, amount0, amount1, refund0, refund1

    # =========================================================================
    # Commit
    # =========================================================================

    def settle(self) -> None:
        """
        Verify custody is back to its baseline

        Raises:
            TransactionError: A token balance differs from its baseline or a
                certificate is still held
        """
        for key, token in self._tokens.items():
            actual = self._ledger.balance_of(token, self.address)
            if actual != self._baseline[key]:
                logger.error(f"Custody imbalance on {token}: {actual} != {self._baseline[key]}")
                raise TransactionError.custody_imbalance(token, self._baseline[key], actual)
        if self._certificates:
            held = ", ".join(f"#{token_id}" for _, token_id in sorted(self._certificates))
            raise TransactionError(f"Certificate(s) left in custody: {held}")
