"""
Position Closer

Full and partial withdrawals. Principal and accrued fees are always
collected straight to the caller.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..manager import PositionManager

from ..errors import InsufficientLiquidity, Unauthorized
from ..infra.tracing import log_with_correlation
from ..types import MAX_UINT128, ClosePositionResult, PositionClosed, same_address
from .custody import Custody
from .opener import validate_amounts

logger = logging.getLogger(__name__)


class PositionCloser:
    """
    Closes positions

    The certificate is taken into custody for the duration of the call,
    then burned (when emptied and requested) or returned to the caller.

    Usage:
        # Remove everything and burn the certificate
        result = manager.closer.close(caller, Venue.UNISWAP, token_id)

        # Remove half, keep the certificate
        half = manager.get_position(Venue.UNISWAP, token_id).liquidity // 2
        result = manager.closer.close(caller, Venue.UNISWAP, token_id, liquidity=half)
    """

    def __init__(self, client: "PositionManager"):
        self._client = client

    def close(
        self,
        caller: str,
        venue,
        token_id: int,
        liquidity: int = 0,
        amount0_min: int = 0,
        amount1_min: int = 0,
        burn_if_empty: bool = True,
    ) -> ClosePositionResult:
        """
        Withdraw liquidity and collect everything owed to the caller

        Args:
            caller: Certificate owner
            venue: Venue tag
            token_id: Certificate id
            liquidity: Liquidity to remove; 0 removes all of it
            amount0_min, amount1_min: Minimum principal from the decrease
            burn_if_empty: Burn the certificate when all liquidity was removed

        Returns:
            ClosePositionResult

        Raises:
            InsufficientLiquidity: Nothing to remove or more than the position holds
            Unauthorized: Caller does not own the certificate
            SlippageExceeded: Decreased amounts below the minimums
        """
        validate_amounts(liquidity=liquidity, amount0_min=amount0_min, amount1_min=amount1_min)

        endpoints = self._client.venues.resolve(venue)
        registry = endpoints.position_registry
        position = registry.positions(token_id)
        if not same_address(position.owner, caller):
            raise Unauthorized.not_approved(caller, token_id)

        to_remove = position.liquidity if liquidity == 0 else liquidity
        if to_remove <= 0 or to_remove > position.liquidity:
            raise InsufficientLiquidity.exceeds_position(token_id, to_remove, position.liquidity)

        # Burn only when the whole pre-call liquidity goes
        burn = burn_if_empty and to_remove == position.liquidity
        chain = self._client.chain

        log_with_correlation(
            logger, logging.INFO,
            f"Closing #{token_id} L={to_remove}/{position.liquidity} burn={burn}",
            "close",
            venue=endpoints.venue.value,
            token_id=token_id,
        )

        with chain.atomic() as journal:
            custody = Custody(self._client.ledger, journal, [position.token0, position.token1])
            custody.claim_certificate(registry, caller, token_id)
            registry.decrease_liquidity(token_id, to_remove, amount0_min, amount1_min, chain.deadline())
            amount0, amount1 = registry.collect(token_id, caller, MAX_UINT128, MAX_UINT128)
            if burn:
                custody.burn_certificate(registry, token_id)
            else:
                custody.release_certificate(registry, caller, token_id)
            custody.settle()

        remaining = position.liquidity - to_remove
        self._client.events.publish(PositionClosed(
            venue=endpoints.venue,
            token_id=token_id,
            liquidity=to_remove,
            amount0=amount0,
            amount1=amount1,
            burned=burn,
        ))
        log_with_correlation(
            logger, logging.INFO,
            f"Closed #{token_id}: collected ({amount0}, {amount1}), remaining L={remaining}",
            "close",
            token_id=token_id,
        )

        return ClosePositionResult(
            venue=endpoints.venue,
            token_id=token_id,
            liquidity_removed=to_remove,
            amount0=amount0,
            amount1=amount1,
            burned=burn,
            remaining_liquidity=remaining,
        )
