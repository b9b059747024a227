"""
Position Opener

Mints new positions and adds capital to existing ones from caller funds
routed through custody.
"""

import logging
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..manager import PositionManager

from ..errors import InvalidParameter, Unauthorized
from ..infra.tracing import log_with_correlation
from ..types import (
    IncreaseLiquidityResult,
    MintParams,
    OpenPositionResult,
    PositionIncreased,
    PositionOpened,
    Venue,
)
from .custody import Custody

logger = logging.getLogger(__name__)


def validate_range(tick_lower: int, tick_upper: int) -> None:
    if tick_lower >= tick_upper:
        raise InvalidParameter.invalid("tick_lower", f"{tick_lower} must be below tick_upper {tick_upper}")


def validate_amounts(**amounts: int) -> None:
    for name, value in amounts.items():
        if value < 0:
            raise InvalidParameter.invalid(name, f"must be non-negative, got {value}")


class PositionOpener:
    """
    Opens positions

    Funds are pulled from the caller into custody, the position registry
    is approved for exactly the desired amounts, the unconsumed remainder
    is refunded and the approvals are reset to zero.

    Usage:
        result = manager.opener.open(
            caller, Venue.UNISWAP, weth, usdc, 3000,
            tick_lower=-600, tick_upper=600,
            amount0_desired=10**18, amount1_desired=2_000 * 10**6,
        )
        print(result.token_id, result.liquidity)
    """

    def __init__(self, client: "PositionManager"):
        self._client = client

    def open(
        self,
        caller: str,
        venue,
        token0: str,
        token1: str,
        fee: int,
        tick_lower: int,
        tick_upper: int,
        amount0_desired: int,
        amount1_desired: int,
        amount0_min: int = 0,
        amount1_min: int = 0,
        recipient: Optional[str] = None,
        deadline: Optional[int] = None,
    ) -> OpenPositionResult:
        """
        Mint a position from the caller's tokens

        Args:
            caller: Account funding the position
            venue: Venue tag
            token0, token1: Pair in canonical order (token0 < token1)
            fee: Fee tier
            tick_lower, tick_upper: Range, aligned to the pool's tick spacing
            amount0_desired, amount1_desired: Maximum amounts to deposit
            amount0_min, amount1_min: Minimum amounts the venue must consume
            recipient: Owner of the new certificate (default: caller)
            deadline: Unix time after which the mint must fail (default: now)

        Returns:
            OpenPositionResult

        Raises:
            InvalidParameter: Bad range or negative amounts
            ConfigurationError: Venue registry entry unset
            SlippageExceeded: Consumed amounts below the minimums
            DeadlineExpired: Deadline elapsed
        """
        validate_range(tick_lower, tick_upper)
        validate_amounts(
            amount0_desired=amount0_desired,
            amount1_desired=amount1_desired,
            amount0_min=amount0_min,
            amount1_min=amount1_min,
        )

        endpoints = self._client.venues.resolve(venue)
        registry = endpoints.position_registry
        chain = self._client.chain
        recipient = recipient or caller
        deadline = chain.deadline() if deadline is None else deadline

        params = MintParams(
            token0=token0,
            token1=token1,
            fee=fee,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
            amount0_desired=amount0_desired,
            amount1_desired=amount1_desired,
            amount0_min=amount0_min,
            amount1_min=amount1_min,
            recipient=recipient,
            deadline=deadline,
        )

        log_with_correlation(
            logger, logging.INFO,
            f"Opening {endpoints.venue.value} position [{tick_lower}, {tick_upper}) "
            f"desired=({amount0_desired}, {amount1_desired})",
            "open",
            venue=endpoints.venue.value,
        )

        with chain.atomic() as journal:
            custody = Custody(self._client.ledger, journal, [token0, token1])
            custody.pull(token0, caller, amount0_desired)
            custody.pull(token1, caller, amount1_desired)
            token_id, liquidity, amount0, amount1, refund0, refund1 = custody.mint(registry, params, caller)
            custody.settle()

        self._client.events.publish(PositionOpened(
            venue=endpoints.venue,
            token_id=token_id,
            liquidity=liquidity,
            amount0=amount0,
            amount1=amount1,
            recipient=recipient,
        ))
        log_with_correlation(
            logger, logging.INFO,
            f"Opened #{token_id} L={liquidity} used=({amount0}, {amount1}) refund=({refund0}, {refund1})",
            "open",
            token_id=token_id,
        )

        return OpenPositionResult(
            venue=endpoints.venue,
            token_id=token_id,
            liquidity=liquidity,
            amount0=amount0,
            amount1=amount1,
            refund0=refund0,
            refund1=refund1,
        )

    def increase(
        self,
        caller: str,
        venue,
        token_id: int,
        amount0_desired: int,
        amount1_desired: int,
        amount0_min: int = 0,
        amount1_min: int = 0,
        deadline: Optional[int] = None,
    ) -> IncreaseLiquidityResult:
        """
        Add the caller's tokens to an existing position

        The certificate stays with its owner; the caller must own it or
        be approved for it.

        Raises:
            Unauthorized: Caller is neither owner nor approved
            PositionNotFound: Unknown or burned certificate
        """
        validate_amounts(
            amount0_desired=amount0_desired,
            amount1_desired=amount1_desired,
            amount0_min=amount0_min,
            amount1_min=amount1_min,
        )

        endpoints = self._client.venues.resolve(venue)
        registry = endpoints.position_registry
        position = registry.positions(token_id)
        if not registry.is_approved_or_owner(caller, token_id):
            raise Unauthorized.not_approved(caller, token_id)

        chain = self._client.chain
        deadline = chain.deadline() if deadline is None else deadline

        with chain.atomic() as journal:
            custody = Custody(self._client.ledger, journal, [position.token0, position.token1])
            custody.pull(position.token0, caller, amount0_desired)
            custody.pull(position.token1, caller, amount1_desired)
            liquidity, amount0, amount1, refund0, refund1 = custody.increase(
                registry,
                token_id,
                position.token0,
                position.token1,
                amount0_desired,
                amount1_desired,
                amount0_min,
                amount1_min,
                deadline,
                refund_to=caller,
            )
            custody.settle()

        self._client.events.publish(PositionIncreased(
            venue=endpoints.venue,
            token_id=token_id,
            liquidity=liquidity,
            amount0=amount0,
            amount1=amount1,
        ))
        log_with_correlation(
            logger, logging.INFO,
            f"Increased #{token_id} by L={liquidity} used=({amount0}, {amount1})",
            "increase",
            token_id=token_id,
        )

        return IncreaseLiquidityResult(
            venue=endpoints.venue,
            token_id=token_id,
            liquidity_added=liquidity,
            amount0=amount0,
            amount1=amount1,
            refund0=refund0,
            refund1=refund1,
        )
