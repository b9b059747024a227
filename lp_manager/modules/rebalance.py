"""
Rebalancer

Moves a position to a new tick range in one all-or-nothing operation:
withdraw everything into custody, burn the old certificate, optionally
exchange part of the proceeds, and mint the new position to the caller.
"""

import logging
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..manager import PositionManager

from ..errors import ConfigurationError, EmptyPosition, InsufficientFunds, InvalidParameter, Unauthorized
from ..infra.tracing import log_with_correlation
from ..protocols.base import ExchangeRouter
from ..types import (
    MAX_UINT128,
    ZERO_ADDRESS,
    ExchangeExecuted,
    ExchangeResult,
    MintParams,
    Position,
    PositionRebalanced,
    RebalanceResult,
    Venue,
    is_zero_address,
    require_address,
    same_address,
)
from .custody import Custody
from .opener import validate_amounts, validate_range

logger = logging.getLogger(__name__)

ROUTING_ALTERNATE = "alternate"
ROUTING_SAME = "same"


class Rebalancer:
    """
    Rebalances positions

    Phases, all inside one atomic block:
    1. Claim the certificate (position must hold liquidity)
    2. Decrease all liquidity with zero minimums, collect into custody
    3. Burn the emptied certificate
    4. Optional exact-input exchange on the exchange venue
    5. Mint the held balances into the new range for the caller,
       refund the remainder, reset approvals

    The exchange venue is the position's alternate venue unless
    REBALANCE_EXCHANGE_ROUTING=same.

    Usage:
        result = manager.rebalancer.rebalance(
            caller, Venue.UNISWAP, token_id, -1200, 1200,
            exchange_from=weth, exchange_to=usdc, exchange_amount=10**17,
        )
    """

    def __init__(self, client: "PositionManager"):
        self._client = client

    def exchange_venue(self, venue: Venue) -> Venue:
        routing = self._client.config.manager.rebalance_exchange_routing.lower()
        if routing == ROUTING_ALTERNATE:
            return venue.alternate()
        if routing == ROUTING_SAME:
            return venue
        raise ConfigurationError.invalid(
            "REBALANCE_EXCHANGE_ROUTING", f"expected '{ROUTING_ALTERNATE}' or '{ROUTING_SAME}', got '{routing}'"
        )

    def rebalance(
        self,
        caller: str,
        venue,
        token_id: int,
        tick_lower: int,
        tick_upper: int,
        exchange_from: str = ZERO_ADDRESS,
        exchange_to: str = ZERO_ADDRESS,
        exchange_amount: int = 0,
        exchange_min_out: int = 0,
        exchange_fee: int = 0,
    ) -> RebalanceResult:
        """
        Relocate a position to [tick_lower, tick_upper)

        The exchange leg runs only when exchange_from, exchange_to and
        exchange_amount are all non-zero.

        Args:
            caller: Certificate owner; receives the new certificate and refunds
            venue: Home venue of the position
            token_id: Certificate to rebalance
            tick_lower, tick_upper: New range
            exchange_from: Token to sell from the withdrawn proceeds
            exchange_to: Token to buy
            exchange_amount: Exact input amount
            exchange_min_out: Minimum output
            exchange_fee: Fee tier of the exchange pool (0: the position's fee tier,
                only when the exchange runs on the home venue)

        Returns:
            RebalanceResult

        Raises:
            EmptyPosition: Position holds no liquidity
            RouterUnavailable: Exchange requested and the exchange venue has no router
            InvalidParameter: Bad range, exchange tokens outside the position's pair,
                or no exchange_fee for an exchange on the other venue
            SlippageExceeded, DeadlineExpired: Propagated from the venue calls
        """
        validate_range(tick_lower, tick_upper)
        validate_amounts(
            exchange_amount=exchange_amount,
            exchange_min_out=exchange_min_out,
            exchange_fee=exchange_fee,
        )

        endpoints = self._client.venues.resolve(venue)
        registry = endpoints.position_registry
        position = registry.positions(token_id)
        if position.liquidity == 0:
            raise EmptyPosition.no_liquidity(str(token_id))
        if not same_address(position.owner, caller):
            raise Unauthorized.not_approved(caller, token_id)

        if exchange_from:
            require_address(exchange_from, "exchange_from")
        if exchange_to:
            require_address(exchange_to, "exchange_to")
        exchange_requested = not (
            is_zero_address(exchange_from) or is_zero_address(exchange_to) or exchange_amount == 0
        )
        router: Optional[ExchangeRouter] = None
        if exchange_requested:
            self._validate_exchange_pair(position, exchange_from, exchange_to)
            target = self.exchange_venue(endpoints.venue)
            if exchange_fee == 0:
                # The position's fee tier only names a pool on its own venue
                if target is not endpoints.venue:
                    raise InvalidParameter.invalid(
                        "exchange_fee", f"required when exchanging on {target.value}"
                    )
                exchange_fee = position.fee
            # Fail before any custody action when the router is missing
            router = self._client.venues.resolve_router(target)

        chain = self._client.chain
        log_with_correlation(
            logger, logging.INFO,
            f"Rebalancing #{token_id} [{position.tick_lower}, {position.tick_upper}) -> "
            f"[{tick_lower}, {tick_upper}) exchange={exchange_requested}",
            "rebalance",
            venue=endpoints.venue.value,
            token_id=token_id,
        )

        with chain.atomic() as journal:
            custody = Custody(self._client.ledger, journal, [position.token0, position.token1])

            # 1. Claim
            custody.claim_certificate(registry, caller, token_id)

            # 2. Full withdrawal into custody
            registry.decrease_liquidity(token_id, position.liquidity, 0, 0, chain.deadline())
            withdrawn0, withdrawn1 = registry.collect(token_id, custody.address, MAX_UINT128, MAX_UINT128)
            custody.credit(position.token0, caller, withdrawn0)
            custody.credit(position.token1, caller, withdrawn1)

            # 3. Burn
            custody.burn_certificate(registry, token_id)

            # 4. Exchange
            exchange = None
            if router is not None:
                exchange = self._exchange(
                    custody, router, exchange_from, exchange_to, exchange_fee, exchange_amount, exchange_min_out
                )

            # 5. Re-open from everything held
            params = MintParams(
                token0=position.token0,
                token1=position.token1,
                fee=position.fee,
                tick_lower=tick_lower,
                tick_upper=tick_upper,
                amount0_desired=custody.held(position.token0),
                amount1_desired=custody.held(position.token1),
                amount0_min=0,
                amount1_min=0,
                recipient=caller,
                deadline=chain.deadline(),
            )
            new_token_id, new_liquidity, amount0, amount1, refund0, refund1 = custody.mint(registry, params, caller)
            custody.settle()

        if exchange is not None:
            self._client.events.publish(ExchangeExecuted(
                venue=exchange.venue,
                token_in=exchange.token_in,
                token_out=exchange.token_out,
                amount_in=exchange.amount_in,
                amount_out=exchange.amount_out,
            ))
        self._client.events.publish(PositionRebalanced(
            venue=endpoints.venue,
            old_token_id=token_id,
            new_token_id=new_token_id,
            new_liquidity=new_liquidity,
        ))
        log_with_correlation(
            logger, logging.INFO,
            f"Rebalanced #{token_id} -> #{new_token_id} L={new_liquidity} "
            f"used=({amount0}, {amount1}) refund=({refund0}, {refund1})",
            "rebalance",
            token_id=new_token_id,
        )

        return RebalanceResult(
            venue=endpoints.venue,
            old_token_id=token_id,
            new_token_id=new_token_id,
            new_liquidity=new_liquidity,
            withdrawn0=withdrawn0,
            withdrawn1=withdrawn1,
            amount0=amount0,
            amount1=amount1,
            refund0=refund0,
            refund1=refund1,
            exchange=exchange,
        )

    @staticmethod
    def _validate_exchange_pair(position: Position, exchange_from: str, exchange_to: str) -> None:
        pair = {position.token0.lower(), position.token1.lower()}
        if exchange_from.lower() not in pair or exchange_to.lower() not in pair:
            raise InvalidParameter.invalid("exchange_from/exchange_to", "must be the position's token pair")
        if same_address(exchange_from, exchange_to):
            raise InvalidParameter.invalid("exchange_to", "must differ from exchange_from")

    def _exchange(
        self,
        custody: Custody,
        router: ExchangeRouter,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
        min_out: int,
    ) -> ExchangeResult:
        held = custody.held(token_in)
        if amount_in > held:
            raise InsufficientFunds.token_balance(token_in, amount_in, held)

        custody.grant(token_in, router.address, amount_in)
        amount_out = router.exchange_exact_in(
            token_in,
            token_out,
            fee,
            custody.address,
            self._client.chain.deadline(),
            amount_in,
            min_out,
        )
        custody.revoke(token_in, router.address)

        log_with_correlation(
            logger, logging.INFO,
            f"Exchanged {amount_in} {token_in} -> {amount_out} {token_out} on {router.venue.value}",
            "rebalance",
        )
        return ExchangeResult(
            venue=router.venue,
            token_in=token_in,
            token_out=token_out,
            fee=fee,
            amount_in=amount_in,
            amount_out=amount_out,
        )
