"""
Simulated V3 venue: position registry, exchange router and pools

Follows the NonfungiblePositionManager / SwapRouter call semantics,
including revert conditions, against a SimulatedChain.
"""

import logging
from typing import Optional, Tuple

from ..base import ExchangeRouter, PoolReader, PoolState, PositionRegistry, VenueConnector
from ..uniswap.api import TICK_SPACING_BY_FEE as UNISWAP_TICK_SPACING
from ..pancakeswap.api import TICK_SPACING_BY_FEE as PANCAKESWAP_TICK_SPACING
from ...errors import (
    DeadlineExpired,
    InsufficientLiquidity,
    InvalidParameter,
    PoolUnavailable,
    PositionNotFound,
    SlippageExceeded,
    TransactionError,
    Unauthorized,
)
from ...types import MAX_UINT128, MintParams, Position, Venue, same_address, sort_tokens
from . import math as clmath
from .chain import RegistryState, SimPool, SimPosition, SimulatedChain, _k

logger = logging.getLogger(__name__)

DEFAULT_TICK_SPACING = {
    Venue.UNISWAP: UNISWAP_TICK_SPACING,
    Venue.PANCAKESWAP: PANCAKESWAP_TICK_SPACING,
}


def _check_deadline(chain: SimulatedChain, deadline: int) -> None:
    now = chain.now()
    if now > deadline:
        raise DeadlineExpired.elapsed(deadline, now)


def _find_pool(chain: SimulatedChain, venue: Venue, token_a: str, token_b: str, fee: int) -> SimPool:
    token0, token1 = sort_tokens(token_a, token_b)
    address = chain.state.pool_index.get((venue, _k(token0), _k(token1), fee))
    if address is None:
        raise PoolUnavailable.not_found(f"{venue.value}:{token0}/{token1}/{fee}")
    return chain.state.pools[_k(address)]


class SimulatedPositionRegistry(PositionRegistry):
    """
    Position registry bound to one calling account (the custody address)

    Methods taking an explicit owner act on behalf of that account and
    exist so tests can set up approvals the way a wallet would.
    """

    def __init__(self, chain: SimulatedChain, address: str, venue: Venue, sender: Optional[str] = None):
        self._chain = chain
        self._address = address
        self._venue = venue
        self._sender = sender or chain.custody

    @property
    def address(self) -> str:
        return self._address

    @property
    def venue(self) -> Venue:
        return self._venue

    def _state(self) -> RegistryState:
        state = self._chain.state.registries.get(_k(self._address))
        if state is None or state.venue is not self._venue:
            raise TransactionError.simulation_failed(f"no {self._venue.value} position registry at {self._address}")
        return state

    def _position(self, token_id: int) -> SimPosition:
        position = self._state().positions.get(token_id)
        if position is None:
            raise PositionNotFound(f"Invalid token ID: {token_id}", position_id=str(token_id))
        return position

    def _require_authorized(self, token_id: int) -> None:
        self._position(token_id)
        if not self.is_approved_or_owner(self._sender, token_id):
            raise Unauthorized(f"Not approved: {self._sender} for token {token_id}", actor=self._sender)

    # =========================================================================
    # Reads
    # =========================================================================

    def positions(self, token_id: int) -> Position:
        p = self._position(token_id)
        return Position(
            token_id=token_id,
            venue=self._venue,
            token0=p.token0,
            token1=p.token1,
            fee=p.fee,
            tick_lower=p.tick_lower,
            tick_upper=p.tick_upper,
            liquidity=p.liquidity,
            tokens_owed0=p.tokens_owed0,
            tokens_owed1=p.tokens_owed1,
            owner=self._state().owners[token_id],
        )

    def owner_of(self, token_id: int) -> str:
        self._position(token_id)
        return self._state().owners[token_id]

    def get_approved(self, token_id: int) -> Optional[str]:
        self._position(token_id)
        return self._state().token_approvals.get(token_id)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return (_k(owner), _k(operator)) in self._state().operators

    # =========================================================================
    # Liquidity
    # =========================================================================

    def _add_liquidity(
        self,
        pool: SimPool,
        tick_lower: int,
        tick_upper: int,
        amount0_desired: int,
        amount1_desired: int,
        amount0_min: int,
        amount1_min: int,
    ) -> Tuple[int, int, int]:
        if tick_lower >= tick_upper:
            raise InvalidParameter(f"TLU: tick_lower {tick_lower} >= tick_upper {tick_upper}", param="ticks")
        if tick_lower < clmath.MIN_TICK:
            raise InvalidParameter(f"TLM: tick_lower {tick_lower} below minimum", param="ticks")
        if tick_upper > clmath.MAX_TICK:
            raise InvalidParameter(f"TUM: tick_upper {tick_upper} above maximum", param="ticks")
        if tick_lower % pool.tick_spacing or tick_upper % pool.tick_spacing:
            raise InvalidParameter(
                f"ticks [{tick_lower}, {tick_upper}) not aligned to spacing {pool.tick_spacing}", param="ticks"
            )

        sqrt_lower = clmath.get_sqrt_ratio_at_tick(tick_lower)
        sqrt_upper = clmath.get_sqrt_ratio_at_tick(tick_upper)
        liquidity = clmath.get_liquidity_for_amounts(
            pool.sqrt_price_x96, sqrt_lower, sqrt_upper, amount0_desired, amount1_desired
        )
        if liquidity <= 0:
            raise InvalidParameter("desired amounts mint zero liquidity", param="amounts")

        amount0, amount1 = clmath.amounts_for_liquidity(
            pool.sqrt_price_x96, sqrt_lower, sqrt_upper, liquidity, round_up=True
        )
        if amount0 < amount0_min:
            raise SlippageExceeded.below_minimum("amount0", amount0_min, amount0)
        if amount1 < amount1_min:
            raise SlippageExceeded.below_minimum("amount1", amount1_min, amount1)

        # The registry pays the pool from the caller's allowance
        if amount0:
            self._chain.transfer_from(pool.token0, self._address, self._sender, pool.address, amount0)
        if amount1:
            self._chain.transfer_from(pool.token1, self._address, self._sender, pool.address, amount1)

        if tick_lower <= pool.tick < tick_upper:
            pool.liquidity += liquidity
        return liquidity, amount0, amount1

    def mint(self, params: MintParams) -> Tuple[int, int, int, int]:
        state = self._state()
        _check_deadline(self._chain, params.deadline)
        if int(params.token0, 16) >= int(params.token1, 16):
            raise PoolUnavailable.not_found(f"{params.token0}/{params.token1} (unsorted)")
        pool = _find_pool(self._chain, self._venue, params.token0, params.token1, params.fee)

        liquidity, amount0, amount1 = self._add_liquidity(
            pool,
            params.tick_lower,
            params.tick_upper,
            params.amount0_desired,
            params.amount1_desired,
            params.amount0_min,
            params.amount1_min,
        )

        token_id = state.next_id
        state.next_id += 1
        state.positions[token_id] = SimPosition(
            pool=pool.address,
            token0=pool.token0,
            token1=pool.token1,
            fee=pool.fee,
            tick_lower=params.tick_lower,
            tick_upper=params.tick_upper,
            liquidity=liquidity,
        )
        state.owners[token_id] = params.recipient
        logger.debug(f"{self._venue.value} minted #{token_id} L={liquidity} ({amount0}, {amount1})")
        return token_id, liquidity, amount0, amount1

    def increase_liquidity(
        self,
        token_id: int,
        amount0_desired: int,
        amount1_desired: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
    ) -> Tuple[int, int, int]:
        _check_deadline(self._chain, deadline)
        position = self._position(token_id)
        pool = self._chain.state.pools[_k(position.pool)]
        liquidity, amount0, amount1 = self._add_liquidity(
            pool,
            position.tick_lower,
            position.tick_upper,
            amount0_desired,
            amount1_desired,
            amount0_min,
            amount1_min,
        )
        position.liquidity += liquidity
        return liquidity, amount0, amount1

    def decrease_liquidity(
        self,
        token_id: int,
        liquidity: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
    ) -> Tuple[int, int]:
        self._require_authorized(token_id)
        _check_deadline(self._chain, deadline)
        position = self._position(token_id)
        if liquidity <= 0 or position.liquidity < liquidity:
            raise InsufficientLiquidity.exceeds_position(token_id, liquidity, position.liquidity)

        pool = self._chain.state.pools[_k(position.pool)]
        amount0, amount1 = clmath.amounts_for_liquidity(
            pool.sqrt_price_x96,
            clmath.get_sqrt_ratio_at_tick(position.tick_lower),
            clmath.get_sqrt_ratio_at_tick(position.tick_upper),
            liquidity,
            round_up=False,
        )
        if amount0 < amount0_min:
            raise SlippageExceeded.below_minimum("amount0", amount0_min, amount0)
        if amount1 < amount1_min:
            raise SlippageExceeded.below_minimum("amount1", amount1_min, amount1)

        position.liquidity -= liquidity
        position.tokens_owed0 += amount0
        position.tokens_owed1 += amount1
        if position.tick_lower <= pool.tick < position.tick_upper:
            pool.liquidity -= liquidity
        return amount0, amount1

    def collect(
        self,
        token_id: int,
        recipient: str,
        amount0_max: int = MAX_UINT128,
        amount1_max: int = MAX_UINT128,
    ) -> Tuple[int, int]:
        self._require_authorized(token_id)
        if amount0_max <= 0 and amount1_max <= 0:
            raise InvalidParameter("collect ceilings are both zero", param="amount_max")
        position = self._position(token_id)
        amount0 = min(position.tokens_owed0, amount0_max)
        amount1 = min(position.tokens_owed1, amount1_max)
        position.tokens_owed0 -= amount0
        position.tokens_owed1 -= amount1
        if amount0:
            self._chain.transfer(position.token0, position.pool, recipient, amount0)
        if amount1:
            self._chain.transfer(position.token1, position.pool, recipient, amount1)
        return amount0, amount1

    def burn(self, token_id: int) -> None:
        self._require_authorized(token_id)
        position = self._position(token_id)
        if position.liquidity or position.tokens_owed0 or position.tokens_owed1:
            raise TransactionError.simulation_failed(f"Not cleared: position {token_id}")
        state = self._state()
        del state.positions[token_id]
        del state.owners[token_id]
        state.token_approvals.pop(token_id, None)

    # =========================================================================
    # Certificates
    # =========================================================================

    def transfer_certificate(self, sender: str, recipient: str, token_id: int) -> None:
        state = self._state()
        owner = self.owner_of(token_id)
        if not same_address(owner, sender):
            raise Unauthorized(f"transfer of token {token_id} from incorrect owner {sender}", actor=sender)
        if not self.is_approved_or_owner(self._sender, token_id):
            raise Unauthorized.not_approved(self._sender, token_id)
        state.owners[token_id] = recipient
        state.token_approvals.pop(token_id, None)
        self._chain.deliver_certificate(self._sender, sender, recipient, token_id)

    def approve(self, owner: str, spender: str, token_id: int) -> None:
        """ERC-721 approve issued by `owner`"""
        state = self._state()
        current = self.owner_of(token_id)
        if not (same_address(owner, current) or (_k(current), _k(owner)) in state.operators):
            raise Unauthorized.not_approved(owner, token_id)
        state.token_approvals[token_id] = spender

    def set_approval_for_all(self, owner: str, operator: str, approved: bool = True) -> None:
        """ERC-721 setApprovalForAll issued by `owner`"""
        operators = self._state().operators
        if approved:
            operators.add((_k(owner), _k(operator)))
        else:
            operators.discard((_k(owner), _k(operator)))

    def accrue_fees(self, token_id: int, amount0: int, amount1: int) -> None:
        """Credit swap fees to a position and fund the pool that owes them"""
        position = self._position(token_id)
        position.tokens_owed0 += amount0
        position.tokens_owed1 += amount1
        self._chain.mint_tokens(position.token0, position.pool, amount0)
        self._chain.mint_tokens(position.token1, position.pool, amount1)


class SimulatedExchangeRouter(ExchangeRouter):
    """exactInputSingle against a simulated pool of the router's venue"""

    def __init__(self, chain: SimulatedChain, address: str, venue: Venue, sender: Optional[str] = None):
        self._chain = chain
        self._address = address
        self._venue = venue
        self._sender = sender or chain.custody

    @property
    def address(self) -> str:
        return self._address

    @property
    def venue(self) -> Venue:
        return self._venue

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
        if self._chain.state.routers.get(_k(self._address)) is not self._venue:
            raise TransactionError.simulation_failed(f"no {self._venue.value} exchange router at {self._address}")
        _check_deadline(self._chain, deadline)
        if amount_in <= 0:
            raise InvalidParameter("amount_in must be positive", param="amount_in")

        pool = _find_pool(self._chain, self._venue, token_in, token_out, fee)
        if pool.liquidity <= 0:
            raise PoolUnavailable.invalid_state(pool.address, "no active liquidity")

        zero_for_one = same_address(token_in, pool.token0)
        amount_out, new_sqrt, _ = clmath.swap_exact_in(
            pool.sqrt_price_x96, pool.liquidity, amount_in, pool.fee, zero_for_one
        )
        if amount_out < min_amount_out:
            raise SlippageExceeded(
                f"Too little received: minimum {min_amount_out}, got {amount_out}",
                expected=min_amount_out,
                actual=amount_out,
            )
        if self._chain.balance_of(token_out, pool.address) < amount_out:
            raise PoolUnavailable.invalid_state(pool.address, "insufficient reserves")

        self._chain.transfer_from(token_in, self._address, self._sender, pool.address, amount_in)
        self._chain.transfer(token_out, pool.address, recipient, amount_out)
        pool.sqrt_price_x96 = new_sqrt
        pool.tick = clmath.get_tick_at_sqrt_ratio(new_sqrt)
        logger.debug(f"{self._venue.value} swap {amount_in} -> {amount_out}, tick now {pool.tick}")
        return amount_out


class SimulatedPoolReader(PoolReader):

    def __init__(self, chain: SimulatedChain, venue: Venue):
        self._chain = chain
        self._venue = venue

    def read_pool(self, pool_address: str) -> PoolState:
        pool = self._chain.state.pools.get(_k(pool_address))
        if pool is None or pool.venue is not self._venue:
            raise PoolUnavailable.not_found(pool_address)
        return PoolState(
            address=pool.address,
            token0=pool.token0,
            token1=pool.token1,
            fee=pool.fee,
            tick_spacing=pool.tick_spacing,
            liquidity=pool.liquidity,
            sqrt_price_x96=pool.sqrt_price_x96,
            tick=pool.tick,
        )


class SimulatedVenue(VenueConnector):
    """
    One venue deployment on a SimulatedChain

    Usage:
        chain = SimulatedChain()
        uni = SimulatedVenue(chain, Venue.UNISWAP)
        pool = uni.create_pool(weth, usdc, 3000, tick=0)
    """

    def __init__(self, chain: SimulatedChain, venue: Venue, with_router: bool = True):
        self._chain = chain
        self._venue = venue
        self.registry_address = self.deploy_registry()
        self.router_address = self.deploy_router() if with_router else ""

    @property
    def venue(self) -> Venue:
        return self._venue

    @property
    def chain(self) -> SimulatedChain:
        return self._chain

    def deploy_registry(self) -> str:
        address = self._chain.new_address(f"{self._venue.value}:npm")
        self._chain.state.registries[_k(address)] = RegistryState(address=address, venue=self._venue)
        self._chain.mark_contract(address)
        return address

    def deploy_router(self) -> str:
        address = self._chain.new_address(f"{self._venue.value}:router")
        self._chain.state.routers[_k(address)] = self._venue
        self._chain.mark_contract(address)
        return address

    def create_pool(
        self,
        token_a: str,
        token_b: str,
        fee: int,
        tick: int = 0,
        tick_spacing: Optional[int] = None,
    ) -> str:
        """Deploy and initialize a pool at `tick`. Returns the pool address."""
        token0, token1 = sort_tokens(token_a, token_b)
        key = (self._venue, _k(token0), _k(token1), fee)
        if key in self._chain.state.pool_index:
            raise PoolUnavailable.invalid_state(self._chain.state.pool_index[key], "pool already exists")
        if tick_spacing is None:
            if fee not in DEFAULT_TICK_SPACING[self._venue]:
                raise InvalidParameter(f"fee tier {fee} not enabled on {self._venue.value}", param="fee")
            tick_spacing = DEFAULT_TICK_SPACING[self._venue][fee]

        address = self._chain.new_address(f"{self._venue.value}:pool")
        self._chain.state.pools[_k(address)] = SimPool(
            address=address,
            venue=self._venue,
            token0=token0,
            token1=token1,
            fee=fee,
            tick_spacing=tick_spacing,
            sqrt_price_x96=clmath.get_sqrt_ratio_at_tick(tick),
            tick=tick,
        )
        self._chain.state.pool_index[key] = address
        self._chain.mark_contract(address)
        return address

    def position_registry(self, address: str) -> SimulatedPositionRegistry:
        return SimulatedPositionRegistry(self._chain, address, self._venue)

    def exchange_router(self, address: str) -> SimulatedExchangeRouter:
        return SimulatedExchangeRouter(self._chain, address, self._venue)

    def pool_reader(self) -> SimulatedPoolReader:
        return SimulatedPoolReader(self._chain, self._venue)

    def default_entries(self) -> Tuple[str, str]:
        return self.registry_address, self.router_address

    def __repr__(self) -> str:
        return f"SimulatedVenue({self._venue.value}, registry={self.registry_address})"
