"""
Shared fixtures for unit tests.

Builds a simulated chain with one Uniswap V3 and one PancakeSwap V3
deployment, a token pair pooled on both, a funded user who has approved
the manager's custody account, and a PositionManager wired to all of it.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lp_manager import PositionManager, Venue
from lp_manager.config import Config
from lp_manager.infra.access import OwnerOnly
from lp_manager.protocols.simulated import SimulatedChain, SimulatedVenue
from lp_manager.protocols.simulated.chain import MAX_UINT256
from lp_manager.types import sort_tokens

UNISWAP_FEE = 3000          # spacing 60
PANCAKESWAP_FEE = 2500      # spacing 50
USER_FUNDS = 10**24
SEED_AMOUNT = 10**21


class Env:
    """Handles to everything the simulated environment contains"""

    def __init__(self, chain, uni, cake, token0, token1, uni_pool, cake_pool, alice, bob, owner):
        self.chain = chain
        self.uni = uni
        self.cake = cake
        self.token0 = token0
        self.token1 = token1
        self.uni_pool = uni_pool
        self.cake_pool = cake_pool
        self.alice = alice
        self.bob = bob
        self.owner = owner

    def registry(self, venue):
        target = self.uni if Venue.parse(venue) is Venue.UNISWAP else self.cake
        return target.position_registry(target.registry_address)

    def balances(self, account):
        return (
            self.chain.balance_of(self.token0, account),
            self.chain.balance_of(self.token1, account),
        )

    def fund(self, account, amount=USER_FUNDS):
        """Mint both tokens to account and approve custody for tokens and certificates"""
        for token in (self.token0, self.token1):
            self.chain.mint_tokens(token, account, amount)
            self.chain.approve(token, account, self.chain.custody, MAX_UINT256)
        for venue in (self.uni, self.cake):
            venue.position_registry(venue.registry_address).set_approval_for_all(account, self.chain.custody)


def make_config(**manager_overrides) -> Config:
    config = Config()
    config.manager.default_venue = "uniswap"
    config.manager.rebalance_exchange_routing = "alternate"
    config.manager.strict_token_metadata = False
    for key, value in manager_overrides.items():
        setattr(config.manager, key, value)
    return config


def make_manager(env: Env, config=None, entries=None) -> PositionManager:
    return PositionManager(
        env.chain,
        env.chain.ledger,
        {Venue.UNISWAP: env.uni, Venue.PANCAKESWAP: env.cake},
        OwnerOnly(env.owner),
        config=config or make_config(),
        entries=entries,
    )


@pytest.fixture
def env():
    chain = SimulatedChain()
    uni = SimulatedVenue(chain, Venue.UNISWAP)
    cake = SimulatedVenue(chain, Venue.PANCAKESWAP)

    weth = chain.create_token("WETH", 18, name="Wrapped Ether")
    usdc = chain.create_token("USDC", 18, name="USD Coin")
    token0, token1 = sort_tokens(weth, usdc)

    uni_pool = uni.create_pool(token0, token1, UNISWAP_FEE, tick=0)
    cake_pool = cake.create_pool(token0, token1, PANCAKESWAP_FEE, tick=0)

    result = Env(
        chain, uni, cake, token0, token1, uni_pool, cake_pool,
        alice=chain.new_address("alice"),
        bob=chain.new_address("bob"),
        owner=chain.new_address("owner"),
    )
    result.fund(result.alice)
    result.fund(result.bob)
    return result


@pytest.fixture
def manager(env):
    return make_manager(env)


@pytest.fixture
def seeded(env, manager):
    """Deep liquidity from a third account on both venues, so exchanges can execute"""
    lp = env.chain.new_address("lp")
    env.fund(lp, SEED_AMOUNT * 10)
    manager.open_position(lp, Venue.UNISWAP, env.token0, env.token1, UNISWAP_FEE, -6000, 6000,
                          SEED_AMOUNT, SEED_AMOUNT)
    manager.open_position(lp, Venue.PANCAKESWAP, env.token0, env.token1, PANCAKESWAP_FEE, -5000, 5000,
                          SEED_AMOUNT, SEED_AMOUNT)
    return env


def open_default(manager, env, caller=None, amount0=100_000, amount1=100_000, lower=-600, upper=600, **kwargs):
    """Open a Uniswap position around tick 0"""
    return manager.open_position(
        caller or env.alice,
        Venue.UNISWAP,
        env.token0,
        env.token1,
        UNISWAP_FEE,
        lower,
        upper,
        amount0,
        amount1,
        **kwargs,
    )
