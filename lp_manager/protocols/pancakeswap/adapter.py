"""
PancakeSwap V3 connector

PancakeSwap V3 is a Uniswap V3 fork: the position manager and router
share the same interfaces. Pools widen slot0.feeProtocol to uint32.
"""

from typing import Optional

from ..evm import EvmVenueConnector, pool_abi
from ...config import PancakeSwapConfig, config as global_config
from ...infra.evm import EvmTransactor
from ...types import Venue
from .api import (
    PANCAKESWAP_FACTORY_ADDRESSES,
    PANCAKESWAP_POSITION_MANAGER_ADDRESSES,
    PANCAKESWAP_SWAP_ROUTER_ADDRESSES,
)


class PancakeSwapConnector(EvmVenueConnector):
    """PancakeSwap V3 venue on Ethereum and BSC"""

    VENUE = Venue.PANCAKESWAP
    POOL_ABI = pool_abi("uint32")
    POSITION_MANAGER_ADDRESSES = PANCAKESWAP_POSITION_MANAGER_ADDRESSES
    SWAP_ROUTER_ADDRESSES = PANCAKESWAP_SWAP_ROUTER_ADDRESSES
    FACTORY_ADDRESSES = PANCAKESWAP_FACTORY_ADDRESSES

    def __init__(self, transactor: EvmTransactor, pancakeswap_config: Optional[PancakeSwapConfig] = None):
        settings = pancakeswap_config or global_config.pancakeswap
        super().__init__(
            transactor,
            position_manager_override=settings.position_manager_address,
            swap_router_override=settings.swap_router_address,
            factory_override=settings.factory_address,
        )
