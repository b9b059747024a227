"""
Uniswap V3 connector

Builds web3-backed collaborators for Uniswap V3 deployments.
"""

import logging
from typing import Optional

from ..evm import EvmVenueConnector, pool_abi
from ...config import UniswapConfig, config as global_config
from ...infra.evm import EvmTransactor
from ...types import Venue
from .api import (
    UNISWAP_V3_FACTORY_ADDRESSES,
    UNISWAP_V3_POSITION_MANAGER_ADDRESSES,
    UNISWAP_V3_SWAP_ROUTER_ADDRESSES,
)

logger = logging.getLogger(__name__)


class UniswapConnector(EvmVenueConnector):
    """
    Uniswap V3 venue

    Usage:
        connector = UniswapConnector(transactor)
        registry = connector.position_registry(position_manager_address)
    """

    VENUE = Venue.UNISWAP
    # Uniswap V3 packs feeProtocol into a uint8
    POOL_ABI = pool_abi("uint8")
    POSITION_MANAGER_ADDRESSES = UNISWAP_V3_POSITION_MANAGER_ADDRESSES
    SWAP_ROUTER_ADDRESSES = UNISWAP_V3_SWAP_ROUTER_ADDRESSES
    FACTORY_ADDRESSES = UNISWAP_V3_FACTORY_ADDRESSES

    def __init__(self, transactor: EvmTransactor, uniswap_config: Optional[UniswapConfig] = None):
        settings = uniswap_config or global_config.uniswap
        super().__init__(
            transactor,
            position_manager_override=settings.position_manager_address,
            swap_router_override=settings.swap_router_address,
            factory_override=settings.factory_address,
        )
