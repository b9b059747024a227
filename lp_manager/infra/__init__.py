"""
Infrastructure: transaction execution, tracing, events and locking
"""

from .tracing import (
    CorrelationContext,
    get_correlation_id,
    log_with_correlation,
)
from .revert import classify_revert, decode_revert_data, revert_reason
from .events import EventBus
from .guard import OperationGuard
from .access import Authorization, OwnerOnly, require
from .evm import (
    NonceManager,
    EVMSigner,
    EvmTransactor,
    create_web3,
    get_nonce_manager,
)

__all__ = [
    "CorrelationContext",
    "get_correlation_id",
    "log_with_correlation",
    "classify_revert",
    "decode_revert_data",
    "revert_reason",
    "EventBus",
    "OperationGuard",
    "Authorization",
    "OwnerOnly",
    "require",
    "NonceManager",
    "EVMSigner",
    "EvmTransactor",
    "create_web3",
    "get_nonce_manager",
]
