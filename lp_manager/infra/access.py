"""
Privileged actor capability checks
"""

from typing import Callable

from web3 import Web3

from ..errors import ConfigurationError, Unauthorized
from ..types import is_zero_address, same_address

Authorization = Callable[[str], bool]


class OwnerOnly:
    """Single-owner capability: only the configured address is privileged"""

    def __init__(self, owner: str):
        if not owner:
            raise ConfigurationError.missing("MANAGER_OWNER_ADDRESS")
        if not Web3.is_address(owner):
            raise ConfigurationError.invalid("MANAGER_OWNER_ADDRESS", f"not an address: {owner!r}")
        if is_zero_address(owner):
            raise ConfigurationError.missing("MANAGER_OWNER_ADDRESS")
        self.owner = owner

    def __call__(self, actor: str) -> bool:
        return same_address(actor, self.owner)

    def __repr__(self) -> str:
        return f"OwnerOnly({self.owner})"


def require(authorize: Authorization, actor: str, operation: str) -> None:
    """Raise Unauthorized unless the capability check admits the actor"""
    if not authorize(actor):
        raise Unauthorized.not_admin(actor, operation)
