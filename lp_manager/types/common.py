"""
Common type definitions
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from web3 import Web3

from ..errors import InvalidParameter


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Maximum value accepted for collect() ceilings
MAX_UINT128 = 2**128 - 1


def require_address(address: str, param: str = "address") -> str:
    """Reject anything that is not a 20-byte hex address"""
    if not isinstance(address, str) or not Web3.is_address(address):
        raise InvalidParameter.invalid(param, f"not an address: {address!r}")
    return address


def is_zero_address(address: str) -> bool:
    """Check whether an address is empty or the zero address"""
    if not address:
        return True
    return int(require_address(address), 16) == 0


def same_address(a: str, b: str) -> bool:
    """Compare two hex addresses ignoring checksum casing"""
    if not a or not b:
        return False
    return a.lower() == b.lower()


def sort_tokens(token_a: str, token_b: str) -> tuple:
    """Return the pair in canonical venue order (token0 < token1)"""
    if int(require_address(token_a, "token_a"), 16) < int(require_address(token_b, "token_b"), 16):
        return token_a, token_b
    return token_b, token_a


@dataclass(frozen=True)
class Token:
    """
    Token information

    Attributes:
        address: Token contract address
        symbol: Token symbol (e.g., "WETH", "USDC"); empty when unreadable
        decimals: Number of decimal places
        name: Full token name (optional)
    """
    address: str
    symbol: str
    decimals: int
    name: str = ""

    def __str__(self) -> str:
        return self.symbol or self.address

    def __repr__(self) -> str:
        return f"Token({self.symbol}, {self.address[:10]}...)"

    def ui_amount(self, raw_amount: int) -> Decimal:
        """
        Convert raw amount to UI amount with full precision

        Args:
            raw_amount: Raw token amount (smallest units)

        Returns:
            UI amount as Decimal for precision
        """
        return Decimal(raw_amount) / Decimal(10 ** self.decimals)

    def raw_amount(self, ui_amount: Union[Decimal, float, int, str]) -> int:
        """
        Convert UI amount to raw amount

        Args:
            ui_amount: UI amount (can be Decimal, float, int, or str)

        Returns:
            Raw token amount (smallest units)
        """
        if not isinstance(ui_amount, Decimal):
            ui_amount = Decimal(str(ui_amount))
        return int(ui_amount * Decimal(10 ** self.decimals))
