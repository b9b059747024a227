"""
Venue tags
"""

from enum import Enum
from typing import Union

from ..errors import ConfigurationError


class Venue(Enum):
    """The two interchangeable V3-style AMM deployments"""
    UNISWAP = "uniswap"
    PANCAKESWAP = "pancakeswap"

    def __str__(self) -> str:
        return self.value

    def alternate(self) -> "Venue":
        """Return the venue that is not this one"""
        if self is Venue.UNISWAP:
            return Venue.PANCAKESWAP
        return Venue.UNISWAP

    @classmethod
    def parse(cls, value: Union["Venue", str]) -> "Venue":
        """
        Resolve a venue tag from an enum member or a case-insensitive name

        Raises:
            ConfigurationError: If the tag is unknown
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError.invalid(
                "venue", f"unknown venue '{value}', expected one of {[v.value for v in cls]}"
            )
