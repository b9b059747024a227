"""
Test Types Module

Tests for lp_manager.types package.
"""

import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lp_manager.errors import ConfigurationError, InvalidParameter
from lp_manager.types import (
    MAX_UINT128,
    ZERO_ADDRESS,
    MintParams,
    OhlcvCandle,
    PoolSnapshot,
    Position,
    PositionOpened,
    Token,
    Venue,
    is_zero_address,
    require_address,
    same_address,
    sort_tokens,
    sqrt_price_x96_to_price,
    tick_to_price,
)

WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


def make_snapshot(tick=0, spacing=60, decimals0=18, decimals1=6):
    return PoolSnapshot(
        address="0x8ad599c3A0ff1De082011EFDDc58f1908eb6e6D8",
        token0=Token(address=USDC, symbol="USDC", decimals=decimals0, name="USD Coin"),
        token1=Token(address=WETH, symbol="WETH", decimals=decimals1, name="Wrapped Ether"),
        fee=3000,
        tick_spacing=spacing,
        current_tick=tick,
        sqrt_price_x96=2**96,
        liquidity=10**18,
        venue=Venue.UNISWAP,
    )


class TestVenue:
    """Tests for the Venue tag"""

    def test_values(self):
        assert Venue.UNISWAP.value == "uniswap"
        assert Venue.PANCAKESWAP.value == "pancakeswap"
        assert str(Venue.UNISWAP) == "uniswap"

    def test_alternate(self):
        assert Venue.UNISWAP.alternate() is Venue.PANCAKESWAP
        assert Venue.PANCAKESWAP.alternate() is Venue.UNISWAP

    def test_parse(self):
        assert Venue.parse("Uniswap") is Venue.UNISWAP
        assert Venue.parse(" pancakeswap ") is Venue.PANCAKESWAP
        assert Venue.parse(Venue.UNISWAP) is Venue.UNISWAP

    def test_parse_unknown(self):
        with pytest.raises(ConfigurationError):
            Venue.parse("sushiswap")


class TestAddressHelpers:
    """Tests for address helpers"""

    def test_zero_address(self):
        assert is_zero_address(ZERO_ADDRESS)
        assert is_zero_address("")
        assert not is_zero_address(WETH)

    def test_same_address_ignores_case(self):
        assert same_address(WETH, WETH.lower())
        assert not same_address(WETH, USDC)
        assert not same_address(WETH, "")

    def test_sort_tokens(self):
        assert sort_tokens(WETH, USDC) == (USDC, WETH)
        assert sort_tokens(USDC, WETH) == (USDC, WETH)

    def test_malformed_addresses(self):
        with pytest.raises(InvalidParameter):
            is_zero_address("weth")
        with pytest.raises(InvalidParameter) as exc_info:
            sort_tokens(WETH, "0x1234")
        assert exc_info.value.param == "token_b"
        with pytest.raises(InvalidParameter) as exc_info:
            require_address(None, "recipient")
        assert exc_info.value.param == "recipient"
        assert require_address(WETH) == WETH

    def test_max_uint128(self):
        assert MAX_UINT128 == 2**128 - 1


class TestToken:
    """Tests for Token"""

    def test_amount_conversion(self):
        token = Token(address=USDC, symbol="USDC", decimals=6)
        assert token.ui_amount(1_500_000) == Decimal("1.5")
        assert token.raw_amount("1.5") == 1_500_000
        assert token.raw_amount(2) == 2_000_000

    def test_str_falls_back_to_address(self):
        assert str(Token(address=USDC, symbol="", decimals=18)) == USDC
        assert str(Token(address=USDC, symbol="USDC", decimals=6)) == "USDC"


class TestPrices:
    """Tests for price helpers"""

    def test_tick_zero(self):
        assert tick_to_price(0, 18, 18) == Decimal(1)
        assert tick_to_price(0, 18, 6) == Decimal(10) ** 12

    def test_sqrt_price_matches_tick(self):
        assert sqrt_price_x96_to_price(2**96, 18, 18) == Decimal(1)

    def test_positive_tick_raises_price(self):
        assert tick_to_price(100, 18, 18) > tick_to_price(0, 18, 18)


class TestPoolSnapshot:
    """Tests for PoolSnapshot"""

    def test_symbol_and_fee_rate(self):
        snapshot = make_snapshot()
        assert snapshot.symbol == "USDC/WETH"
        assert snapshot.fee_rate == Decimal("0.003")
        assert snapshot.metadata_complete

    def test_tick_range_floors_to_spacing(self):
        snapshot = make_snapshot(tick=-75, spacing=60)
        assert snapshot.tick_range(2) == (-240, 0)

    def test_tick_range_aligned(self):
        lower, upper = make_snapshot(tick=130, spacing=10).tick_range(5)
        assert lower % 10 == 0 and upper % 10 == 0
        assert lower <= 130 < upper

    def test_tick_range_rejects_zero_width(self):
        with pytest.raises(ValueError):
            make_snapshot().tick_range(0)

    def test_price1_is_inverse(self):
        snapshot = make_snapshot(decimals0=18, decimals1=18, tick=600)
        assert abs(snapshot.price0 * snapshot.price1 - 1) < Decimal("1e-20")

    def test_to_dict(self):
        data = make_snapshot().to_dict()
        assert data["venue"] == "uniswap"
        assert data["token0"]["symbol"] == "USDC"
        assert data["fee"] == 3000
        assert data["unavailable_metadata"] == []


class TestPosition:
    """Tests for Position and MintParams"""

    def test_position_range(self):
        position = Position(
            token_id=1, venue=Venue.UNISWAP, token0=USDC, token1=WETH, fee=3000,
            tick_lower=-600, tick_upper=600, liquidity=0,
        )
        assert position.is_empty
        assert position.in_range(-600)
        assert not position.in_range(600)
        assert "#1" in repr(position)

    def test_mint_params_layout(self):
        params = MintParams(
            token0=USDC, token1=WETH, fee=3000, tick_lower=-60, tick_upper=60,
            amount0_desired=10, amount1_desired=20, amount0_min=1, amount1_min=2,
            recipient=WETH, deadline=99,
        )
        assert params.as_tuple() == (USDC, WETH, 3000, -60, 60, 10, 20, 1, 2, WETH, 99)


class TestMarketData:
    """Tests for OHLCV rows and events"""

    def test_candle_from_row(self):
        candle = OhlcvCandle.from_row([1700000000, "1.5", 2, 1, "1.8", 12345.6])
        assert candle.timestamp == 1700000000
        assert candle.open == Decimal("1.5")
        assert candle.volume == Decimal("12345.6")

    def test_candle_short_row(self):
        with pytest.raises(ValueError):
            OhlcvCandle.from_row([1, 2, 3])

    def test_event_to_dict(self):
        event = PositionOpened(
            venue=Venue.PANCAKESWAP, token_id=3, liquidity=10, amount0=1, amount1=2, recipient=WETH,
        )
        data = event.to_dict()
        assert data["event"] == "position_opened"
        assert data["venue"] == "pancakeswap"
        assert data["token_id"] == 3
