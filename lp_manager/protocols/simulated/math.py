"""
Concentrated-liquidity integer math

Square root ratios are computed with Decimal at high precision and
truncated to Q64.96; everything downstream is integer arithmetic with
the same rounding directions the V3 contracts use.
"""

from decimal import Decimal, ROUND_FLOOR, localcontext

Q96 = 2**96
MIN_TICK = -887272
MAX_TICK = 887272

_TICK_BASE = Decimal("1.0001")


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator)"""
    if denominator == 0:
        raise ZeroDivisionError("mul_div by zero")
    return (a * b) // denominator


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    """ceil(a * b / denominator)"""
    result = mul_div(a, b, denominator)
    if (a * b) % denominator:
        result += 1
    return result


def div_rounding_up(a: int, b: int) -> int:
    return -(-a // b)


def get_sqrt_ratio_at_tick(tick: int) -> int:
    """sqrt(1.0001^tick) as Q64.96"""
    if tick < MIN_TICK or tick > MAX_TICK:
        raise ValueError(f"tick {tick} outside [{MIN_TICK}, {MAX_TICK}]")
    with localcontext() as ctx:
        ctx.prec = 80
        return int((_TICK_BASE ** tick).sqrt() * Q96)


def get_tick_at_sqrt_ratio(sqrt_price_x96: int) -> int:
    """Greatest tick whose sqrt ratio is <= sqrt_price_x96"""
    if sqrt_price_x96 <= 0:
        raise ValueError("sqrt price must be positive")
    with localcontext() as ctx:
        ctx.prec = 80
        ratio = (Decimal(sqrt_price_x96) / Decimal(Q96)) ** 2
        tick = int((ratio.ln() / _TICK_BASE.ln()).to_integral_value(rounding=ROUND_FLOOR))
    tick = max(MIN_TICK, min(MAX_TICK, tick))
    # Correct for the last-digit error of the logarithm
    while tick < MAX_TICK and get_sqrt_ratio_at_tick(tick + 1) <= sqrt_price_x96:
        tick += 1
    while tick > MIN_TICK and get_sqrt_ratio_at_tick(tick) > sqrt_price_x96:
        tick -= 1
    return tick


# =========================================================================
# Amount deltas (SqrtPriceMath)
# =========================================================================

def get_amount0_delta(sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool) -> int:
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    numerator1 = liquidity << 96
    numerator2 = sqrt_b - sqrt_a
    if round_up:
        return div_rounding_up(mul_div_rounding_up(numerator1, numerator2, sqrt_b), sqrt_a)
    return mul_div(numerator1, numerator2, sqrt_b) // sqrt_a


def get_amount1_delta(sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool) -> int:
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    if round_up:
        return mul_div_rounding_up(liquidity, sqrt_b - sqrt_a, Q96)
    return mul_div(liquidity, sqrt_b - sqrt_a, Q96)


def amounts_for_liquidity(
    sqrt_price: int,
    sqrt_lower: int,
    sqrt_upper: int,
    liquidity: int,
    round_up: bool,
) -> tuple:
    """Token amounts represented by `liquidity` over [lower, upper) at sqrt_price"""
    if sqrt_price <= sqrt_lower:
        return get_amount0_delta(sqrt_lower, sqrt_upper, liquidity, round_up), 0
    if sqrt_price < sqrt_upper:
        return (
            get_amount0_delta(sqrt_price, sqrt_upper, liquidity, round_up),
            get_amount1_delta(sqrt_lower, sqrt_price, liquidity, round_up),
        )
    return 0, get_amount1_delta(sqrt_lower, sqrt_upper, liquidity, round_up)


# =========================================================================
# Liquidity from amounts (LiquidityAmounts)
# =========================================================================

def get_liquidity_for_amount0(sqrt_a: int, sqrt_b: int, amount0: int) -> int:
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    intermediate = mul_div(sqrt_a, sqrt_b, Q96)
    return mul_div(amount0, intermediate, sqrt_b - sqrt_a)


def get_liquidity_for_amount1(sqrt_a: int, sqrt_b: int, amount1: int) -> int:
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    return mul_div(amount1, Q96, sqrt_b - sqrt_a)


def get_liquidity_for_amounts(
    sqrt_price: int,
    sqrt_lower: int,
    sqrt_upper: int,
    amount0: int,
    amount1: int,
) -> int:
    """Largest liquidity both desired amounts can fund (rounded down)"""
    if sqrt_lower > sqrt_upper:
        sqrt_lower, sqrt_upper = sqrt_upper, sqrt_lower
    if sqrt_price <= sqrt_lower:
        return get_liquidity_for_amount0(sqrt_lower, sqrt_upper, amount0)
    if sqrt_price < sqrt_upper:
        return min(
            get_liquidity_for_amount0(sqrt_price, sqrt_upper, amount0),
            get_liquidity_for_amount1(sqrt_lower, sqrt_price, amount1),
        )
    return get_liquidity_for_amount1(sqrt_lower, sqrt_upper, amount1)


# =========================================================================
# Swap step within one liquidity range (SqrtPriceMath)
# =========================================================================

def next_sqrt_price_from_input(sqrt_price: int, liquidity: int, amount_in: int, zero_for_one: bool) -> int:
    """Price after adding amount_in of the input token to the range"""
    if liquidity <= 0:
        raise ValueError("no active liquidity")
    if zero_for_one:
        if amount_in == 0:
            return sqrt_price
        numerator1 = liquidity << 96
        denominator = numerator1 + amount_in * sqrt_price
        return mul_div_rounding_up(numerator1, sqrt_price, denominator)
    return sqrt_price + (amount_in << 96) // liquidity


def swap_exact_in(
    sqrt_price: int,
    liquidity: int,
    amount_in: int,
    fee: int,
    zero_for_one: bool,
) -> tuple:
    """
    Exact-input swap against a single liquidity range

    Returns:
        (amount_out, new_sqrt_price, fee_amount)
    """
    amount_less_fee = mul_div(amount_in, 1_000_000 - fee, 1_000_000)
    fee_amount = amount_in - amount_less_fee
    new_sqrt = next_sqrt_price_from_input(sqrt_price, liquidity, amount_less_fee, zero_for_one)
    if zero_for_one:
        amount_out = get_amount1_delta(new_sqrt, sqrt_price, liquidity, False)
    else:
        amount_out = get_amount0_delta(sqrt_price, new_sqrt, liquidity, False)
    return amount_out, new_sqrt, fee_amount
