"""Integer fixed-point price model mirroring the on-chain pool contract.

Amounts are unsigned integers in micro units and every division truncates, so
results diverge from :class:`~options_amm.core.pricing_models.BlackScholesModel`.
The model is kept for comparing on-chain settlement prices with the quotes the
service publishes; it is not a substitute for the floating-point engine.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final, Optional

from .models import OptionContractParams, OptionType

ONE_8: Final[int] = 100_000_000
FEE_RATE: Final[int] = 300
FEE_DENOMINATOR: Final[int] = 100_000
BLOCKS_PER_YEAR: Final[int] = 52_560
TIME_VALUE_CALIBRATION: Final[int] = 300_000_000
MICRO_UNITS: Final[int] = 1_000_000
BLOCKS_PER_DAY: Final[int] = BLOCKS_PER_YEAR // 365


def _require_non_negative(**values: int) -> None:
    for name, value in values.items():
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"{name} must be an integer")
        if value < 0:
            raise ValueError(f"{name} must be non-negative")


def sqrt_int(value: int) -> int:
    """Floor square root by Newton iteration."""

    _require_non_negative(value=value)
    if value == 0:
        return 0
    guess = (value + 1) // 2
    while True:
        following = (guess + value // guess) // 2
        if following >= guess:
            return guess
        guess = following


def intrinsic_value(option_type: OptionType | str, oracle_price: int, strike_price: int) -> int:
    _require_non_negative(oracle_price=oracle_price, strike_price=strike_price)
    if OptionType(option_type) is OptionType.CALL:
        return max(0, oracle_price - strike_price)
    return max(0, strike_price - oracle_price)


def time_value(strike_price: int, blocks_to_expiry: int, iv_bps: int) -> int:
    """``iv * strike * sqrt(T)`` scaled by the calibration constant.

    ``iv_bps`` is volatility in basis points (``7500`` for 75%) and time is
    measured in blocks.
    """

    _require_non_negative(strike_price=strike_price, blocks_to_expiry=blocks_to_expiry, iv_bps=iv_bps)
    years_x_1e8 = blocks_to_expiry * ONE_8 // BLOCKS_PER_YEAR
    return iv_bps * strike_price * sqrt_int(years_x_1e8) // TIME_VALUE_CALIBRATION


def theoretical_price(
    strike_price: int,
    oracle_price: int,
    blocks_to_expiry: int,
    iv_bps: int,
    option_type: OptionType | str,
) -> int:
    return intrinsic_value(option_type, oracle_price, strike_price) + time_value(
        strike_price, blocks_to_expiry, iv_bps
    )


def final_price(theoretical: int, quantity: int, liquidity: int, is_buy: bool) -> int:
    """Per-contract price after the quadratic pool impact.

    Raises ``ValueError`` when a sell would push the price below zero, which
    the contract rejects by aborting the transaction.
    """

    _require_non_negative(theoretical=theoretical, quantity=quantity, liquidity=liquidity)
    trade_value = theoretical * quantity
    ratio = trade_value * ONE_8 // liquidity if liquidity > 0 else 0
    impact = ratio * ratio // ONE_8
    if is_buy:
        return theoretical * (ONE_8 + impact) // ONE_8
    if impact > ONE_8:
        raise ValueError("price impact exceeds the theoretical price")
    return theoretical * (ONE_8 - impact) // ONE_8


def trade_fee(total: int) -> int:
    _require_non_negative(total=total)
    return total * FEE_RATE // FEE_DENOMINATOR


def lp_tokens_to_mint(amount: int, total_liquidity: int, total_lp_tokens: int) -> int:
    """LP tokens minted for a deposit; an empty pool mints one for one."""

    _require_non_negative(amount=amount, total_liquidity=total_liquidity, total_lp_tokens=total_lp_tokens)
    if amount == 0:
        raise ValueError("amount must be strictly positive")
    if total_liquidity == 0:
        return amount
    return amount * total_lp_tokens // total_liquidity


@dataclass(frozen=True, slots=True)
class FixedPointTrade:
    """Settlement amounts of one contract trade, all in micro units."""

    theoretical_price: int
    final_price: int
    total: int
    fee: int
    pool_delta: int


def buy_option(
    strike_price: int,
    oracle_price: int,
    blocks_to_expiry: int,
    iv_bps: int,
    option_type: OptionType | str,
    quantity: int,
    liquidity: int,
) -> FixedPointTrade:
    """Cost of buying ``quantity`` contracts; the pool keeps the cost net of fee."""

    if quantity == 0:
        raise ValueError("quantity must be strictly positive")
    theoretical = theoretical_price(strike_price, oracle_price, blocks_to_expiry, iv_bps, option_type)
    price = final_price(theoretical, quantity, liquidity, True)
    total = price * quantity
    fee = trade_fee(total)
    return FixedPointTrade(theoretical, price, total, fee, total - fee)


def sell_option(
    strike_price: int,
    oracle_price: int,
    blocks_to_expiry: int,
    iv_bps: int,
    option_type: OptionType | str,
    quantity: int,
    liquidity: int,
) -> FixedPointTrade:
    """Premium paid to a writer; the pool pays premium plus fee."""

    if quantity == 0:
        raise ValueError("quantity must be strictly positive")
    theoretical = theoretical_price(strike_price, oracle_price, blocks_to_expiry, iv_bps, option_type)
    price = final_price(theoretical, quantity, liquidity, False)
    total = price * quantity
    fee = trade_fee(total)
    payout = total + fee
    if payout > liquidity:
        raise ValueError("insufficient pool liquidity for payout")
    return FixedPointTrade(theoretical, price, total, fee, -payout)



def to_micro_units(amount: float) -> int:
    """Round a currency amount to the six-decimal units the pool settles in."""

    if not math.isfinite(amount) or amount < 0:
        raise ValueError("amount must be a non-negative number")
    return int(round(amount * MICRO_UNITS))


def days_to_blocks(days: float) -> int:
    if not math.isfinite(days) or days < 0:
        raise ValueError("days must be a non-negative number")
    return int(days * BLOCKS_PER_DAY)


def volatility_to_bps(implied_volatility: float) -> int:
    """``75.0`` (percent) becomes ``7500``."""

    if not math.isfinite(implied_volatility) or implied_volatility < 0:
        raise ValueError("implied_volatility must be a non-negative number")
    return int(round(implied_volatility * 100.0))


@dataclass(frozen=True, slots=True)
class FixedPointComparison:
    """On-chain price next to the floating-point model price.

    Prices are in currency units. ``divergence`` is on-chain minus model and
    ``divergence_pct`` is relative to the model price, ``None`` when that is
    zero.
    """

    model_price: float
    onchain_price: float
    divergence: float
    divergence_pct: Optional[float]
    blocks_to_expiry: int
    trade: Optional[FixedPointTrade] = None


def compare_with_model(
    params: OptionContractParams,
    model_price: float,
    *,
    quantity: int = 0,
    pool_liquidity: float = 0.0,
    is_buy: bool = True,
) -> FixedPointComparison:
    """Price ``params`` with the integer model and set it against ``model_price``.

    The integer curve ignores the risk-free rate. A trade is simulated when
    both ``quantity`` and ``pool_liquidity`` are positive.
    """

    strike = to_micro_units(params.strike_price)
    oracle = to_micro_units(params.underlying_price)
    blocks = days_to_blocks(params.days_to_expiration)
    iv_bps = volatility_to_bps(params.implied_volatility)

    onchain = theoretical_price(strike, oracle, blocks, iv_bps, params.option_type) / MICRO_UNITS
    divergence = onchain - model_price

    trade = None
    if quantity > 0 and pool_liquidity > 0:
        execute = buy_option if is_buy else sell_option
        trade = execute(
            strike, oracle, blocks, iv_bps, params.option_type, quantity, to_micro_units(pool_liquidity)
        )

    return FixedPointComparison(
        model_price=model_price,
        onchain_price=onchain,
        divergence=divergence,
        divergence_pct=divergence / model_price * 100.0 if model_price > 0 else None,
        blocks_to_expiry=blocks,
        trade=trade,
    )


__all__ = [
    "BLOCKS_PER_DAY",
    "BLOCKS_PER_YEAR",
    "FEE_RATE",
    "FixedPointComparison",
    "FixedPointTrade",
    "MICRO_UNITS",
    "ONE_8",
    "buy_option",
    "compare_with_model",
    "days_to_blocks",
    "final_price",
    "intrinsic_value",
    "lp_tokens_to_mint",
    "sell_option",
    "sqrt_int",
    "theoretical_price",
    "time_value",
    "to_micro_units",
    "trade_fee",
    "volatility_to_bps",
]
