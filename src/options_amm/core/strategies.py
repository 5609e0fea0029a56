"""Expiry payoff analysis for common option strategies."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .models import Greeks, OptionContractParams, OptionType, StrategyAnalysis, StrategyLeg
from .pricing_models import BlackScholesModel

LOGGER = logging.getLogger(__name__)

DEFAULT_PRICE_RANGE = 0.2
DEFAULT_GRID_POINTS = 51
DEFAULT_WING_WIDTH = 0.05

_SINGLE_OPTION_STRATEGIES = frozenset({"long_call", "long_put", "covered_call", "cash_secured_put"})


def _long_call(spot: float, strike: float, width: float) -> List[StrategyLeg]:
    return [StrategyLeg(OptionType.CALL, strike, 1.0)]


def _long_put(spot: float, strike: float, width: float) -> List[StrategyLeg]:
    return [StrategyLeg(OptionType.PUT, strike, 1.0)]


def _covered_call(spot: float, strike: float, width: float) -> List[StrategyLeg]:
    return [StrategyLeg(None, spot, 1.0), StrategyLeg(OptionType.CALL, strike, -1.0)]


def _cash_secured_put(spot: float, strike: float, width: float) -> List[StrategyLeg]:
    return [StrategyLeg(OptionType.PUT, strike, -1.0)]


def _straddle(spot: float, strike: float, width: float) -> List[StrategyLeg]:
    return [StrategyLeg(OptionType.CALL, strike, 1.0), StrategyLeg(OptionType.PUT, strike, 1.0)]


def _strangle(spot: float, strike: float, width: float) -> List[StrategyLeg]:
    return [
        StrategyLeg(OptionType.PUT, strike - width, 1.0),
        StrategyLeg(OptionType.CALL, strike + width, 1.0),
    ]


def _iron_condor(spot: float, strike: float, width: float) -> List[StrategyLeg]:
    return [
        StrategyLeg(OptionType.PUT, strike - 2 * width, 1.0),
        StrategyLeg(OptionType.PUT, strike - width, -1.0),
        StrategyLeg(OptionType.CALL, strike + width, -1.0),
        StrategyLeg(OptionType.CALL, strike + 2 * width, 1.0),
    ]


def _butterfly(spot: float, strike: float, width: float) -> List[StrategyLeg]:
    return [
        StrategyLeg(OptionType.CALL, strike - width, 1.0),
        StrategyLeg(OptionType.CALL, strike, -2.0),
        StrategyLeg(OptionType.CALL, strike + width, 1.0),
    ]


STRATEGIES: Dict[str, Callable[[float, float, float], List[StrategyLeg]]] = {
    "long_call": _long_call,
    "long_put": _long_put,
    "covered_call": _covered_call,
    "cash_secured_put": _cash_secured_put,
    "straddle": _straddle,
    "strangle": _strangle,
    "iron_condor": _iron_condor,
    "butterfly": _butterfly,
}


def leg_payoff(leg: StrategyLeg, prices: np.ndarray) -> np.ndarray:
    """Expiry P&L of one leg over ``prices``; stock legs use ``strike_price`` as entry."""

    if leg.option_type is None:
        return leg.quantity * (prices - leg.strike_price)
    if leg.option_type is OptionType.CALL:
        intrinsic = np.maximum(prices - leg.strike_price, 0.0)
    else:
        intrinsic = np.maximum(leg.strike_price - prices, 0.0)
    return leg.quantity * (intrinsic - leg.premium)


def find_breakevens(prices: np.ndarray, pnl: np.ndarray) -> Tuple[float, ...]:
    """Prices where ``pnl`` crosses zero, linearly interpolated between grid points."""

    points: List[float] = [float(p) for p in prices[pnl == 0.0]]
    left, right = pnl[:-1], pnl[1:]
    crossings = np.flatnonzero(left * right < 0.0)
    for index in crossings:
        x0, x1 = prices[index], prices[index + 1]
        y0, y1 = pnl[index], pnl[index + 1]
        points.append(float(x0 - y0 * (x1 - x0) / (y1 - y0)))
    return tuple(sorted(points))


def build_legs(
    strategy: str,
    spot: float,
    strike: float,
    *,
    width: Optional[float] = None,
) -> List[StrategyLeg]:
    try:
        builder = STRATEGIES[strategy]
    except KeyError as exc:
        raise ValueError(f"Unknown strategy '{strategy}'") from exc
    wing = width if width is not None else strike * DEFAULT_WING_WIDTH
    if wing <= 0:
        raise ValueError("width must be strictly positive")
    legs = builder(spot, strike, wing)
    if any(leg.option_type is not None and leg.strike_price <= 0 for leg in legs):
        raise ValueError("strategy width produces a non-positive strike")
    return legs


def analyse_strategy(
    strategy: str,
    spot: float,
    strike: float,
    *,
    days_to_expiration: float = 30,
    implied_volatility: float = 30.0,
    risk_free_rate: float = 0.05,
    premium: Optional[float] = None,
    width: Optional[float] = None,
    legs: Optional[Sequence[StrategyLeg]] = None,
    price_range: float = DEFAULT_PRICE_RANGE,
    grid_points: int = DEFAULT_GRID_POINTS,
    model: Optional[BlackScholesModel] = None,
) -> StrategyAnalysis:
    """Evaluate expiry P&L of ``strategy`` over a price grid around ``spot``.

    Option legs without an explicit premium are priced with Black-Scholes at
    ``spot``. ``premium`` overrides that price for the single-option
    strategies; custom ``legs`` replace the named builder entirely.
    """

    if spot <= 0:
        raise ValueError("spot must be strictly positive")
    if grid_points < 2:
        raise ValueError("grid_points must be at least 2")
    if not 0.0 < price_range < 1.0:
        raise ValueError("price_range must be within (0, 1)")

    bs = model or BlackScholesModel()
    raw_legs = list(legs) if legs is not None else build_legs(strategy, spot, strike, width=width)

    priced: List[StrategyLeg] = []
    greeks = Greeks.zero()
    for leg in raw_legs:
        if leg.option_type is None:
            priced.append(leg)
            greeks = _add(greeks, Greeks(delta=leg.quantity, gamma=0.0, theta=0.0, vega=0.0, rho=0.0))
            continue
        params = OptionContractParams(
            underlying_price=spot,
            strike_price=leg.strike_price,
            days_to_expiration=days_to_expiration,
            implied_volatility=implied_volatility,
            option_type=leg.option_type,
            risk_free_rate=risk_free_rate,
        )
        leg_premium = leg.premium
        if legs is None:
            if premium is not None and strategy in _SINGLE_OPTION_STRATEGIES:
                leg_premium = premium
            else:
                leg_premium = bs.price(params)
        priced.append(StrategyLeg(leg.option_type, leg.strike_price, leg.quantity, leg_premium))
        greeks = _add(greeks, bs.greeks(params).scaled(leg.quantity))

    prices = np.linspace(spot * (1.0 - price_range), spot * (1.0 + price_range), grid_points)
    pnl = np.zeros_like(prices)
    for leg in priced:
        pnl += leg_payoff(leg, prices)

    upside_slope = sum(
        leg.quantity for leg in priced if leg.option_type in (None, OptionType.CALL)
    )

    analysis = StrategyAnalysis(
        strategy=strategy,
        prices=tuple(float(p) for p in prices),
        pnl=tuple(float(v) for v in pnl),
        max_profit=float(pnl.max()),
        max_loss=float(pnl.min()),
        breakevens=find_breakevens(prices, pnl),
        unbounded_profit=upside_slope > 0,
        greeks=greeks,
        legs=tuple(priced),
    )
    LOGGER.debug(
        "Analysed %s: max_profit=%.4f max_loss=%.4f breakevens=%s",
        strategy,
        analysis.max_profit,
        analysis.max_loss,
        analysis.breakevens,
    )
    return analysis


def _add(left: Greeks, right: Greeks) -> Greeks:
    return Greeks(
        delta=left.delta + right.delta,
        gamma=left.gamma + right.gamma,
        theta=left.theta + right.theta,
        vega=left.vega + right.vega,
        rho=left.rho + right.rho,
    )


__all__ = [
    "STRATEGIES",
    "analyse_strategy",
    "build_legs",
    "find_breakevens",
    "leg_payoff",
]
