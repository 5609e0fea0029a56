"""Black-Scholes pricing model used by the AMM quote engine."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Tuple

from ..utils.numerics import clamp, norm_cdf, norm_pdf
from ..utils.validation import validate_contract_params
from .models import DAYS_PER_YEAR, Greeks, ImpliedVolatilityResult, OptionContractParams, OptionType

LOGGER = logging.getLogger(__name__)

IV_INITIAL_GUESS = 0.3
IV_TOLERANCE = 1e-4
IV_MAX_ITERATIONS = 100
IV_SIGMA_BOUNDS = (0.001, 5.0)


def days_to_years(days: float) -> float:
    return days / DAYS_PER_YEAR


def intrinsic_value(option_type: OptionType, spot: float, strike: float) -> float:
    """Return the payoff of immediate exercise."""
    if option_type is OptionType.CALL:
        return max(0.0, spot - strike)
    return max(0.0, strike - spot)


def _d1_d2(spot: float, strike: float, tau: float, sigma: float, rate: float) -> Tuple[float, float]:
    sqrt_t = math.sqrt(tau)
    d1 = (math.log(spot / strike) + (rate + 0.5 * sigma * sigma) * tau) / (sigma * sqrt_t)
    return d1, d1 - sigma * sqrt_t


@dataclass(slots=True)
class BlackScholesModel:
    """Closed-form European option pricer.

    Contracts with no time left or no volatility are worth their intrinsic
    value and carry zero Greeks.
    """

    def price(self, params: OptionContractParams) -> float:
        validate_contract_params(params)
        spot = params.underlying_price
        strike = params.strike_price
        tau = params.time_to_expiry
        sigma = params.sigma
        rate = params.risk_free_rate

        if tau <= 0.0 or sigma <= 0.0:
            return intrinsic_value(params.option_type, spot, strike)

        d1, d2 = _d1_d2(spot, strike, tau, sigma, rate)
        discount = math.exp(-rate * tau)
        if params.option_type is OptionType.CALL:
            return spot * norm_cdf(d1) - strike * discount * norm_cdf(d2)
        return strike * discount * norm_cdf(-d2) - spot * norm_cdf(-d1)

    def greeks(self, params: OptionContractParams) -> Greeks:
        validate_contract_params(params)
        spot = params.underlying_price
        strike = params.strike_price
        tau = params.time_to_expiry
        sigma = params.sigma
        rate = params.risk_free_rate

        if tau <= 0.0 or sigma <= 0.0:
            return Greeks.zero()

        sqrt_t = math.sqrt(tau)
        d1, d2 = _d1_d2(spot, strike, tau, sigma, rate)
        discount = math.exp(-rate * tau)
        pdf = norm_pdf(d1)

        gamma = pdf / (spot * sigma * sqrt_t)
        vega = spot * pdf * sqrt_t
        decay = -(spot * pdf * sigma) / (2.0 * sqrt_t)

        if params.option_type is OptionType.CALL:
            delta = norm_cdf(d1)
            theta = decay - rate * strike * discount * norm_cdf(d2)
            rho = strike * tau * discount * norm_cdf(d2)
        else:
            delta = norm_cdf(d1) - 1.0
            theta = decay + rate * strike * discount * norm_cdf(-d2)
            rho = -strike * tau * discount * norm_cdf(-d2)

        return Greeks(
            delta=delta,
            gamma=gamma,
            theta=theta / 365.0,
            vega=vega / 100.0,
            rho=rho / 100.0,
        )

    def solve_implied_volatility(
        self,
        market_price: float,
        params: OptionContractParams,
        *,
        initial_guess: float = IV_INITIAL_GUESS,
        tolerance: float = IV_TOLERANCE,
        max_iterations: int = IV_MAX_ITERATIONS,
    ) -> ImpliedVolatilityResult:
        """Newton-Raphson solve for the decimal volatility matching ``market_price``.

        The estimate is clamped to ``IV_SIGMA_BOUNDS`` after every step. The
        solve stops early when vega vanishes; the best estimate is always
        returned and ``converged`` tells callers whether to trust it.
        """

        validate_contract_params(params)
        lower, upper = IV_SIGMA_BOUNDS
        sigma = initial_guess

        for iteration in range(max_iterations):
            trial = params.with_volatility(sigma * 100.0)
            diff = self.price(trial) - market_price
            if abs(diff) < tolerance:
                return ImpliedVolatilityResult(volatility=sigma, iterations=iteration, converged=True)

            vega = self.greeks(trial).vega * 100.0
            if vega == 0.0:
                LOGGER.debug("Vega vanished at sigma=%.6f; stopping implied volatility solve", sigma)
                return ImpliedVolatilityResult(volatility=sigma, iterations=iteration, converged=False)

            sigma = clamp(sigma - diff / vega, lower, upper)

        LOGGER.debug(
            "Implied volatility did not converge after %d iterations (sigma=%.6f)",
            max_iterations,
            sigma,
        )
        return ImpliedVolatilityResult(volatility=sigma, iterations=max_iterations, converged=False)

    def implied_volatility(self, market_price: float, params: OptionContractParams) -> float:
        return self.solve_implied_volatility(market_price, params).volatility
