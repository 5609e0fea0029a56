import math

import numpy as np
import pytest

from options_amm.core.models import OptionContractParams, OptionType
from options_amm.core.pricing_models import BlackScholesModel


def _params(spot, strike, days, iv, option_type, rate=0.05):
    return OptionContractParams(
        underlying_price=spot,
        strike_price=strike,
        days_to_expiration=days,
        implied_volatility=iv,
        option_type=option_type,
        risk_free_rate=rate,
    )


def test_put_call_parity_on_random_grid():
    rng = np.random.default_rng(2024)
    bs = BlackScholesModel()
    for _ in range(200):
        spot = float(rng.uniform(10.0, 500.0))
        strike = float(spot * rng.uniform(0.5, 1.5))
        days = float(rng.integers(1, 730))
        iv = float(rng.uniform(5.0, 150.0))
        rate = float(rng.uniform(-0.01, 0.1))

        call = bs.price(_params(spot, strike, days, iv, OptionType.CALL, rate))
        put = bs.price(_params(spot, strike, days, iv, OptionType.PUT, rate))
        tau = days / 365.25
        forward_anchor = spot - strike * math.exp(-rate * tau)
        assert call - put == pytest.approx(forward_anchor, abs=1e-9 * max(spot, strike))


def test_delta_bounds_and_convexity_signs():
    rng = np.random.default_rng(11)
    bs = BlackScholesModel()
    for _ in range(200):
        spot = float(rng.uniform(10.0, 500.0))
        strike = float(spot * rng.uniform(0.5, 1.5))
        days = float(rng.integers(1, 365))
        iv = float(rng.uniform(5.0, 150.0))

        call = bs.greeks(_params(spot, strike, days, iv, OptionType.CALL))
        put = bs.greeks(_params(spot, strike, days, iv, OptionType.PUT))
        assert 0.0 <= call.delta <= 1.0
        assert -1.0 <= put.delta <= 0.0
        assert call.gamma >= 0.0 and put.gamma >= 0.0
        assert call.vega >= 0.0 and put.vega >= 0.0
        assert call.gamma == pytest.approx(put.gamma)
        assert call.vega == pytest.approx(put.vega)


@pytest.mark.parametrize(
    "spot,strike,option_type,expected",
    [
        (110.0, 100.0, OptionType.CALL, 10.0),
        (90.0, 100.0, OptionType.CALL, 0.0),
        (90.0, 100.0, OptionType.PUT, 10.0),
        (110.0, 100.0, OptionType.PUT, 0.0),
    ],
)
def test_price_converges_to_intrinsic_as_expiry_approaches(spot, strike, option_type, expected):
    bs = BlackScholesModel()
    price = bs.price(_params(spot, strike, 1e-4, 30.0, option_type))
    assert price == pytest.approx(expected, abs=1e-3)


def test_zero_time_or_volatility_returns_intrinsic_and_zero_greeks():
    bs = BlackScholesModel()
    expired = _params(120.0, 100.0, 0.0, 30.0, OptionType.CALL)
    flat = _params(80.0, 100.0, 30.0, 0.0, OptionType.PUT)

    assert bs.price(expired) == 20.0
    assert bs.price(flat) == 20.0
    for params in (expired, flat):
        greeks = bs.greeks(params)
        assert (greeks.delta, greeks.gamma, greeks.theta, greeks.vega, greeks.rho) == (0.0, 0.0, 0.0, 0.0, 0.0)


def test_call_price_increases_with_volatility():
    bs = BlackScholesModel()
    prices = [bs.price(_params(100.0, 105.0, 60.0, iv, OptionType.CALL)) for iv in (10.0, 20.0, 40.0, 80.0)]
    assert prices == sorted(prices)
    assert len(set(prices)) == len(prices)
