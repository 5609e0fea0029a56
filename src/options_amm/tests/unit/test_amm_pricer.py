"""Tests for the AMM quote engine."""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import UTC, datetime

import numpy as np
import pytest

from options_amm.core.amm import NO_LIQUIDITY_WARNING, AmmPricer, chain_to_records
from options_amm.core.models import (
    AmmQuoteRequest,
    HealthLevel,
    OptionType,
    PoolState,
    TradeSide,
    WarningLevel,
)


@pytest.fixture()
def pricer() -> AmmPricer:
    return AmmPricer()


def _request(**overrides: object) -> AmmQuoteRequest:
    request = AmmQuoteRequest(
        underlying_price=100.0,
        strike_price=100.0,
        days_to_expiration=30,
        implied_volatility=45.0,
        option_type=OptionType.CALL,
        pool_liquidity=1_000_000.0,
        total_volume=50_000.0,
        trade_size=10.0,
        side=TradeSide.BUY,
    )
    return replace(request, **overrides)


def test_dynamic_spread_reference_scenarios(pricer: AmmPricer) -> None:
    # volume below the reference widens the spread by the 1.5 cap
    assert pricer.dynamic_spread(1_000_000, 50_000, 45, 30) == pytest.approx(0.02 * 1.135 * 1.5)
    assert pricer.dynamic_spread(1_000_000, 100_000, 45, 30) == pytest.approx(0.0227)


@pytest.mark.parametrize(
    "liquidity,volume,iv,days",
    [
        (1.0, 0.0, 1_000.0, 1),
        (0.0, 0.0, 500.0, 0),
        (-5.0, 0.0, 45.0, 30),
        (1e12, 1e12, 0.0, 3_650),
        (1e12, 1e12, 0.0, 10_000),
        (1.0, 0.0, 1_000.0, 10_000),
        (1e12, 1e12, -500.0, 365),
        (1_000_000.0, 50_000.0, 45.0, -3),
    ],
)
def test_dynamic_spread_stays_within_band(pricer: AmmPricer, liquidity, volume, iv, days) -> None:
    assert 0.01 <= pricer.dynamic_spread(liquidity, volume, iv, days) <= 0.15


def test_dynamic_spread_honours_base_spread_override(pricer: AmmPricer) -> None:
    narrow = pricer.dynamic_spread(1_000_000, 100_000, 45, 30, base_spread=0.01)
    wide = pricer.dynamic_spread(1_000_000, 100_000, 45, 30, base_spread=0.04)
    assert narrow == pytest.approx(0.01135)
    assert wide == pytest.approx(0.0454)


@pytest.mark.parametrize(
    "size,liquidity,price",
    [(0, 1_000_000, 5.0), (10, 0, 5.0), (10, 1_000_000, 0.0), (None, 1_000_000, 5.0), (-1, 1_000_000, 5.0)],
)
def test_price_impact_multiplier_is_neutral_for_missing_inputs(pricer: AmmPricer, size, liquidity, price) -> None:
    assert pricer.price_impact_multiplier(size, liquidity, price, TradeSide.BUY) == 1.0
    assert pricer.price_impact_multiplier(size, liquidity, price, TradeSide.SELL) == 1.0


def test_price_impact_multiplier_values(pricer: AmmPricer) -> None:
    impact = 0.003 + (50.0 / 1_000_000.0) ** 1.5 * 0.1
    assert pricer.price_impact_multiplier(10, 1_000_000, 5.0, "buy") == pytest.approx(1.0 + impact)
    assert pricer.price_impact_multiplier(10, 1_000_000, 5.0, "sell") == pytest.approx(1.0 - impact)


def test_buy_quote_marks_up_ask_only(pricer: AmmPricer) -> None:
    quote = pricer.quote(_request())
    assert quote.available
    assert quote.reason is None
    assert quote.mid_price == pytest.approx(quote.theoretical_price)
    assert quote.price == quote.ask_price
    assert quote.ask_price >= quote.mid_price >= quote.bid_price
    half_spread = quote.spread / 200.0
    assert quote.bid_price == pytest.approx(quote.mid_price * (1 - half_spread))
    assert quote.price_impact > 0


def test_sell_quote_marks_down_bid_only(pricer: AmmPricer) -> None:
    quote = pricer.quote(_request(side=TradeSide.SELL))
    assert quote.price == quote.bid_price
    assert quote.price <= quote.mid_price
    half_spread = quote.spread / 200.0
    assert quote.ask_price == pytest.approx(quote.mid_price * (1 + half_spread))
    assert quote.price_impact > 0


def test_quote_reports_spread_as_percentage(pricer: AmmPricer) -> None:
    quote = pricer.quote(_request())
    assert quote.spread == pytest.approx(pricer.dynamic_spread(1_000_000, 50_000, 45, 30) * 100)


def test_price_impact_is_positive_cost_for_both_sides(pricer: AmmPricer) -> None:
    rng = np.random.default_rng(5)
    for _ in range(100):
        size = float(rng.uniform(0.1, 5_000.0))
        liquidity = float(rng.uniform(10_000.0, 5_000_000.0))
        for side in TradeSide:
            quote = pricer.quote(_request(trade_size=size, pool_liquidity=liquidity, side=side))
            assert quote.price_impact >= 0.3 - 1e-9


def test_monetary_fields_are_floored_at_zero(pricer: AmmPricer) -> None:
    quote = pricer.quote(_request(side=TradeSide.SELL, trade_size=1e9, pool_liquidity=1_000.0))
    assert quote.available
    assert quote.price == 0.0
    assert quote.bid_price == 0.0
    assert min(quote.mid_price, quote.ask_price, quote.theoretical_price) >= 0.0


@pytest.mark.parametrize(
    "overrides,reason",
    [
        ({"underlying_price": 0.0}, "underlying_price_unavailable"),
        ({"underlying_price": float("nan")}, "underlying_price_unavailable"),
        ({"strike_price": 0.0}, "invalid_strike"),
        ({"pool_liquidity": 0.0}, "no_liquidity"),
        ({"trade_size": -1.0}, "invalid_trade_size"),
        ({"trade_size": float("nan")}, "invalid_trade_size"),
        ({"implied_volatility": 20_000.0}, "invalid_volatility"),
        ({"implied_volatility": float("inf")}, "invalid_volatility"),
        ({"risk_free_rate": 2.0}, "invalid_rate"),
    ],
)
def test_unpriceable_inputs_yield_unavailable_quote(pricer: AmmPricer, overrides, reason) -> None:
    quote = pricer.quote(_request(**overrides))
    assert not quote.available
    assert quote.reason == reason
    assert quote.price == quote.bid_price == quote.ask_price == quote.mid_price == 0.0


def test_expiry_below_one_day_is_quoted_as_one_day(pricer: AmmPricer) -> None:
    assert pricer.quote(_request(days_to_expiration=0)) == pricer.quote(_request(days_to_expiration=1))


def test_quote_both_sides_returns_executable_bid_and_ask(pricer: AmmPricer) -> None:
    sell, buy = pricer.quote_both_sides(_request())
    assert sell.price < buy.price
    assert sell.mid_price == buy.mid_price


def test_slippage_reference_scenario(pricer: AmmPricer) -> None:
    estimate = pricer.slippage(1_000, 1_000_000, 5.0)
    assert estimate.estimated_slippage == pytest.approx(0.005**1.2 * 0.1 * 100, rel=1e-9)
    assert estimate.estimated_slippage == pytest.approx(0.017328, rel=1e-3)
    assert estimate.is_acceptable
    assert estimate.max_recommended_size == 1_000
    assert estimate.warning is None


def test_slippage_recommends_size_at_tolerance(pricer: AmmPricer) -> None:
    estimate = pricer.slippage(200_000, 1_000_000, 5.0)
    assert not estimate.is_acceptable
    assert estimate.warning is not None

    expected = math.floor((0.05 / 0.1) ** (1 / 1.2) * 1_000_000 / 5.0)
    assert estimate.max_recommended_size == expected
    assert pricer.slippage(expected, 1_000_000, 5.0).is_acceptable


def test_slippage_warning_is_independent_of_acceptability(pricer: AmmPricer) -> None:
    estimate = pricer.slippage(200_000, 1_000_000, 5.0, max_slippage_tolerance=0.5)
    assert estimate.is_acceptable
    assert estimate.warning is not None


@pytest.mark.parametrize("liquidity", [0.0, -1.0, float("nan")])
def test_slippage_against_empty_pool_is_never_acceptable(pricer: AmmPricer, liquidity: float) -> None:
    estimate = pricer.slippage(1_000_000, liquidity, 5.0, max_slippage_tolerance=10.0)

    assert not estimate.is_acceptable
    assert estimate.max_recommended_size == 0
    assert estimate.warning == NO_LIQUIDITY_WARNING
    assert estimate.estimated_slippage == 100.0


def test_zero_size_trade_has_no_slippage(pricer: AmmPricer) -> None:
    estimate = pricer.slippage(0, 1_000_000, 5.0)
    assert estimate.estimated_slippage == 0.0
    assert estimate.is_acceptable


def test_simulate_impact_buy(pricer: AmmPricer) -> None:
    projection = pricer.simulate_impact(5.0, 100, TradeSide.BUY, 1_000_000, 0)
    assert projection.new_liquidity == pytest.approx(1_000_250.0)
    assert projection.new_volume == pytest.approx(500.0)
    assert projection.price_change == pytest.approx(5e-4)
    assert projection.new_mid_price == pytest.approx(5.0 * (1 + 5e-6))


@pytest.mark.parametrize("liquidity", [0.0, -10.0])
def test_simulate_impact_requires_liquidity(pricer: AmmPricer, liquidity: float) -> None:
    with pytest.raises(ValueError, match="pool_liquidity"):
        pricer.simulate_impact(5.0, 100, TradeSide.BUY, liquidity, 0)


def test_simulate_impact_floors(pricer: AmmPricer) -> None:
    drained = pricer.simulate_impact(5.0, 400, "sell", 1_500, 0)
    assert drained.new_liquidity == 1_000.0
    assert drained.price_change < 0

    crashed = pricer.simulate_impact(0.01, 1e9, "sell", 1_000, 0)
    assert crashed.new_mid_price == 0.01


def test_lp_rewards(pricer: AmmPricer) -> None:
    rewards = pricer.lp_rewards(100_000, 1_000_000, 1_000_000)
    assert rewards.pool_share == pytest.approx(10.0)
    assert rewards.fees_earned == pytest.approx(300.0)
    assert rewards.estimated_apy == pytest.approx(109.5)

    capped = pricer.lp_rewards(1, 1, 1e9)
    assert capped.estimated_apy == 1_000.0


def test_lp_tokens_to_mint(pricer: AmmPricer) -> None:
    assert pricer.lp_tokens_to_mint(500, 0, 0) == 500
    assert pricer.lp_tokens_to_mint(100, 1_000, 500) == pytest.approx(50.0)
    with pytest.raises(ValueError):
        pricer.lp_tokens_to_mint(0, 1_000, 500)


@pytest.mark.parametrize(
    "open_interest,level",
    [(0.0, HealthLevel.HEALTHY), (600_000.0, HealthLevel.CAUTION), (750_000.0, HealthLevel.RISKY)],
)
def test_pool_health_levels(pricer: AmmPricer, open_interest: float, level: HealthLevel) -> None:
    health = pricer.pool_health(PoolState(pool_liquidity=1_000_000, total_open_interest=open_interest))
    assert health.level is level
    assert health.utilization == pytest.approx(open_interest / 10_000)
    assert health.max_utilization == pytest.approx(80.0)


def test_pool_state_rejects_invalid_ratio() -> None:
    with pytest.raises(ValueError):
        PoolState(pool_liquidity=1_000, max_open_interest_ratio=0.0)


def test_check_utilization(pricer: AmmPricer) -> None:
    pool = PoolState(pool_liquidity=1_000_000, total_open_interest=750_000)
    assert pricer.check_utilization(pool, 100_000, TradeSide.BUY).is_allowed

    blocked = pricer.check_utilization(pool, 100_000, TradeSide.SELL)
    assert not blocked.is_allowed
    assert "80%" in blocked.message

    assert pricer.check_utilization(pool, 10_000, TradeSide.SELL).is_allowed


def test_collateral_required(pricer: AmmPricer) -> None:
    assert pricer.collateral_required(OptionType.CALL, TradeSide.SELL, 3, 120.0, 100.0) == 360.0
    assert pricer.collateral_required(OptionType.PUT, TradeSide.SELL, 3, 120.0, 100.0) == 300.0
    assert pricer.collateral_required(OptionType.PUT, TradeSide.BUY, 3, 120.0, 100.0) == 0.0


@pytest.mark.parametrize(
    "slippage,spread,level",
    [
        (0.1, 2.0, WarningLevel.LOW),
        (2.5, 2.0, WarningLevel.MEDIUM),
        (0.1, 6.0, WarningLevel.MEDIUM),
        (5.5, 2.0, WarningLevel.HIGH),
        (0.1, 12.0, WarningLevel.HIGH),
    ],
)
def test_warning_level(pricer: AmmPricer, slippage: float, spread: float, level: WarningLevel) -> None:
    assert pricer.warning_level(slippage, spread) is level


def _pools() -> list[dict[str, object]]:
    return [
        {"underlying_asset": "BTC", "strike_price": 110.0, "option_type": "call", "days_to_expiration": 10},
        {"underlying_asset": "BTC", "strike_price": 100.0, "option_type": "put", "days_to_expiration": 10},
        {"underlying_asset": "BTC", "strike_price": 100.0, "option_type": "call", "days_to_expiration": 10},
        {"underlying_asset": "ETH", "strike_price": 0.0, "option_type": "call"},
    ]


def test_build_option_chain_pivots_by_strike(pricer: AmmPricer) -> None:
    board = pricer.build_option_chain(_pools(), {"BTC": 105.0})

    assert list(board["strike"]) == [100.0, 110.0]
    first = board.iloc[0]
    assert first["call_bid"] <= first["call_mid"] <= first["call_ask"]
    assert first["put_bid"] <= first["put_mid"] <= first["put_ask"]
    assert np.isnan(board.iloc[1]["put_mid"])


def test_build_option_chain_quotes_zero_without_underlying_price(pricer: AmmPricer) -> None:
    board = pricer.build_option_chain(_pools()[:1], {})
    assert board.iloc[0]["call_ask"] == 0.0


def test_build_option_chain_derives_days_from_expiration_timestamp(pricer: AmmPricer) -> None:
    now = datetime(2025, 1, 1, tzinfo=UTC)
    by_timestamp = {
        "underlying_asset": "BTC",
        "strike_price": 100.0,
        "option_type": "call",
        "expiration_timestamp": now.timestamp() + 10 * 86_400 + 600,
    }
    by_days = dict(by_timestamp, days_to_expiration=10)
    del by_days["expiration_timestamp"]

    left = pricer.build_option_chain([by_timestamp], {"BTC": 100.0}, now=now)
    right = pricer.build_option_chain([by_days], {"BTC": 100.0}, now=now)
    assert left.iloc[0]["call_mid"] == pytest.approx(right.iloc[0]["call_mid"])


def test_chain_records_map_missing_sides_to_none(pricer: AmmPricer) -> None:
    records = chain_to_records(pricer.build_option_chain(_pools(), {"BTC": 105.0}))
    assert records[1]["put_bid"] is None
    assert isinstance(records[0]["call_ask"], float)
    assert chain_to_records(pricer.build_option_chain([], {})) == []
