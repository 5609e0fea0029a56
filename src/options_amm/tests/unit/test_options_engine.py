"""Tests for the engine facade: memoisation, metrics and aggregation."""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from options_amm.core.models import AmmQuoteRequest, OptionContractParams, OptionType, Position
from options_amm.core.pricing_engine import OptionsEngine, _ResultCache


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


PARAMS = OptionContractParams(100.0, 100.0, 30, 30.0, OptionType.CALL, 0.05)


def test_price_is_served_from_cache_on_repeat() -> None:
    engine = OptionsEngine(cache_size=16)
    before = _sample("oam_cache_hits_total", {"operation": "price"})

    first = engine.price(PARAMS)
    second = engine.price(PARAMS)

    assert first == second
    assert _sample("oam_cache_hits_total", {"operation": "price"}) == before + 1


def test_disabled_cache_never_hits() -> None:
    engine = OptionsEngine(cache_size=0)
    before = _sample("oam_cache_hits_total", {"operation": "greeks"})

    engine.greeks(PARAMS)
    engine.greeks(PARAMS)

    assert _sample("oam_cache_hits_total", {"operation": "greeks"}) == before


def test_result_cache_expires_entries() -> None:
    cache = _ResultCache(max_size=4, ttl_seconds=5.0)
    cache.put("k", 1.0, now=100.0)

    assert cache.get("k", now=104.0) == 1.0
    assert cache.get("k", now=106.0) is None
    assert len(cache) == 0


def test_result_cache_evicts_least_recently_used() -> None:
    cache = _ResultCache(max_size=2, ttl_seconds=0.0)
    cache.put("a", 1, now=0.0)
    cache.put("b", 2, now=0.0)
    cache.get("a", now=0.0)
    cache.put("c", 3, now=0.0)

    assert cache.get("a", now=0.0) == 1
    assert cache.get("b", now=0.0) is None
    assert cache.get("c", now=0.0) == 3


def test_model_errors_are_counted_and_reraised() -> None:
    engine = OptionsEngine(cache_size=0)
    before = _sample("oam_model_errors_total", {"operation": "price"})

    with pytest.raises(ValueError):
        engine.price(OptionContractParams(0.0, 100.0, 30, 30.0))

    assert _sample("oam_model_errors_total", {"operation": "price"}) == before + 1


def test_unavailable_quotes_are_counted_by_reason() -> None:
    engine = OptionsEngine()
    before = _sample("oam_quote_unavailable_total", {"reason": "no_liquidity"})

    quote = engine.quote(AmmQuoteRequest(underlying_price=100.0, strike_price=100.0, pool_liquidity=0.0))

    assert not quote.available
    assert _sample("oam_quote_unavailable_total", {"reason": "no_liquidity"}) == before + 1


def test_non_converging_iv_is_counted() -> None:
    engine = OptionsEngine()
    before = _sample("oam_iv_non_convergence_total")

    result = engine.implied_volatility(150.0, PARAMS)

    assert not result.converged
    assert _sample("oam_iv_non_convergence_total") == before + 1


def test_quote_both_sides_brackets_mid() -> None:
    engine = OptionsEngine()
    sell, buy = engine.quote_both_sides(AmmQuoteRequest(underlying_price=100.0, strike_price=105.0))
    assert sell.price < sell.mid_price < buy.price


def test_portfolio_greeks_weight_by_quantity() -> None:
    totals = OptionsEngine.calculate_portfolio_greeks(
        [
            {"delta": 0.5, "gamma": 0.02, "theta": -0.05, "vega": 0.1, "rho": 0.03, "theoretical_price": 4.0, "quantity": 3},
            {"delta": -0.4, "gamma": 0.01, "theta": -0.02, "vega": 0.2, "rho": -0.01, "theoretical_price": 2.0, "quantity": -2},
            {"delta": 0.1, "gamma": 0.0, "theta": 0.0, "vega": 0.0, "rho": 0.0, "theoretical_price": 1.0},
        ]
    )

    assert totals["delta"] == pytest.approx(1.5 + 0.8 + 0.1)
    assert totals["gamma"] == pytest.approx(0.06 - 0.02)
    assert totals["total_value"] == pytest.approx(12.0 - 4.0 + 1.0)
    assert totals["position_count"] == pytest.approx(6.0)


def test_settle_positions_requires_a_price_per_symbol() -> None:
    engine = OptionsEngine()
    positions = [Position("BTC", "call", 100.0, 1), Position("ETH", "put", 100.0, 1)]

    results = engine.settle_positions(positions, {"BTC": 110.0, "ETH": 90.0})
    assert [r.settlement_value for r in results] == pytest.approx([10.0, 10.0])

    with pytest.raises(ValueError, match="ETH"):
        engine.settle_positions(positions, {"BTC": 110.0})


def test_engine_forwards_amm_and_strategy_operations() -> None:
    engine = OptionsEngine()

    assert engine.dynamic_spread(1_000_000, 100_000, 45, 30) == pytest.approx(0.0227)
    assert engine.slippage(1_000, 1_000_000, 5.0).is_acceptable
    assert engine.simulate_impact(5.0, 100, "buy", 1_000_000, 0).new_volume == pytest.approx(500.0)
    assert engine.analyse_strategy("long_call", 150.0, 155.0, premium=3.5).breakevens == pytest.approx((158.5,))

    board = engine.build_option_chain(
        [{"underlying_asset": "BTC", "strike_price": 100.0, "option_type": "call"}], {"BTC": 100.0}
    )
    assert len(board) == 1


def test_fixed_point_comparison_uses_model_price() -> None:
    engine = OptionsEngine(cache_size=0)
    params = OptionContractParams(110.0, 100.0, 365, 75.0, OptionType.CALL, 0.05)
    before = _sample("oam_model_latency_seconds_count", {"operation": "fixed_point_comparison"})

    comparison = engine.compare_with_fixed_point(params, quantity=2, pool_liquidity=1_000.0, side="sell")

    assert comparison.model_price == pytest.approx(engine.price(params))
    assert comparison.onchain_price == pytest.approx(35.0)
    assert comparison.trade is not None and comparison.trade.pool_delta < 0
    assert _sample("oam_model_latency_seconds_count", {"operation": "fixed_point_comparison"}) == before + 1


def test_fixed_point_comparison_rejects_thin_pool_sell() -> None:
    engine = OptionsEngine(cache_size=0)
    params = OptionContractParams(110.0, 100.0, 365, 75.0, OptionType.CALL, 0.05)

    with pytest.raises(ValueError):
        engine.compare_with_fixed_point(params, quantity=1, pool_liquidity=10.0, side="sell")
