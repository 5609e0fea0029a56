"""Options engine facade combining the pricing model, the AMM and memoisation."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import astuple, dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, TypeVar

import pandas as pd

from ..observability.metrics import (
    CACHE_HITS,
    IV_NON_CONVERGENCE,
    MODEL_ERRORS,
    MODEL_LATENCY,
    QUOTE_UNAVAILABLE,
)
from . import fixed_point
from .amm import AmmConfig, AmmPricer
from .models import (
    AmmQuote,
    AmmQuoteRequest,
    Greeks,
    ImpliedVolatilityResult,
    OptionContractParams,
    Position,
    SettlementResult,
    SlippageEstimate,
    StrategyAnalysis,
    TradeImpactProjection,
    TradeSide,
)
from .pricing_models import BlackScholesModel
from .settlement import settle_position
from .strategies import analyse_strategy

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class _CacheEntry:
    """Internal representation of a cached result."""

    payload: Any
    timestamp: float


class _ResultCache:
    """Thread-safe LRU cache with TTL support.

    Payloads are immutable result records, so they are shared rather than
    copied.
    """

    def __init__(self, max_size: int = 10_000, ttl_seconds: float = 5.0) -> None:
        self._max_size = max(1, max_size)
        self._ttl = max(0.0, ttl_seconds)
        self._lock = threading.RLock()
        self._entries: "OrderedDict[Hashable, _CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: Hashable, now: Optional[float] = None) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            current_time = time.monotonic() if now is None else now
            if self._ttl and current_time - entry.timestamp > self._ttl:
                self._entries.pop(key, None)
                return None

            self._entries.move_to_end(key)
            return entry.payload

    def put(self, key: Hashable, payload: Any, now: Optional[float] = None) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)

            current_time = time.monotonic() if now is None else now
            self._entries[key] = _CacheEntry(payload, current_time)

            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class OptionsEngine:
    """Entry point used by the HTTP layer.

    Every operation is synchronous and side-effect free apart from metrics
    and the optional memoisation of ``price``, ``greeks`` and ``quote``. A
    ``cache_size`` of zero disables memoisation.
    """

    def __init__(
        self,
        *,
        cache_size: int = 10_000,
        cache_ttl_seconds: float = 5.0,
        amm_config: Optional[AmmConfig] = None,
        name: str = "default",
    ) -> None:
        self.name = name
        self.model = BlackScholesModel()
        self.amm = AmmPricer(config=amm_config or AmmConfig(), model=self.model)
        self._cache: Optional[_ResultCache] = (
            _ResultCache(max_size=cache_size, ttl_seconds=cache_ttl_seconds) if cache_size > 0 else None
        )

    def _measure(self, operation: str, func: Callable[[], T]) -> T:
        start = time.perf_counter()
        try:
            return func()
        except ValueError:
            MODEL_ERRORS.labels(operation=operation).inc()
            raise
        finally:
            MODEL_LATENCY.labels(operation=operation).observe(time.perf_counter() - start)

    def _memoised(self, operation: str, key: Hashable, func: Callable[[], T]) -> T:
        if self._cache is None:
            return self._measure(operation, func)

        cache_key = (operation, key)
        cached = self._cache.get(cache_key)
        if cached is not None:
            CACHE_HITS.labels(operation=operation).inc()
            return cached

        result = self._measure(operation, func)
        self._cache.put(cache_key, result)
        return result

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def price(self, params: OptionContractParams) -> float:
        return self._memoised("price", astuple(params), lambda: self.model.price(params))

    def greeks(self, params: OptionContractParams) -> Greeks:
        return self._memoised("greeks", astuple(params), lambda: self.model.greeks(params))

    def implied_volatility(self, market_price: float, params: OptionContractParams) -> ImpliedVolatilityResult:
        result = self._measure(
            "implied_volatility",
            lambda: self.model.solve_implied_volatility(market_price, params),
        )
        if not result.converged:
            IV_NON_CONVERGENCE.inc()
        return result

    def quote(self, request: AmmQuoteRequest) -> AmmQuote:
        result = self._memoised("quote", astuple(request), lambda: self.amm.quote(request))
        if not result.available:
            QUOTE_UNAVAILABLE.labels(reason=result.reason or "unknown").inc()
        return result

    def quote_both_sides(self, request: AmmQuoteRequest) -> tuple[AmmQuote, AmmQuote]:
        sell = self.quote(replace(request, side=TradeSide.SELL))
        buy = self.quote(replace(request, side=TradeSide.BUY))
        return sell, buy

    def dynamic_spread(
        self,
        pool_liquidity: float,
        total_volume: float,
        implied_volatility: float,
        time_to_expiration: float,
        base_spread: Optional[float] = None,
    ) -> float:
        return self._measure(
            "dynamic_spread",
            lambda: self.amm.dynamic_spread(
                pool_liquidity, total_volume, implied_volatility, time_to_expiration, base_spread
            ),
        )

    def slippage(
        self,
        requested_size: float,
        pool_liquidity: float,
        current_price: float,
        max_slippage_tolerance: Optional[float] = None,
    ) -> SlippageEstimate:
        return self._measure(
            "slippage",
            lambda: self.amm.slippage(requested_size, pool_liquidity, current_price, max_slippage_tolerance),
        )

    def simulate_impact(
        self,
        current_price: float,
        trade_size: float,
        side: TradeSide | str,
        pool_liquidity: float,
        total_volume: float,
    ) -> TradeImpactProjection:
        return self._measure(
            "simulate_impact",
            lambda: self.amm.simulate_impact(current_price, trade_size, side, pool_liquidity, total_volume),
        )

    def build_option_chain(
        self,
        pools: Iterable[Mapping[str, Any]],
        underlying_prices: Mapping[str, float],
        *,
        trade_size: float = 1.0,
        now: Optional[datetime] = None,
    ) -> pd.DataFrame:
        return self._measure(
            "option_chain",
            lambda: self.amm.build_option_chain(pools, underlying_prices, trade_size=trade_size, now=now),
        )

    def analyse_strategy(self, strategy: str, spot: float, strike: float, **kwargs: Any) -> StrategyAnalysis:
        return self._measure(
            "strategy",
            lambda: analyse_strategy(strategy, spot, strike, model=self.model, **kwargs),
        )

    def compare_with_fixed_point(
        self,
        params: OptionContractParams,
        *,
        quantity: int = 0,
        pool_liquidity: float = 0.0,
        side: TradeSide | str = TradeSide.BUY,
    ) -> fixed_point.FixedPointComparison:
        """Set the on-chain integer price of ``params`` against the Black-Scholes price."""

        def _compare() -> fixed_point.FixedPointComparison:
            return fixed_point.compare_with_model(
                params,
                self.model.price(params),
                quantity=quantity,
                pool_liquidity=pool_liquidity,
                is_buy=TradeSide(side) is TradeSide.BUY,
            )

        result = self._measure("fixed_point_comparison", _compare)
        LOGGER.debug(
            "On-chain price %.6f vs model %.6f (divergence %.6f)",
            result.onchain_price,
            result.model_price,
            result.divergence,
        )
        return result

    def settle_positions(
        self,
        positions: Sequence[Position],
        settlement_prices: Mapping[str, float],
        now: Optional[datetime] = None,
    ) -> List[SettlementResult]:
        """Settle every position against the price of its symbol."""

        def _settle() -> List[SettlementResult]:
            results = []
            for position in positions:
                if position.symbol not in settlement_prices:
                    raise ValueError(f"No settlement price for '{position.symbol}'")
                results.append(settle_position(position, settlement_prices[position.symbol], now))
            return results

        return self._measure("settlement", _settle)

    @staticmethod
    def calculate_portfolio_greeks(results: Iterable[Mapping[str, Any]]) -> Dict[str, float]:
        """Aggregate per-contract Greeks weighted by ``quantity``.

        Each mapping carries ``delta``, ``gamma``, ``theta``, ``vega``, ``rho``
        and ``theoretical_price`` per contract plus an optional signed
        ``quantity`` (default one contract).
        """

        totals = {
            "delta": 0.0,
            "gamma": 0.0,
            "theta": 0.0,
            "vega": 0.0,
            "rho": 0.0,
            "total_value": 0.0,
            "position_count": 0.0,
        }

        for result in results:
            quantity = result.get("quantity")
            quantity = 1.0 if quantity is None else float(quantity)
            for greek in ("delta", "gamma", "theta", "vega", "rho"):
                totals[greek] += float(result.get(greek) or 0.0) * quantity
            totals["total_value"] += float(result.get("theoretical_price") or 0.0) * quantity
            totals["position_count"] += abs(quantity)

        return totals
