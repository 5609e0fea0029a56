"""AMM quote engine layered on top of the Black-Scholes model.

Quotes model how a constant-product style pool prices an option trade: a
dynamic spread around the theoretical mid price, plus a size-dependent impact
applied to the side being executed. Everything here is a pure function of its
inputs; pool state updates belong to the caller.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from ..utils.numerics import clamp
from ..utils.validation import quote_unavailable_reason
from .models import (
    AmmQuote,
    AmmQuoteRequest,
    HealthLevel,
    LpRewards,
    OptionType,
    PoolHealth,
    PoolState,
    SlippageEstimate,
    TradeImpactProjection,
    TradeSide,
    UtilizationCheck,
    WarningLevel,
)
from .pricing_models import BlackScholesModel

LOGGER = logging.getLogger(__name__)

HIGH_SLIPPAGE_WARNING = "High slippage detected"
NO_LIQUIDITY_WARNING = "Pool has no liquidity to fill this trade"
SECONDS_PER_DAY = 86_400.0


@dataclass(frozen=True, slots=True)
class AmmConfig:
    """Calibration constants of the AMM pricing curve."""

    reference_liquidity: float = 1_000_000.0
    reference_volume: float = 100_000.0
    reference_days: float = 30.0
    base_spread: float = 0.02
    min_spread: float = 0.01
    max_spread: float = 0.15
    liquidity_factor_bounds: Tuple[float, float] = (0.5, 2.0)
    volatility_spread_weight: float = 0.3
    time_factor_bounds: Tuple[float, float] = (1.0, 3.0)
    volume_factor_bounds: Tuple[float, float] = (0.8, 1.5)
    min_volume: float = 1_000.0
    base_fee: float = 0.003
    impact_exponent: float = 1.5
    impact_scale: float = 0.1
    slippage_exponent: float = 1.2
    slippage_scale: float = 0.1
    slippage_warning_threshold: float = 0.02
    default_slippage_tolerance: float = 0.05
    liquidity_retention: float = 0.5
    min_liquidity: float = 1_000.0
    mid_price_drift: float = 0.01
    min_mid_price: float = 0.01
    lp_fee_rate: float = 0.003
    max_apy: float = 1_000.0


def _as_side(side: TradeSide | str) -> TradeSide:
    return side if isinstance(side, TradeSide) else TradeSide(side)


@dataclass(slots=True)
class AmmPricer:
    """Stateless AMM quoting surface."""

    config: AmmConfig = field(default_factory=AmmConfig)
    model: BlackScholesModel = field(default_factory=BlackScholesModel)

    def dynamic_spread(
        self,
        pool_liquidity: float,
        total_volume: float,
        implied_volatility: float,
        time_to_expiration: float,
        base_spread: Optional[float] = None,
    ) -> float:
        """Return the bid/ask spread as a decimal within the safety band.

        Thin pools, high volatility, short expiries and quiet pools all widen
        the spread multiplicatively.
        """

        cfg = self.config
        base = cfg.base_spread if base_spread is None else base_spread

        if pool_liquidity > 0:
            liquidity_factor = clamp(cfg.reference_liquidity / pool_liquidity, *cfg.liquidity_factor_bounds)
        else:
            liquidity_factor = cfg.liquidity_factor_bounds[1]
        volatility_factor = 1.0 + (implied_volatility / 100.0) * cfg.volatility_spread_weight
        time_factor = clamp(cfg.reference_days / max(1.0, time_to_expiration), *cfg.time_factor_bounds)
        volume_factor = clamp(
            cfg.reference_volume / max(cfg.min_volume, total_volume), *cfg.volume_factor_bounds
        )

        spread = base * liquidity_factor * volatility_factor * time_factor * volume_factor
        return clamp(spread, cfg.min_spread, cfg.max_spread)

    def price_impact_multiplier(
        self,
        trade_size: float,
        pool_liquidity: float,
        base_price: float,
        side: TradeSide | str,
    ) -> float:
        """Return the factor applied to the executed side of a quote.

        Buys are scaled up and sells down by the fixed fee plus a
        super-linear term in trade value relative to pool depth. Missing
        inputs yield the neutral multiplier ``1.0``.
        """

        if not trade_size or not pool_liquidity or not base_price:
            return 1.0
        if trade_size < 0 or pool_liquidity < 0 or base_price < 0:
            return 1.0

        cfg = self.config
        liquidity_ratio = (trade_size * base_price) / pool_liquidity
        total_impact = cfg.base_fee + liquidity_ratio**cfg.impact_exponent * cfg.impact_scale

        if _as_side(side) is TradeSide.BUY:
            return 1.0 + total_impact
        return 1.0 - total_impact

    def quote(self, request: AmmQuoteRequest) -> AmmQuote:
        """Quote one side of a trade.

        Never raises for bad market inputs: anything the model cannot price
        yields :meth:`AmmQuote.unavailable` with a reason code.
        """

        reason = quote_unavailable_reason(request)
        if reason is not None:
            LOGGER.warning("AMM quote unavailable: %s", reason)
            return AmmQuote.unavailable(reason)

        days = max(1.0, request.days_to_expiration)
        params = replace(request.contract_params(), days_to_expiration=days)
        theoretical_price = self.model.price(params)

        spread = self.dynamic_spread(
            request.pool_liquidity,
            request.total_volume,
            request.implied_volatility,
            days,
        )
        mid_price = theoretical_price
        half_spread = spread / 2.0
        bid_price = mid_price * (1.0 - half_spread)
        ask_price = mid_price * (1.0 + half_spread)

        multiplier = self.price_impact_multiplier(
            request.trade_size, request.pool_liquidity, mid_price, request.side
        )

        if request.side is TradeSide.BUY:
            ask_price *= multiplier
            price = ask_price
            price_impact = (multiplier - 1.0) * 100.0
        else:
            bid_price *= multiplier
            price = bid_price
            price_impact = (1.0 - multiplier) * 100.0

        return AmmQuote(
            price=max(0.0, price),
            mid_price=max(0.0, mid_price),
            bid_price=max(0.0, bid_price),
            ask_price=max(0.0, ask_price),
            spread=spread * 100.0,
            price_impact=price_impact,
            theoretical_price=max(0.0, theoretical_price),
        )

    def quote_both_sides(self, request: AmmQuoteRequest) -> Tuple[AmmQuote, AmmQuote]:
        """Return ``(sell, buy)`` quotes; their prices are the executable bid and ask."""

        sell = self.quote(replace(request, side=TradeSide.SELL))
        buy = self.quote(replace(request, side=TradeSide.BUY))
        return sell, buy

    def slippage(
        self,
        requested_size: float,
        pool_liquidity: float,
        current_price: float,
        max_slippage_tolerance: Optional[float] = None,
    ) -> SlippageEstimate:
        """Estimate slippage for ``requested_size`` contracts.

        ``is_acceptable`` compares against the caller's tolerance while
        ``warning`` fires on a fixed threshold; the two are independent.
        An empty pool cannot fill any size: the estimate is reported as full
        slippage and the trade is never acceptable.
        """

        cfg = self.config
        tolerance = cfg.default_slippage_tolerance if max_slippage_tolerance is None else max_slippage_tolerance

        if not pool_liquidity > 0:
            return SlippageEstimate(
                estimated_slippage=100.0,
                is_acceptable=False,
                max_recommended_size=0,
                warning=NO_LIQUIDITY_WARNING,
            )

        trade_value = requested_size * current_price
        if trade_value > 0:
            estimate = (trade_value / pool_liquidity) ** cfg.slippage_exponent * cfg.slippage_scale
        else:
            estimate = 0.0

        is_acceptable = estimate <= tolerance
        if is_acceptable:
            max_size = requested_size
        else:
            ceiling = (tolerance / cfg.slippage_scale) ** (1.0 / cfg.slippage_exponent)
            max_size = math.floor(ceiling * pool_liquidity / max(cfg.min_mid_price, current_price))

        return SlippageEstimate(
            estimated_slippage=estimate * 100.0,
            is_acceptable=is_acceptable,
            max_recommended_size=max_size,
            warning=HIGH_SLIPPAGE_WARNING if estimate > cfg.slippage_warning_threshold else None,
        )

    def simulate_impact(
        self,
        current_price: float,
        trade_size: float,
        side: TradeSide | str,
        pool_liquidity: float,
        total_volume: float,
    ) -> TradeImpactProjection:
        """Project pool state one trade ahead. Advisory only."""

        if not pool_liquidity > 0:
            raise ValueError("pool_liquidity must be strictly positive")

        cfg = self.config
        is_buy = _as_side(side) is TradeSide.BUY
        trade_value = trade_size * current_price

        retained = trade_value * cfg.liquidity_retention
        new_liquidity = pool_liquidity + retained if is_buy else pool_liquidity - retained
        new_volume = total_volume + trade_value

        drift = cfg.mid_price_drift if is_buy else -cfg.mid_price_drift
        price_change = (trade_value / pool_liquidity) * drift
        new_mid_price = current_price * (1.0 + price_change)

        return TradeImpactProjection(
            new_liquidity=max(cfg.min_liquidity, new_liquidity),
            new_volume=new_volume,
            new_mid_price=max(cfg.min_mid_price, new_mid_price),
            price_change=price_change * 100.0,
        )

    def lp_rewards(
        self,
        liquidity_provided: float,
        total_pool_liquidity: float,
        total_volume: float,
        fee_rate: Optional[float] = None,
    ) -> LpRewards:
        """Estimate a liquidity provider's fee share and annualised yield."""

        cfg = self.config
        rate = cfg.lp_fee_rate if fee_rate is None else fee_rate
        pool_share = liquidity_provided / total_pool_liquidity if total_pool_liquidity > 0 else 0.0
        fees = total_volume * rate * pool_share
        apy = (fees / liquidity_provided) * 365.0 * 100.0 if liquidity_provided > 0 else 0.0
        return LpRewards(
            fees_earned=fees,
            pool_share=pool_share * 100.0,
            estimated_apy=clamp(apy, 0.0, cfg.max_apy),
        )

    @staticmethod
    def lp_tokens_to_mint(amount: float, total_liquidity: float, total_lp_tokens: float) -> float:
        """LP tokens minted for a deposit; an empty pool mints one for one."""

        if amount <= 0:
            raise ValueError("amount must be strictly positive")
        if total_liquidity <= 0:
            return amount
        return amount * total_lp_tokens / total_liquidity

    @staticmethod
    def pool_health(pool: PoolState) -> PoolHealth:
        liquidity = pool.pool_liquidity
        utilization = (pool.total_open_interest / liquidity) * 100.0 if liquidity > 0 else 0.0
        max_utilization = pool.max_open_interest_ratio * 100.0

        usage = utilization / max_utilization
        if usage > 0.9:
            level = HealthLevel.RISKY
        elif usage > 0.7:
            level = HealthLevel.CAUTION
        else:
            level = HealthLevel.HEALTHY

        return PoolHealth(
            utilization=utilization,
            max_utilization=max_utilization,
            level=level,
            collateralization_ratio=pool.collateralization_ratio,
        )

    @staticmethod
    def check_utilization(pool: PoolState, trade_notional: float, side: TradeSide | str) -> UtilizationCheck:
        """Reject written options that would push open interest past the pool cap."""

        if _as_side(side) is not TradeSide.SELL:
            return UtilizationCheck(is_allowed=True)

        new_open_interest = pool.total_open_interest + max(0.0, trade_notional)
        max_open_interest = pool.pool_liquidity * pool.max_open_interest_ratio
        if new_open_interest > max_open_interest:
            return UtilizationCheck(
                is_allowed=False,
                message=(
                    f"This trade exceeds the pool's max utilization "
                    f"({pool.max_open_interest_ratio * 100:.0f}%). Reduce trade size."
                ),
            )
        return UtilizationCheck(is_allowed=True)

    @staticmethod
    def collateral_required(
        option_type: OptionType | str,
        side: TradeSide | str,
        quantity: float,
        underlying_price: float,
        strike_price: float,
    ) -> float:
        """Collateral a writer must lock: covered calls and cash-secured puts."""

        if _as_side(side) is not TradeSide.SELL:
            return 0.0
        if OptionType(option_type) is OptionType.CALL:
            return underlying_price * quantity
        return strike_price * quantity

    @staticmethod
    def warning_level(estimated_slippage: float, spread: float) -> WarningLevel:
        """Bucket a quote by slippage and spread, both in percent."""

        if estimated_slippage > 5.0 or spread > 10.0:
            return WarningLevel.HIGH
        if estimated_slippage > 2.0 or spread > 5.0:
            return WarningLevel.MEDIUM
        return WarningLevel.LOW

    def build_option_chain(
        self,
        pools: Iterable[Mapping[str, Any]],
        underlying_prices: Mapping[str, float],
        *,
        trade_size: float = 1.0,
        now: Optional[datetime] = None,
    ) -> pd.DataFrame:
        """Quote every pool and pivot the results into a strike board.

        Each pool mapping carries ``underlying_asset``, ``strike_price`` and
        ``option_type`` plus optional ``expiration_timestamp`` (unix seconds)
        or ``days_to_expiration``, ``implied_volatility``, ``total_liquidity``
        and ``total_volume``. The board has one row per underlying and strike
        with ``call_*`` and ``put_*`` columns; a side without a pool is NaN and
        an unpriceable pool quotes zero.
        """

        reference = now or datetime.now(UTC)
        rows: Dict[Tuple[str, float], Dict[str, Any]] = {}

        for pool in pools:
            strike = float(pool.get("strike_price") or 0.0)
            if strike <= 0:
                continue
            asset = str(pool.get("underlying_asset", ""))
            option_type = OptionType(pool.get("option_type", OptionType.CALL.value))

            request = AmmQuoteRequest(
                underlying_price=float(underlying_prices.get(asset) or 0.0),
                strike_price=strike,
                days_to_expiration=_pool_days_to_expiration(pool, reference),
                implied_volatility=float(pool.get("implied_volatility") or 45.0),
                option_type=option_type,
                pool_liquidity=float(pool.get("total_liquidity") or 1_000_000.0),
                total_volume=float(pool.get("total_volume") or 50_000.0),
                trade_size=trade_size,
            )
            sell, buy = self.quote_both_sides(request)

            prefix = option_type.value
            row = rows.setdefault((asset, strike), {"underlying_asset": asset, "strike": strike})
            row[f"{prefix}_bid"] = sell.price
            row[f"{prefix}_ask"] = buy.price
            row[f"{prefix}_mid"] = buy.mid_price
            row[f"{prefix}_spread"] = buy.spread
            row[f"{prefix}_volume"] = request.total_volume

        frame = pd.DataFrame(list(rows.values()), columns=list(CHAIN_COLUMNS))
        if frame.empty:
            return frame
        return frame.sort_values(["underlying_asset", "strike"]).reset_index(drop=True)


CHAIN_COLUMNS: Tuple[str, ...] = (
    "underlying_asset",
    "strike",
    "call_bid",
    "call_ask",
    "call_mid",
    "call_spread",
    "call_volume",
    "put_bid",
    "put_ask",
    "put_mid",
    "put_spread",
    "put_volume",
)


def _pool_days_to_expiration(pool: Mapping[str, Any], now: datetime) -> float:
    if pool.get("days_to_expiration") is not None:
        return max(1.0, float(pool["days_to_expiration"]))
    expiration = pool.get("expiration_timestamp")
    if expiration is None:
        return 30.0
    remaining = float(expiration) - now.timestamp()
    return float(max(1, math.floor(remaining / SECONDS_PER_DAY)))


def chain_to_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    """Return the board as JSON serialisable records with NaN mapped to ``None``."""

    if frame.empty:
        return []
    records = frame.to_dict("records")
    for record in records:
        for key, value in list(record.items()):
            if isinstance(value, (float, np.floating)) and np.isnan(value):
                record[key] = None
            elif isinstance(value, (np.floating, np.integer)):
                record[key] = float(value)
    return records
