"""Response schemas exposed by the API."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from ...core.models import ExpirationUrgency, HealthLevel, OptionType, WarningLevel


class PriceResponse(BaseModel):
    theoretical_price: float
    intrinsic_value: float
    time_to_expiry: float


class GreeksResponse(BaseModel):
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float


class PortfolioGreeksResponse(BaseModel):
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float
    total_value: float
    position_count: float


class GreeksWithPositionResponse(BaseModel):
    greeks: GreeksResponse
    position: PortfolioGreeksResponse


class ImpliedVolatilityResponse(BaseModel):
    implied_volatility: float
    implied_volatility_pct: float
    iterations: int
    converged: bool


class FixedPointTradeResponse(BaseModel):
    theoretical_price: int
    final_price: int
    total: int
    fee: int
    pool_delta: int


class OnchainComparisonResponse(BaseModel):
    model_price: float
    onchain_price: float
    divergence: float
    divergence_pct: Optional[float] = None
    blocks_to_expiry: int
    trade: Optional[FixedPointTradeResponse] = None


class QuoteResponse(BaseModel):
    available: bool
    reason: Optional[str] = None
    price: float
    mid_price: float
    bid_price: float
    ask_price: float
    spread: float
    price_impact: float
    theoretical_price: float
    estimated_slippage: Optional[float] = None
    warning_level: Optional[WarningLevel] = None


class SpreadResponse(BaseModel):
    spread: float
    spread_pct: float


class SlippageResponse(BaseModel):
    estimated_slippage: float
    is_acceptable: bool
    max_recommended_size: float
    warning: Optional[str] = None


class ImpactResponse(BaseModel):
    new_liquidity: float
    new_volume: float
    new_mid_price: float
    price_change: float


class LpRewardsResponse(BaseModel):
    fees_earned: float
    pool_share: float
    estimated_apy: float
    lp_tokens_to_mint: Optional[float] = None


class UtilizationCheckResponse(BaseModel):
    is_allowed: bool
    message: Optional[str] = None
    collateral_required: float


class PoolHealthResponse(BaseModel):
    utilization: float
    max_utilization: float
    level: HealthLevel
    collateralization_ratio: float
    trade_check: Optional[UtilizationCheckResponse] = None


class ChainRowResponse(BaseModel):
    underlying_asset: str
    strike: float
    call_bid: Optional[float] = None
    call_ask: Optional[float] = None
    call_mid: Optional[float] = None
    call_spread: Optional[float] = None
    call_volume: Optional[float] = None
    put_bid: Optional[float] = None
    put_ask: Optional[float] = None
    put_mid: Optional[float] = None
    put_spread: Optional[float] = None
    put_volume: Optional[float] = None


class ChainResponse(BaseModel):
    rows: List[ChainRowResponse]


class StrategyLegResponse(BaseModel):
    option_type: Optional[OptionType] = None
    strike_price: float
    quantity: float
    premium: float


class StrategyResponse(BaseModel):
    strategy: str
    prices: List[float]
    pnl: List[float]
    max_profit: float
    max_loss: float
    breakevens: List[float]
    unbounded_profit: bool
    greeks: GreeksResponse
    legs: List[StrategyLegResponse]


class SettlementResultResponse(BaseModel):
    position_id: Optional[str] = None
    symbol: str
    settlement_price: float
    intrinsic_value: float
    settlement_value: float
    final_pnl: float
    is_exercised: bool
    expired: Optional[bool] = None
    expiration_urgency: Optional[ExpirationUrgency] = None


class SettlementResponse(BaseModel):
    results: List[SettlementResultResponse]
    total_settlement_value: float
    total_pnl: float
    exercised: int
    expired_worthless: int
