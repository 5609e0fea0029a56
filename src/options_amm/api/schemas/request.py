"""Pydantic request schemas exposed by the public API."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...core.models import OptionType, TradeSide


class StrategyName(str, Enum):
    LONG_CALL = "long_call"
    LONG_PUT = "long_put"
    COVERED_CALL = "covered_call"
    CASH_SECURED_PUT = "cash_secured_put"
    STRADDLE = "straddle"
    STRANGLE = "strangle"
    IRON_CONDOR = "iron_condor"
    BUTTERFLY = "butterfly"


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)


class ContractRequest(_Request):
    """Contract inputs; spot and strike positivity is enforced by the pricing model."""

    underlying_price: float = Field(..., le=1e9)
    strike_price: float = Field(..., le=1e9)
    days_to_expiration: float = Field(..., ge=0, le=36_500)
    implied_volatility: float = Field(..., ge=0, le=1_000)
    option_type: OptionType = OptionType.CALL
    risk_free_rate: Optional[float] = Field(None, ge=-1.0, le=1.0)


class GreeksRequest(ContractRequest):
    quantity: float = Field(1.0, ge=-1_000_000, le=1_000_000)


class OnchainComparisonRequest(ContractRequest):
    """Contract inputs plus an optional pool trade to replay on the integer model."""

    quantity: int = Field(0, ge=0, le=1_000_000)
    pool_liquidity: float = Field(0.0, ge=0, le=1e15)
    side: TradeSide = TradeSide.BUY


class ImpliedVolatilityRequest(_Request):
    market_price: float = Field(..., ge=0, le=1e9)
    underlying_price: float = Field(..., le=1e9)
    strike_price: float = Field(..., le=1e9)
    days_to_expiration: float = Field(..., ge=0, le=36_500)
    option_type: OptionType = OptionType.CALL
    risk_free_rate: Optional[float] = Field(None, ge=-1.0, le=1.0)


class QuoteRequest(_Request):
    """AMM quote inputs. Zero prices or liquidity yield an unavailable quote."""

    underlying_price: float = Field(..., ge=0, le=1e9)
    strike_price: float = Field(..., ge=0, le=1e9)
    days_to_expiration: float = Field(30, ge=0, le=36_500)
    implied_volatility: float = Field(45.0, ge=0, le=1_000)
    option_type: OptionType = OptionType.CALL
    pool_liquidity: float = Field(1_000_000.0, ge=0, le=1e15)
    total_volume: float = Field(50_000.0, ge=0, le=1e15)
    trade_size: float = Field(1.0, ge=0, le=1e9)
    side: TradeSide = TradeSide.BUY
    risk_free_rate: Optional[float] = Field(None, ge=-1.0, le=1.0)


class SpreadRequest(_Request):
    pool_liquidity: float = Field(..., ge=0, le=1e15)
    total_volume: float = Field(..., ge=0, le=1e15)
    implied_volatility: float = Field(..., ge=0, le=1_000)
    days_to_expiration: float = Field(..., ge=0, le=36_500)
    base_spread: Optional[float] = Field(None, ge=0, le=1.0)


class SlippageRequest(_Request):
    requested_size: float = Field(..., ge=0, le=1e9)
    pool_liquidity: float = Field(..., gt=0, le=1e15)
    current_price: float = Field(..., ge=0, le=1e9)
    max_slippage_tolerance: Optional[float] = Field(None, ge=0, le=10.0)


class ImpactRequest(_Request):
    current_price: float = Field(..., ge=0, le=1e9)
    trade_size: float = Field(..., ge=0, le=1e9)
    side: TradeSide
    pool_liquidity: float = Field(..., gt=0, le=1e15)
    total_volume: float = Field(0.0, ge=0, le=1e15)


class LpRewardsRequest(_Request):
    liquidity_provided: float = Field(..., gt=0, le=1e15)
    total_pool_liquidity: float = Field(..., ge=0, le=1e15)
    total_volume: float = Field(..., ge=0, le=1e15)
    fee_rate: Optional[float] = Field(None, ge=0, le=1.0)
    total_lp_tokens: Optional[float] = Field(None, ge=0, le=1e15)


class TradeCheckRequest(_Request):
    side: TradeSide
    option_type: OptionType = OptionType.CALL
    quantity: float = Field(..., gt=0, le=1e9)
    underlying_price: float = Field(..., gt=0, le=1e9)
    strike_price: float = Field(..., gt=0, le=1e9)
    premium: float = Field(0.0, ge=0, le=1e9)


class PoolHealthRequest(_Request):
    pool_liquidity: float = Field(..., gt=0, le=1e15)
    total_volume: float = Field(0.0, ge=0, le=1e15)
    total_open_interest: float = Field(0.0, ge=0, le=1e15)
    max_open_interest_ratio: float = Field(0.8, gt=0, le=1.0)
    collateralization_ratio: float = Field(1.25, gt=0, le=100.0)
    trade: Optional[TradeCheckRequest] = None


class ChainPoolRequest(_Request):
    underlying_asset: str = Field(..., min_length=1, max_length=20)
    strike_price: float = Field(..., gt=0, le=1e9)
    option_type: OptionType
    expiration_timestamp: Optional[float] = Field(None, ge=0)
    days_to_expiration: Optional[float] = Field(None, ge=0, le=36_500)
    implied_volatility: Optional[float] = Field(None, gt=0, le=1_000)
    total_liquidity: Optional[float] = Field(None, gt=0, le=1e15)
    total_volume: Optional[float] = Field(None, ge=0, le=1e15)

    @field_validator("underlying_asset")
    @classmethod
    def asset(cls, v: str) -> str:
        v = v.upper()
        if not re.fullmatch(r"[A-Z0-9.\-]{1,20}", v):
            raise ValueError("underlying_asset must be 1-20 uppercase alphanumerics")
        return v


class ChainRequest(_Request):
    pools: List[ChainPoolRequest]
    underlying_prices: Dict[str, float]
    trade_size: float = Field(1.0, gt=0, le=1e9)

    @field_validator("underlying_prices")
    @classmethod
    def prices(cls, v: Dict[str, float]) -> Dict[str, float]:
        return {key.upper(): value for key, value in v.items()}


class StrategyRequest(_Request):
    strategy: StrategyName
    spot: float = Field(..., gt=0, le=1e9)
    strike: float = Field(..., gt=0, le=1e9)
    days_to_expiration: float = Field(30, ge=0, le=36_500)
    implied_volatility: float = Field(30.0, ge=0, le=1_000)
    risk_free_rate: Optional[float] = Field(None, ge=-1.0, le=1.0)
    premium: Optional[float] = Field(None, ge=0, le=1e9)
    width: Optional[float] = Field(None, gt=0, le=1e9)
    price_range: float = Field(0.2, gt=0, lt=1.0)
    grid_points: int = Field(51, ge=2, le=2_001)


class PositionRequest(_Request):
    symbol: str = Field(..., min_length=1, max_length=20)
    option_type: OptionType
    strike_price: float = Field(..., gt=0, le=1e9)
    contracts: float = Field(..., ge=-1_000_000, le=1_000_000)
    premium: float = Field(0.0, ge=0, le=1e9)
    position_id: Optional[str] = Field(None, max_length=64)
    expiration: Optional[datetime] = None

    @field_validator("symbol")
    @classmethod
    def sym(cls, v: str) -> str:
        return v.upper()

    @field_validator("contracts")
    @classmethod
    def non_zero(cls, v: float) -> float:
        if v == 0:
            raise ValueError("contracts must be non-zero")
        return v

    @field_validator("expiration")
    @classmethod
    def aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class SettlementRequest(_Request):
    positions: List[PositionRequest] = Field(..., min_length=1, max_length=1_000)
    settlement_prices: Dict[str, float]

    @field_validator("settlement_prices")
    @classmethod
    def prices(cls, v: Dict[str, float]) -> Dict[str, float]:
        return {key.upper(): value for key, value in v.items()}
