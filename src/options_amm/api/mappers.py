"""Helpers for converting API schemas into domain models."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from ..core.models import (
    AmmQuoteRequest,
    Greeks,
    OptionContractParams,
    PoolState,
    Position,
)
from .schemas.request import (
    ContractRequest,
    ImpliedVolatilityRequest,
    PoolHealthRequest,
    PositionRequest,
    QuoteRequest,
)


def _rate(value: float | None, default_rate: float) -> float:
    return default_rate if value is None else value


def to_contract_params(request: ContractRequest, default_rate: float) -> OptionContractParams:
    """Convert an API contract request into the domain representation."""

    return OptionContractParams(
        underlying_price=request.underlying_price,
        strike_price=request.strike_price,
        days_to_expiration=request.days_to_expiration,
        implied_volatility=request.implied_volatility,
        option_type=request.option_type,
        risk_free_rate=_rate(request.risk_free_rate, default_rate),
    )


def to_iv_params(request: ImpliedVolatilityRequest, default_rate: float) -> OptionContractParams:
    """Contract params for an implied volatility solve; the volatility is a placeholder."""

    return OptionContractParams(
        underlying_price=request.underlying_price,
        strike_price=request.strike_price,
        days_to_expiration=request.days_to_expiration,
        implied_volatility=0.0,
        option_type=request.option_type,
        risk_free_rate=_rate(request.risk_free_rate, default_rate),
    )


def to_quote_request(request: QuoteRequest, default_rate: float) -> AmmQuoteRequest:
    return AmmQuoteRequest(
        underlying_price=request.underlying_price,
        strike_price=request.strike_price,
        days_to_expiration=request.days_to_expiration,
        implied_volatility=request.implied_volatility,
        option_type=request.option_type,
        pool_liquidity=request.pool_liquidity,
        total_volume=request.total_volume,
        trade_size=request.trade_size,
        side=request.side,
        risk_free_rate=_rate(request.risk_free_rate, default_rate),
    )


def to_pool_state(request: PoolHealthRequest) -> PoolState:
    return PoolState(
        pool_liquidity=request.pool_liquidity,
        total_volume=request.total_volume,
        total_open_interest=request.total_open_interest,
        max_open_interest_ratio=request.max_open_interest_ratio,
        collateralization_ratio=request.collateralization_ratio,
    )


def to_position(request: PositionRequest) -> Position:
    return Position(
        symbol=request.symbol,
        option_type=request.option_type,
        strike_price=request.strike_price,
        contracts=request.contracts,
        premium=request.premium,
        position_id=request.position_id,
        expiration=request.expiration,
    )


def greeks_payload(greeks: Greeks) -> Dict[str, Any]:
    return asdict(greeks)
