"""Black-Scholes pricing endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, status

from ...core.pricing_models import intrinsic_value
from ..config import get_settings
from ..dependencies import get_engine
from ..mappers import greeks_payload, to_contract_params, to_iv_params
from ..schemas.request import ContractRequest, GreeksRequest, ImpliedVolatilityRequest, OnchainComparisonRequest
from ..schemas.response import (
    FixedPointTradeResponse,
    GreeksResponse,
    GreeksWithPositionResponse,
    ImpliedVolatilityResponse,
    OnchainComparisonResponse,
    PortfolioGreeksResponse,
    PriceResponse,
)

LOGGER = logging.getLogger(__name__)
router = APIRouter(prefix="/pricing", tags=["pricing"])
engine = get_engine()


@router.post("/price", response_model=PriceResponse)
async def price(request: ContractRequest) -> PriceResponse:
    params = to_contract_params(request, get_settings().risk_free_rate)
    try:
        theoretical = engine.price(params)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return PriceResponse(
        theoretical_price=theoretical,
        intrinsic_value=intrinsic_value(params.option_type, params.underlying_price, params.strike_price),
        time_to_expiry=params.time_to_expiry,
    )


@router.post("/greeks", response_model=GreeksWithPositionResponse)
async def greeks(request: GreeksRequest) -> GreeksWithPositionResponse:
    params = to_contract_params(request, get_settings().risk_free_rate)
    try:
        per_contract = engine.greeks(params)
        theoretical = engine.price(params)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    payload = greeks_payload(per_contract)
    position = engine.calculate_portfolio_greeks(
        [{**payload, "theoretical_price": theoretical, "quantity": request.quantity}]
    )
    return GreeksWithPositionResponse(
        greeks=GreeksResponse(**payload),
        position=PortfolioGreeksResponse(**position),
    )


@router.post("/implied-volatility", response_model=ImpliedVolatilityResponse)
async def implied_volatility(request: ImpliedVolatilityRequest) -> ImpliedVolatilityResponse:
    params = to_iv_params(request, get_settings().risk_free_rate)
    try:
        result = engine.implied_volatility(request.market_price, params)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not result.converged:
        LOGGER.info("Implied volatility solve did not converge after %d iterations", result.iterations)
    return ImpliedVolatilityResponse(
        implied_volatility=result.volatility,
        implied_volatility_pct=result.volatility * 100.0,
        iterations=result.iterations,
        converged=result.converged,
    )


@router.post("/onchain-comparison", response_model=OnchainComparisonResponse)
async def onchain_comparison(request: OnchainComparisonRequest) -> OnchainComparisonResponse:
    """Compare the pool contract's integer price with the Black-Scholes price."""

    params = to_contract_params(request, get_settings().risk_free_rate)
    try:
        result = engine.compare_with_fixed_point(
            params,
            quantity=request.quantity,
            pool_liquidity=request.pool_liquidity,
            side=request.side,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    trade = None
    if result.trade is not None:
        trade = FixedPointTradeResponse(**asdict(result.trade))
    return OnchainComparisonResponse(
        model_price=result.model_price,
        onchain_price=result.onchain_price,
        divergence=result.divergence,
        divergence_pct=result.divergence_pct,
        blocks_to_expiry=result.blocks_to_expiry,
        trade=trade,
    )
