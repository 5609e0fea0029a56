"""Strategy analysis and expiration settlement endpoints."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, status

from ...core.settlement import summarise_settlements
from ..config import get_settings
from ..dependencies import get_engine
from ..mappers import greeks_payload, to_position
from ..schemas.request import SettlementRequest, StrategyRequest
from ..schemas.response import (
    GreeksResponse,
    SettlementResponse,
    SettlementResultResponse,
    StrategyLegResponse,
    StrategyResponse,
)

LOGGER = logging.getLogger(__name__)
router = APIRouter(prefix="/analytics", tags=["analytics"])
engine = get_engine()


@router.post("/strategy", response_model=StrategyResponse)
async def strategy(request: StrategyRequest) -> StrategyResponse:
    rate = request.risk_free_rate if request.risk_free_rate is not None else get_settings().risk_free_rate
    try:
        analysis = await asyncio.to_thread(
            engine.analyse_strategy,
            request.strategy.value,
            request.spot,
            request.strike,
            days_to_expiration=request.days_to_expiration,
            implied_volatility=request.implied_volatility,
            risk_free_rate=rate,
            premium=request.premium,
            width=request.width,
            price_range=request.price_range,
            grid_points=request.grid_points,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return StrategyResponse(
        strategy=analysis.strategy,
        prices=list(analysis.prices),
        pnl=list(analysis.pnl),
        max_profit=analysis.max_profit,
        max_loss=analysis.max_loss,
        breakevens=list(analysis.breakevens),
        unbounded_profit=analysis.unbounded_profit,
        greeks=GreeksResponse(**greeks_payload(analysis.greeks)),
        legs=[StrategyLegResponse(**asdict(leg)) for leg in analysis.legs],
    )


@router.post("/settlement", response_model=SettlementResponse)
async def settlement(request: SettlementRequest) -> SettlementResponse:
    positions = [to_position(position) for position in request.positions]
    try:
        results = engine.settle_positions(positions, request.settlement_prices)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    summary = summarise_settlements(results)
    LOGGER.info(
        "Settled %d positions: %d exercised, total pnl %.2f",
        len(results),
        summary.exercised,
        summary.total_pnl,
    )
    return SettlementResponse(
        results=[SettlementResultResponse(**asdict(result)) for result in results],
        **asdict(summary),
    )
