"""AMM quoting and liquidity pool endpoints."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, status

from ...core.amm import chain_to_records
from ..config import get_settings
from ..dependencies import get_engine
from ..mappers import to_pool_state, to_quote_request
from ..schemas.request import (
    ChainRequest,
    ImpactRequest,
    LpRewardsRequest,
    PoolHealthRequest,
    QuoteRequest,
    SlippageRequest,
    SpreadRequest,
)
from ..schemas.response import (
    ChainResponse,
    ChainRowResponse,
    ImpactResponse,
    LpRewardsResponse,
    PoolHealthResponse,
    QuoteResponse,
    SlippageResponse,
    SpreadResponse,
    UtilizationCheckResponse,
)

LOGGER = logging.getLogger(__name__)
router = APIRouter(prefix="/amm", tags=["amm"])
engine = get_engine()


@router.post("/quote", response_model=QuoteResponse)
async def quote(request: QuoteRequest) -> QuoteResponse:
    """Quote one side of a trade; unpriceable inputs return ``available=false``."""

    quote_request = to_quote_request(request, get_settings().risk_free_rate)
    try:
        result = engine.quote(quote_request)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not result.available:
        return QuoteResponse(**asdict(result))

    slippage = engine.slippage(request.trade_size, request.pool_liquidity, result.mid_price)
    return QuoteResponse(
        **asdict(result),
        estimated_slippage=slippage.estimated_slippage,
        warning_level=engine.amm.warning_level(slippage.estimated_slippage, result.spread),
    )


@router.post("/spread", response_model=SpreadResponse)
async def spread(request: SpreadRequest) -> SpreadResponse:
    value = engine.dynamic_spread(
        request.pool_liquidity,
        request.total_volume,
        request.implied_volatility,
        request.days_to_expiration,
        request.base_spread,
    )
    return SpreadResponse(spread=value, spread_pct=value * 100.0)


@router.post("/slippage", response_model=SlippageResponse)
async def slippage(request: SlippageRequest) -> SlippageResponse:
    estimate = engine.slippage(
        request.requested_size,
        request.pool_liquidity,
        request.current_price,
        request.max_slippage_tolerance,
    )
    return SlippageResponse(**asdict(estimate))


@router.post("/impact", response_model=ImpactResponse)
async def impact(request: ImpactRequest) -> ImpactResponse:
    try:
        projection = engine.simulate_impact(
            request.current_price,
            request.trade_size,
            request.side,
            request.pool_liquidity,
            request.total_volume,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ImpactResponse(**asdict(projection))


@router.post("/lp-rewards", response_model=LpRewardsResponse)
async def lp_rewards(request: LpRewardsRequest) -> LpRewardsResponse:
    rewards = engine.amm.lp_rewards(
        request.liquidity_provided,
        request.total_pool_liquidity,
        request.total_volume,
        request.fee_rate,
    )
    minted = None
    if request.total_lp_tokens is not None:
        minted = engine.amm.lp_tokens_to_mint(
            request.liquidity_provided, request.total_pool_liquidity, request.total_lp_tokens
        )
    return LpRewardsResponse(**asdict(rewards), lp_tokens_to_mint=minted)


@router.post("/pool-health", response_model=PoolHealthResponse)
async def pool_health(request: PoolHealthRequest) -> PoolHealthResponse:
    pool = to_pool_state(request)
    health = engine.amm.pool_health(pool)

    trade_check = None
    if request.trade is not None:
        trade = request.trade
        check = engine.amm.check_utilization(pool, trade.premium * trade.quantity, trade.side)
        collateral = engine.amm.collateral_required(
            trade.option_type,
            trade.side,
            trade.quantity,
            trade.underlying_price,
            trade.strike_price,
        )
        trade_check = UtilizationCheckResponse(
            is_allowed=check.is_allowed,
            message=check.message,
            collateral_required=collateral,
        )

    return PoolHealthResponse(**asdict(health), trade_check=trade_check)


@router.post("/chain", response_model=ChainResponse)
async def chain(request: ChainRequest) -> ChainResponse:
    limit = get_settings().max_chain_pools
    if len(request.pools) > limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {limit} pools may be quoted per request",
        )

    pools = [pool.model_dump(exclude_none=True, mode="json") for pool in request.pools]
    try:
        board = await asyncio.to_thread(
            engine.build_option_chain,
            pools,
            request.underlying_prices,
            trade_size=request.trade_size,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    LOGGER.debug("Built option chain with %d rows from %d pools", len(board), len(pools))
    return ChainResponse(rows=[ChainRowResponse(**row) for row in chain_to_records(board)])
