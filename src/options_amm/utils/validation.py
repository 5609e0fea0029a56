"""Validation helpers for pricing and quoting inputs."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Final, Optional

if TYPE_CHECKING:
    from ..core.models import AmmQuoteRequest, OptionContractParams

MAX_IMPLIED_VOLATILITY_PCT: Final[float] = 10_000.0


def validate_contract_params(params: OptionContractParams) -> None:
    """Validate the pricing preconditions.

    ``ln(S/K)`` is undefined for non-positive spot or strike, so these are
    rejected rather than clamped.
    """

    if not math.isfinite(params.underlying_price) or params.underlying_price <= 0:
        raise ValueError("underlying_price must be strictly positive")

    if not math.isfinite(params.strike_price) or params.strike_price <= 0:
        raise ValueError("strike_price must be strictly positive")

    if not math.isfinite(params.implied_volatility):
        raise ValueError("implied_volatility must be finite")

    if params.implied_volatility > MAX_IMPLIED_VOLATILITY_PCT:
        raise ValueError("implied_volatility is outside the supported range")

    if not math.isfinite(params.risk_free_rate) or not -1.0 <= params.risk_free_rate <= 1.0:
        raise ValueError("risk_free_rate must be within [-1, 1]")


def quote_unavailable_reason(request: AmmQuoteRequest) -> Optional[str]:
    """Return why a quote cannot be priced, or ``None`` when it can."""

    if not _is_positive(request.underlying_price):
        return "underlying_price_unavailable"
    if not _is_positive(request.strike_price):
        return "invalid_strike"
    if not _is_positive(request.pool_liquidity):
        return "no_liquidity"
    if not math.isfinite(request.trade_size) or request.trade_size < 0:
        return "invalid_trade_size"
    if not math.isfinite(request.implied_volatility) or request.implied_volatility > MAX_IMPLIED_VOLATILITY_PCT:
        return "invalid_volatility"
    if not math.isfinite(request.risk_free_rate) or not -1.0 <= request.risk_free_rate <= 1.0:
        return "invalid_rate"
    return None


def _is_positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0
