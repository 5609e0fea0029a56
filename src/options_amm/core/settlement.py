"""Cash settlement of expired option positions."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Iterable, Optional

from .models import ExpirationUrgency, Position, SettlementResult
from .pricing_models import intrinsic_value

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SettlementSummary:
    total_settlement_value: float
    total_pnl: float
    exercised: int
    expired_worthless: int


def settle_position(
    position: Position, settlement_price: float, now: Optional[datetime] = None
) -> SettlementResult:
    """Settle ``position`` against the final underlying price.

    ``settlement_value`` is signed by the position direction, so a written
    option that finishes in the money carries a negative value. The P&L is
    the settlement value less the premium exchanged at entry. Positions that
    carry an ``expiration`` also report whether they have expired as of
    ``now`` and how urgent their expiry is.
    """

    if not math.isfinite(settlement_price) or settlement_price < 0:
        raise ValueError("settlement_price must be a non-negative number")

    intrinsic = intrinsic_value(position.option_type, settlement_price, position.strike_price)
    settlement_value = intrinsic * position.contracts
    final_pnl = settlement_value - position.premium * position.contracts

    LOGGER.debug(
        "Settled %s %s strike=%.4f at %.4f: value=%.4f pnl=%.4f",
        position.symbol,
        position.option_type.value,
        position.strike_price,
        settlement_price,
        settlement_value,
        final_pnl,
    )

    expired: Optional[bool] = None
    urgency: Optional[ExpirationUrgency] = None
    if position.expiration is not None:
        expired = is_expired(position.expiration, now)
        urgency = expiration_urgency(position.expiration, now)
        if not expired:
            LOGGER.info("Settling %s before its expiration (%s)", position.symbol, urgency.value)

    return SettlementResult(
        position_id=position.position_id,
        symbol=position.symbol,
        settlement_price=settlement_price,
        intrinsic_value=intrinsic,
        settlement_value=settlement_value,
        final_pnl=final_pnl,
        is_exercised=intrinsic > 0,
        expired=expired,
        expiration_urgency=urgency,
    )


def is_expired(expiration: datetime, now: Optional[datetime] = None) -> bool:
    reference = now or datetime.now(UTC)
    return expiration <= reference


def expiration_urgency(expiration: datetime, now: Optional[datetime] = None) -> ExpirationUrgency:
    reference = now or datetime.now(UTC)
    days = (expiration - reference).days
    if days <= 0:
        return ExpirationUrgency.EXPIRED
    if days <= 1:
        return ExpirationUrgency.CRITICAL
    if days <= 3:
        return ExpirationUrgency.WARNING
    return ExpirationUrgency.NORMAL


def summarise_settlements(results: Iterable[SettlementResult]) -> SettlementSummary:
    total_value = 0.0
    total_pnl = 0.0
    exercised = 0
    worthless = 0
    for result in results:
        total_value += result.settlement_value
        total_pnl += result.final_pnl
        if result.is_exercised:
            exercised += 1
        else:
            worthless += 1
    return SettlementSummary(
        total_settlement_value=total_value,
        total_pnl=total_pnl,
        exercised=exercised,
        expired_worthless=worthless,
    )


__all__ = [
    "ExpirationUrgency",
    "SettlementSummary",
    "expiration_urgency",
    "is_expired",
    "settle_position",
    "summarise_settlements",
]
