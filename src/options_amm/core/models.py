"""Domain models for the AMM options pricing engine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

DAYS_PER_YEAR = 365.25


class OptionType(str, Enum):
    """Supported option contract types."""

    CALL = "call"
    PUT = "put"


class TradeSide(str, Enum):
    """Direction of a trade from the trader's point of view."""

    BUY = "buy"
    SELL = "sell"


class HealthLevel(str, Enum):
    """Coarse pool health buckets derived from utilisation."""

    HEALTHY = "healthy"
    CAUTION = "caution"
    RISKY = "risky"


class WarningLevel(str, Enum):
    """Trade ticket warning level derived from slippage and spread."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ExpirationUrgency(str, Enum):
    """How close a position is to expiry, in whole days."""

    EXPIRED = "expired"
    CRITICAL = "critical"
    WARNING = "warning"
    NORMAL = "normal"


@dataclass(frozen=True, slots=True)
class OptionContractParams:
    """Inputs required to price one option contract.

    ``implied_volatility`` is expressed in percentage points (``45`` means 45%)
    while ``risk_free_rate`` is a decimal fraction. Callers must supply a
    strictly positive ``underlying_price`` and ``strike_price``; the pricing
    model raises ``ValueError`` otherwise.
    """

    underlying_price: float
    strike_price: float
    days_to_expiration: float
    implied_volatility: float
    option_type: OptionType = OptionType.CALL
    risk_free_rate: float = 0.05

    def __post_init__(self) -> None:
        if not isinstance(self.option_type, OptionType):
            object.__setattr__(self, "option_type", OptionType(self.option_type))

    @property
    def time_to_expiry(self) -> float:
        """Time to expiry in years."""

        return self.days_to_expiration / DAYS_PER_YEAR

    @property
    def sigma(self) -> float:
        """Implied volatility as a decimal fraction."""

        return self.implied_volatility / 100.0

    def with_volatility(self, implied_volatility: float) -> "OptionContractParams":
        return replace(self, implied_volatility=implied_volatility)


@dataclass(frozen=True, slots=True)
class Greeks:
    """Option sensitivities in display units.

    theta is per calendar day, vega per volatility point and rho per rate
    point.
    """

    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float

    @classmethod
    def zero(cls) -> "Greeks":
        return cls(delta=0.0, gamma=0.0, theta=0.0, vega=0.0, rho=0.0)

    def scaled(self, factor: float) -> "Greeks":
        """Return Greeks scaled by a position quantity."""
        return Greeks(
            delta=self.delta * factor,
            gamma=self.gamma * factor,
            theta=self.theta * factor,
            vega=self.vega * factor,
            rho=self.rho * factor,
        )


@dataclass(frozen=True, slots=True)
class ImpliedVolatilityResult:
    """Outcome of an implied volatility solve."""

    volatility: float
    iterations: int
    converged: bool


@dataclass(frozen=True, slots=True)
class PoolState:
    """Snapshot of an AMM liquidity pool supplied by the data layer."""

    pool_liquidity: float
    total_volume: float = 0.0
    total_open_interest: float = 0.0
    max_open_interest_ratio: float = 0.8
    collateralization_ratio: float = 1.25

    def __post_init__(self) -> None:
        if self.total_volume < 0:
            raise ValueError("total_volume must be non-negative")
        if self.total_open_interest < 0:
            raise ValueError("total_open_interest must be non-negative")
        if not 0.0 < self.max_open_interest_ratio <= 1.0:
            raise ValueError("max_open_interest_ratio must be within (0, 1]")


@dataclass(frozen=True, slots=True)
class AmmQuoteRequest:
    """Named inputs for an AMM quote."""

    underlying_price: float
    strike_price: float
    days_to_expiration: float = 30
    implied_volatility: float = 45.0
    option_type: OptionType = OptionType.CALL
    pool_liquidity: float = 1_000_000.0
    total_volume: float = 50_000.0
    trade_size: float = 1.0
    side: TradeSide = TradeSide.BUY
    risk_free_rate: float = 0.05

    def __post_init__(self) -> None:
        if not isinstance(self.option_type, OptionType):
            object.__setattr__(self, "option_type", OptionType(self.option_type))
        if not isinstance(self.side, TradeSide):
            object.__setattr__(self, "side", TradeSide(self.side))

    def contract_params(self) -> OptionContractParams:
        return OptionContractParams(
            underlying_price=self.underlying_price,
            strike_price=self.strike_price,
            days_to_expiration=self.days_to_expiration,
            implied_volatility=self.implied_volatility,
            option_type=self.option_type,
            risk_free_rate=self.risk_free_rate,
        )


@dataclass(frozen=True, slots=True)
class AmmQuote:
    """Executable AMM quote.

    ``spread`` and ``price_impact`` are percentages. When ``available`` is
    ``False`` every monetary field is zero and ``reason`` explains why the
    quote could not be priced.
    """

    price: float
    mid_price: float
    bid_price: float
    ask_price: float
    spread: float
    price_impact: float
    theoretical_price: float
    available: bool = True
    reason: Optional[str] = None

    @classmethod
    def unavailable(cls, reason: str) -> "AmmQuote":
        return cls(
            price=0.0,
            mid_price=0.0,
            bid_price=0.0,
            ask_price=0.0,
            spread=0.0,
            price_impact=0.0,
            theoretical_price=0.0,
            available=False,
            reason=reason,
        )


@dataclass(frozen=True, slots=True)
class SlippageEstimate:
    estimated_slippage: float
    is_acceptable: bool
    max_recommended_size: float
    warning: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TradeImpactProjection:
    """Advisory one-step projection of pool state after a trade."""

    new_liquidity: float
    new_volume: float
    new_mid_price: float
    price_change: float


@dataclass(frozen=True, slots=True)
class LpRewards:
    fees_earned: float
    pool_share: float
    estimated_apy: float


@dataclass(frozen=True, slots=True)
class PoolHealth:
    utilization: float
    max_utilization: float
    level: HealthLevel
    collateralization_ratio: float


@dataclass(frozen=True, slots=True)
class UtilizationCheck:
    is_allowed: bool
    message: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Position:
    """An option position as stored by the portfolio data layer.

    ``contracts`` is positive for long positions and negative for written
    ones. ``premium`` is the per-contract premium paid or received.
    ``expiration`` must be timezone aware when given.
    """

    symbol: str
    option_type: OptionType
    strike_price: float
    contracts: float
    premium: float = 0.0
    position_id: Optional[str] = None
    expiration: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not isinstance(self.option_type, OptionType):
            object.__setattr__(self, "option_type", OptionType(self.option_type))
        if self.contracts == 0:
            raise ValueError("contracts must be non-zero")
        if self.strike_price <= 0:
            raise ValueError("strike_price must be strictly positive")
        if self.expiration is not None and self.expiration.tzinfo is None:
            raise ValueError("expiration must be timezone aware")

    @property
    def is_long(self) -> bool:
        return self.contracts > 0


@dataclass(frozen=True, slots=True)
class SettlementResult:
    position_id: Optional[str]
    symbol: str
    settlement_price: float
    intrinsic_value: float
    settlement_value: float
    final_pnl: float
    is_exercised: bool
    expired: Optional[bool] = None
    expiration_urgency: Optional[ExpirationUrgency] = None


@dataclass(frozen=True, slots=True)
class StrategyLeg:
    """One leg of a strategy. ``option_type`` is ``None`` for stock legs."""

    option_type: Optional[OptionType]
    strike_price: float
    quantity: float
    premium: float = 0.0


@dataclass(slots=True)
class StrategyAnalysis:
    strategy: str
    prices: Tuple[float, ...]
    pnl: Tuple[float, ...]
    max_profit: float
    max_loss: float
    breakevens: Tuple[float, ...]
    unbounded_profit: bool = False
    greeks: Optional[Greeks] = None
    legs: Tuple[StrategyLeg, ...] = field(default_factory=tuple)
