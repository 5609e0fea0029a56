"""Pricing, quoting and analytics core of the AMM options engine."""

from .amm import AmmConfig, AmmPricer
from .models import (
    AmmQuote,
    AmmQuoteRequest,
    Greeks,
    HealthLevel,
    ImpliedVolatilityResult,
    OptionContractParams,
    OptionType,
    PoolState,
    Position,
    TradeSide,
    WarningLevel,
)
from .pricing_engine import OptionsEngine
from .pricing_models import BlackScholesModel

__all__ = [
    "AmmConfig",
    "AmmPricer",
    "AmmQuote",
    "AmmQuoteRequest",
    "BlackScholesModel",
    "Greeks",
    "HealthLevel",
    "ImpliedVolatilityResult",
    "OptionContractParams",
    "OptionType",
    "OptionsEngine",
    "PoolState",
    "Position",
    "TradeSide",
    "WarningLevel",
]
