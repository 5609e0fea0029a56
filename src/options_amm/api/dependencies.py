"""Shared dependencies for FastAPI routes."""

from __future__ import annotations

from functools import lru_cache

from ..core.amm import AmmConfig
from ..core.pricing_engine import OptionsEngine
from .config import Settings, get_settings


def build_engine(settings: Settings) -> OptionsEngine:
    return OptionsEngine(
        cache_size=settings.cache_size,
        cache_ttl_seconds=settings.cache_ttl_seconds,
        amm_config=AmmConfig(
            base_spread=settings.base_spread,
            default_slippage_tolerance=settings.max_slippage_tolerance,
        ),
    )


@lru_cache(maxsize=1)
def get_engine() -> OptionsEngine:
    """Return the process-wide options engine."""

    return build_engine(get_settings())
