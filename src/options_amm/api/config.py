"""Centralised application configuration derived from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple


def _get_env(name: str, *, default: str | None = None, required: bool = False) -> str | None:
    """Return a trimmed environment variable value.

    Parameters
    ----------
    name:
        Name of the environment variable to read.
    default:
        Optional default returned when the variable is not set or blank.
    required:
        When ``True`` a ``RuntimeError`` is raised if the variable is missing
        or blank.
    """

    value = os.getenv(name)
    if value is None:
        if required:
            raise RuntimeError(f"Environment variable {name} is required")
        return default

    trimmed = value.strip()
    if not trimmed:
        if required:
            raise RuntimeError(f"Environment variable {name} must not be blank")
        return default
    return trimmed


def _get_env_alias(*names: str, default: str | None = None) -> str | None:
    """Return the first non-empty value from the supplied environment aliases."""

    for name in names:
        value = _get_env(name)
        if value is not None:
            return value
    return default


def _split_csv(value: str | None) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _as_int(name: str, *, default: int, minimum: int | None = None) -> int:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be an integer") from exc
    if minimum is not None and value < minimum:
        raise RuntimeError(f"Environment variable {name} must be >= {minimum}")
    return value


def _as_float(
    name: str,
    *,
    default: float,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be a number") from exc
    if minimum is not None and value < minimum:
        raise RuntimeError(f"Environment variable {name} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise RuntimeError(f"Environment variable {name} must be <= {maximum}")
    return value


def _as_bool(name: str, *, default: bool) -> bool:
    raw = _get_env(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "t", "yes", "y", "on"}


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable view over application configuration."""

    environment: str
    allowed_hosts: Tuple[str, ...]
    allowed_origins: Tuple[str, ...]
    cors_allow_credentials: bool
    risk_free_rate: float
    base_spread: float
    max_slippage_tolerance: float
    cache_size: int
    cache_ttl_seconds: float
    max_chain_pools: int
    rate_limit_default: str
    max_body_bytes: int

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the current process environment."""

    environment_raw = (_get_env_alias("ENV", "OAM_ENVIRONMENT", default="development") or "development").lower()
    if environment_raw in {"prod", "production"}:
        environment = "production"
    elif environment_raw in {"dev", "development"}:
        environment = "development"
    else:
        environment = environment_raw

    allowed_hosts = _split_csv(_get_env_alias("ALLOWED_HOSTS", "OAM_ALLOWED_HOSTS"))
    if not allowed_hosts:
        if environment == "production":
            raise RuntimeError("ALLOWED_HOSTS must be provided when ENV/OAM_ENVIRONMENT=production")
        allowed_hosts = ("localhost", "127.0.0.1", "testserver")

    allowed_origins = _split_csv(_get_env_alias("CORS_ALLOWED_ORIGINS", "OAM_ALLOWED_ORIGINS"))
    if not allowed_origins and environment != "production":
        allowed_origins = (
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
        )

    return Settings(
        environment=environment,
        allowed_hosts=allowed_hosts,
        allowed_origins=allowed_origins,
        cors_allow_credentials=_as_bool("OAM_CORS_ALLOW_CREDENTIALS", default=False),
        risk_free_rate=_as_float("OAM_RISK_FREE_RATE", default=0.05, minimum=-1.0, maximum=1.0),
        base_spread=_as_float("OAM_BASE_SPREAD", default=0.02, minimum=0.0, maximum=1.0),
        max_slippage_tolerance=_as_float("OAM_MAX_SLIPPAGE_TOLERANCE", default=0.05, minimum=0.0),
        cache_size=_as_int("OAM_CACHE_SIZE", default=10_000, minimum=0),
        cache_ttl_seconds=_as_float("OAM_CACHE_TTL_SECONDS", default=5.0, minimum=0.0),
        max_chain_pools=_as_int("OAM_MAX_CHAIN_POOLS", default=500, minimum=1),
        rate_limit_default=_get_env("RATE_LIMIT_DEFAULT", default="120/minute") or "120/minute",
        max_body_bytes=_as_int("MAX_BODY_BYTES", default=1_048_576, minimum=1_024),
    )
