"""HTTP routers mounted under ``/api/v1``."""

from . import amm, analytics, pricing

__all__ = ["amm", "analytics", "pricing"]
