"""Numerical helpers shared by the pricing and AMM models."""

from __future__ import annotations

import math
from typing import Final

__all__ = [
    "clamp",
    "norm_cdf",
    "norm_pdf",
]

# Abramowitz & Stegun 7.1.26 coefficients.
_AS_A1: Final[float] = 0.254829592
_AS_A2: Final[float] = -0.284496736
_AS_A3: Final[float] = 1.421413741
_AS_A4: Final[float] = -1.453152027
_AS_A5: Final[float] = 1.061405429
_AS_P: Final[float] = 0.3275911

SQRT_TWO: Final[float] = math.sqrt(2.0)
INV_SQRT_TWO_PI: Final[float] = 1.0 / math.sqrt(2.0 * math.pi)


def norm_cdf(value: float) -> float:
    """Standard normal CDF via the Abramowitz-Stegun rational approximation.

    Absolute error is below 1.5e-7 across the real line. The closed form is
    kept deliberately so quotes match the reference dashboard figures.
    """

    sign = 1.0 if value >= 0 else -1.0
    x = abs(value) / SQRT_TWO
    t = 1.0 / (1.0 + _AS_P * x)
    poly = ((((_AS_A5 * t + _AS_A4) * t + _AS_A3) * t + _AS_A2) * t + _AS_A1) * t
    y = 1.0 - poly * math.exp(-x * x)
    return 0.5 * (1.0 + sign * y)


def norm_pdf(value: float) -> float:
    return INV_SQRT_TWO_PI * math.exp(-0.5 * value * value)


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp ``value`` into ``[lower, upper]``."""

    return max(lower, min(upper, value))
