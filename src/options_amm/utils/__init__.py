"""Utility helpers exposed by :mod:`options_amm`."""

from .numerics import clamp, norm_cdf, norm_pdf
from .validation import quote_unavailable_reason, validate_contract_params

__all__ = [
    "clamp",
    "norm_cdf",
    "norm_pdf",
    "quote_unavailable_reason",
    "validate_contract_params",
]
