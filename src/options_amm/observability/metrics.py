"""Prometheus metrics used across the AMM pricing service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNT = Counter(
    "oam_request_total",
    "Total number of HTTP requests processed",
    labelnames=("method", "route", "status_code"),
)

REQUEST_ERRORS = Counter(
    "oam_request_errors_total",
    "Total number of error responses emitted",
    labelnames=("method", "route", "status_code"),
)

REQUEST_LATENCY = Histogram(
    "oam_request_latency_seconds",
    "Distribution of HTTP request latency",
    labelnames=("method", "route"),
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

MODEL_LATENCY = Histogram(
    "oam_model_latency_seconds",
    "Time spent executing pricing and quoting operations",
    labelnames=("operation",),
    buckets=(0.00005, 0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5),
)

MODEL_ERRORS = Counter(
    "oam_model_errors_total",
    "Number of pricing operations rejected with a precondition error",
    labelnames=("operation",),
)

CACHE_HITS = Counter(
    "oam_cache_hits_total",
    "Number of engine results served from the memoisation cache",
    labelnames=("operation",),
)

QUOTE_UNAVAILABLE = Counter(
    "oam_quote_unavailable_total",
    "Number of AMM quotes that could not be priced",
    labelnames=("reason",),
)

IV_NON_CONVERGENCE = Counter(
    "oam_iv_non_convergence_total",
    "Number of implied volatility solves that stopped without converging",
)

RATE_LIMIT_REJECTIONS = Counter(
    "oam_rate_limit_rejections_total",
    "Number of requests rejected due to rate limiting",
    labelnames=("route",),
)

PAYLOAD_TOO_LARGE = Counter(
    "oam_payload_too_large_total",
    "Number of requests rejected because the payload exceeded limits",
    labelnames=("route",),
)
