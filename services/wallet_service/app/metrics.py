"""Prometheus metrics for the wallet settings service."""

from __future__ import annotations

import time
from prometheus_client import Counter, Histogram

wallet_cache_lookups_total = Counter(
    "wallet_cache_lookups_total", "Wallet settings cache lookups by result", ["result"]
)
wallet_settings_outcomes_total = Counter(
    "wallet_settings_outcomes_total", "Wallet settings requests by outcome", ["outcome"]
)
wallet_stale_fallback_total = Counter(
    "wallet_stale_fallback_total", "Stale cache entries served because Luxor was rate limiting"
)

_LUXOR_REQUESTS_TOTAL = Counter(
    "luxor_requests_total",
    "Total number of requests issued to the Luxor API",
    ["method", "status"],
)

_LUXOR_LATENCY_SECONDS = Histogram(
    "luxor_request_latency_seconds",
    "Latency of Luxor API calls",
    ["method"],
    buckets=(
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    ),
)


def record_luxor_result(method: str, status_code: int, elapsed_seconds: float) -> None:
    """Record the result and latency of a Luxor API call."""
    _LUXOR_REQUESTS_TOTAL.labels(method=method, status=str(status_code)).inc()
    _LUXOR_LATENCY_SECONDS.labels(method=method).observe(elapsed_seconds)


class TimedCall:
    """Context manager to time Luxor calls and emit metrics.

    Callers set ``status_code`` once the upstream has answered; a call that
    exits through an exception without one is recorded as 599.
    """

    def __init__(self, method: str) -> None:
        self.method = method
        self.status_code: int | None = None
        self._start = 0.0

    def __enter__(self) -> TimedCall:
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        elapsed = time.perf_counter() - self._start
        status = self.status_code if self.status_code is not None else (599 if exc_type else 200)
        record_luxor_result(self.method, status, elapsed)
