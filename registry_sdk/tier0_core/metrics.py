"""
registry_sdk.tier0_core.metrics
─────────────────────────────────
Prometheus collectors for negotiation outcomes, registry round trips and
codec failures. Collectors register on the default prometheus registry;
exposing them over HTTP is left to the host process.

Minimal stack: prometheus-client
"""
from __future__ import annotations

import os
from typing import Callable

from prometheus_client import Counter, Histogram

# Standard labels applied to every metric
_DEFAULT_LABELS = ["service", "env"]
_SERVICE = os.getenv("APP_NAME", "registry-sdk")
_ENV = os.getenv("APP_ENV", "development")
_DEFAULT_LABEL_VALUES = {"service": _SERVICE, "env": _ENV}


def counter(name: str, description: str, labels: list[str] | None = None) -> Callable[..., Counter]:
    """
    Create a counter with the standard labels. Returns a callable that
    binds the extra labels.

    Usage:
        negotiations = counter("negotiations_total", "Negotiations", ["outcome"])
        negotiations(outcome="reused").inc()
    """
    c = Counter(name, description, _DEFAULT_LABELS + (labels or []))

    def _counter(**extra_labels: str) -> Counter:
        return c.labels(**_DEFAULT_LABEL_VALUES, **extra_labels)

    return _counter


def histogram(
    name: str,
    description: str,
    labels: list[str] | None = None,
    buckets: tuple = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
) -> Callable[..., Histogram]:
    """Create a histogram with the standard labels."""
    h = Histogram(name, description, _DEFAULT_LABELS + (labels or []), buckets=buckets)

    def _histogram(**extra_labels: str) -> Histogram:
        return h.labels(**_DEFAULT_LABEL_VALUES, **extra_labels)

    return _histogram


# ── SDK collectors ────────────────────────────────────────────────────────────

negotiations_total = counter(
    "registry_sdk_negotiations_total",
    "Schema negotiations by outcome (created, reused, updated, failed)",
    ["outcome"],
)

registry_requests_total = counter(
    "registry_sdk_registry_requests_total",
    "Registry round trips by operation and result",
    ["operation", "result"],
)

registry_request_seconds = histogram(
    "registry_sdk_registry_request_seconds",
    "Registry round trip latency",
    ["operation"],
)

codec_errors_total = counter(
    "registry_sdk_codec_errors_total",
    "Wire codec failures by operation and error code",
    ["operation", "kind"],
)


__all__ = [
    "counter", "histogram", "negotiations_total", "registry_requests_total",
    "registry_request_seconds", "codec_errors_total",
]
