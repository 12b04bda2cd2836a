"""Prometheus instrumentation for verification runs.

Counters live in a private registry and are only ever exported to a textfile
for a node-exporter textfile collector; nothing is persisted otherwise.
"""
from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, write_to_textfile

REGISTRY = CollectorRegistry()

VERIFICATIONS = Counter(
    "attestbind_verifications_total",
    "Verification runs by verdict and failure kind.",
    ["verdict", "failure_kind"],
    registry=REGISTRY,
)
STAGE_SECONDS = Histogram(
    "attestbind_stage_seconds",
    "Wall time spent per verification stage.",
    ["stage"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120),
    registry=REGISTRY,
)


def observe_stage(stage: str, seconds: float) -> None:
    STAGE_SECONDS.labels(stage=stage).observe(seconds)


def observe_outcome(verdict: str, failure_kind: str | None) -> None:
    VERIFICATIONS.labels(verdict=verdict, failure_kind=failure_kind or "none").inc()


def write_textfile(path: str) -> None:
    write_to_textfile(path, REGISTRY)
