"""
ReelRank Prometheus metrics, exported at ``/metrics``.
"""
from __future__ import annotations

from prometheus_client import Counter, Histogram

FEED_REQUESTS = Counter(
    "reelrank_feed_requests_total",
    "Feed requests served, by surface and ranking path",
    ["surface", "path"],
)

FEED_FAILURES = Counter(
    "reelrank_feed_failures_total",
    "Feed requests that failed, by surface and reason",
    ["surface", "reason"],
)

FEED_LATENCY = Histogram(
    "reelrank_feed_latency_seconds",
    "End-to-end feed ranking latency",
    ["surface"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

TELEMETRY_EVENTS = Counter(
    "reelrank_telemetry_events_total",
    "Telemetry events seen at ingestion, by outcome",
    ["outcome"],  # persisted | dropped | failed
)
