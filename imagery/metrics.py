from __future__ import annotations

from prometheus_client import Counter, Histogram

imagery_cache_lookups_total = Counter(
    "imagery_cache_lookups_total",
    "Satellite result cache lookups by outcome",
    labelnames=["outcome"],
)

imagery_cache_writes_total = Counter(
    "imagery_cache_writes_total",
    "Satellite result cache writes by outcome",
    labelnames=["outcome"],
)

imagery_upstream_requests_total = Counter(
    "imagery_upstream_requests_total",
    "Count of upstream index engine requests",
    labelnames=["engine", "outcome"],
)

imagery_upstream_latency_seconds = Histogram(
    "imagery_upstream_latency_seconds",
    "Latency of upstream index engine requests",
    labelnames=["engine"],
    buckets=(0.1, 0.3, 0.5, 1, 2, 5, 10, 20, 30, 60),
)
