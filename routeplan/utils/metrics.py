"""Prometheus metrics for port calls and geocode caching."""

from prometheus_client import Counter, Histogram

from routeplan.tools.executor import CallMetrics

# Port call metrics
port_call_latency_ms = Histogram(
    "routeplan_port_call_latency_ms",
    "Port call latency in milliseconds",
    ["call", "outcome"],
    buckets=[10, 50, 100, 200, 500, 1000, 2000, 4000, 8000, 30000],
)

port_call_errors_total = Counter(
    "routeplan_port_call_errors_total",
    "Total port call errors",
    ["call", "reason"],
)

# Geocoding metrics
geocode_cache_hits_total = Counter(
    "routeplan_geocode_cache_hits_total",
    "Total geocode cache hits",
    ["tier"],
)

geocode_fallbacks_total = Counter(
    "routeplan_geocode_fallbacks_total",
    "Total activities placed at a fallback position",
)


class PrometheusCallMetrics(CallMetrics):
    """Prometheus-based port call metrics implementation."""

    def record_latency(self, call: str, outcome: str, latency_ms: float) -> None:
        """Record port call latency."""
        port_call_latency_ms.labels(call=call, outcome=outcome).observe(latency_ms)

    def inc_error(self, call: str, reason: str) -> None:
        """Increment error counter."""
        port_call_errors_total.labels(call=call, reason=reason).inc()


def record_geocode_cache_hit(tier: str) -> None:
    geocode_cache_hits_total.labels(tier=tier).inc()


def record_geocode_fallback() -> None:
    geocode_fallbacks_total.inc()
