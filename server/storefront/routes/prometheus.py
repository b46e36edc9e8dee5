# ─────────────────────────────────────────────────────────────────────────────
# Prometheus Metrics Endpoint — text exposition format
# ─────────────────────────────────────────────────────────────────────────────
# GET /metrics/prometheus → text/plain Prometheus format
# Bridges ServerMetrics + LimiterRegistry stats → prometheus-client gauges.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CollectorRegistry, Gauge, generate_latest

from storefront.dependencies import get_limiter, get_metrics
from storefront.ratelimit.registry import LimiterRegistry
from storefront.services.metrics import ServerMetrics

router = APIRouter()

# ── Prometheus metrics (custom registry to avoid default process metrics) ─────

_registry = CollectorRegistry()

_requests_total = Gauge(
    "storefront_requests_total",
    "Requests served (health probes excluded)",
    registry=_registry,
)

_errors_total = Gauge(
    "storefront_errors_total",
    "Requests answered with a 5xx status",
    registry=_registry,
)

_latency_ms = Gauge(
    "storefront_request_latency_ms",
    "Request latency over the recent window",
    ["quantile"],
    registry=_registry,
)

_checkouts = Gauge(
    "storefront_checkouts_total",
    "Checkout attempts by outcome",
    ["outcome"],
    registry=_registry,
)

_inventory_updates = Gauge(
    "storefront_inventory_updates_total",
    "Products decremented by completed checkout sessions",
    registry=_registry,
)

_limiter_decisions = Gauge(
    "storefront_rate_limit_decisions_total",
    "Rate limiter decisions by outcome",
    ["outcome"],
    registry=_registry,
)

_limiter_buckets = Gauge(
    "storefront_rate_limit_active_buckets",
    "Client buckets currently held by the limiter",
    registry=_registry,
)


def _sync_metrics(metrics: ServerMetrics, limiter: LimiterRegistry) -> None:
    """Copy current counters into the Prometheus gauges."""
    data = metrics.to_dict()
    _requests_total.set(data["requests_total"])
    _errors_total.set(data["errors_total"])
    _latency_ms.labels(quantile="0.5").set(data["latency_p50_ms"])
    _latency_ms.labels(quantile="0.95").set(data["latency_p95_ms"])
    _checkouts.labels(outcome="session").set(data["checkout_sessions"])
    _checkouts.labels(outcome="out_of_stock").set(data["out_of_stock"])
    _inventory_updates.set(data["inventory_updates"])

    stats = limiter.stats()
    _limiter_decisions.labels(outcome="admitted").set(stats["admitted"])
    _limiter_decisions.labels(outcome="throttled").set(stats["throttled"])
    _limiter_decisions.labels(outcome="evicted").set(stats["evicted"])
    _limiter_buckets.set(stats["active_buckets"])


@router.get("/metrics/prometheus")
async def prometheus_metrics(
    metrics: ServerMetrics = Depends(get_metrics),
    limiter: LimiterRegistry = Depends(get_limiter),
) -> Response:
    """Prometheus text exposition format metrics endpoint."""
    _sync_metrics(metrics, limiter)
    return Response(
        content=generate_latest(_registry),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
