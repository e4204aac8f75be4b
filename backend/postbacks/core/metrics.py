# Prometheus metrics for the postback engine. Middleware below
# records timing and counts for every request; the helpers are
# called from the ingestion pipeline to count outcomes per event.

from decimal import Decimal
from time import monotonic

from fastapi import Request
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware


REQUEST_DURATION_MS = Histogram(
    "request_duration_ms",
    "API request duration in milliseconds",
    ["method", "route"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2000, 5000, 10000],
)
REQUESTS_TOTAL = Counter(
    "requests_total",
    "Total API requests",
    ["method", "route", "status_code"],
)

# outcome: accepted|duplicate|<reason code>
POSTBACKS_TOTAL = Counter(
    "postbacks_total",
    "Inbound postbacks by canonical event type and outcome",
    ["event_type", "outcome"],
)
POSTBACK_LATENCY_MS = Histogram(
    "postback_latency_ms",
    "Postback handling latency in milliseconds",
    ["event_type"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2000, 5000, 10000],
)
COMMISSION_AWARDED_TOTAL = Counter(
    "commission_awarded_total",
    "Commission value awarded on committed conversions",
    ["house_id", "model"],
)


def _label(value: object | None, default: str = "unknown") -> str:
    if value is None:
        return default
    if isinstance(value, str) and not value.strip():
        return default
    return str(value)


def record_postback(*, event_type: str | None, outcome: str, duration_ms: float | None = None) -> None:
    POSTBACKS_TOTAL.labels(event_type=_label(event_type), outcome=_label(outcome)).inc()
    if duration_ms is not None:
        POSTBACK_LATENCY_MS.labels(event_type=_label(event_type)).observe(duration_ms)


def record_commission(*, house_id: int, model: str, amount: Decimal) -> None:
    if amount <= 0:
        return
    COMMISSION_AWARDED_TOTAL.labels(house_id=_label(house_id), model=_label(model)).inc(float(amount))


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = monotonic()
        response = await call_next(request)
        duration_ms = (monotonic() - start) * 1000.0

        route = request.scope.get("route")
        route_path = getattr(route, "path", None) or request.url.path
        REQUEST_DURATION_MS.labels(request.method, route_path).observe(duration_ms)
        REQUESTS_TOTAL.labels(request.method, route_path, str(response.status_code)).inc()
        return response
