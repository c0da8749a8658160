from __future__ import annotations

import time
from typing import Callable, Optional, Tuple

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest

from memberportal.core.settings import S

METRICS_ENABLED = S.metrics_enabled

NAMESPACE = "memberportal"

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "HTTP requests served, by route and status",
    ["method", "route", "status"],
    namespace=NAMESPACE,
)
HTTP_SERVER_ERRORS = Counter(
    "http_server_errors_total",
    "HTTP requests that ended in a 5xx status",
    ["method", "route"],
    namespace=NAMESPACE,
)
HTTP_DURATION = Histogram(
    "http_request_duration_seconds",
    "Time spent serving a request, including Auth0 and Stripe round trips",
    ["method", "route"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
    namespace=NAMESPACE,
)
HTTP_INFLIGHT = Gauge(
    "http_requests_inflight",
    "Requests currently being served",
    ["method", "route"],
    namespace=NAMESPACE,
)

FEE_UPDATES = Counter(
    "fee_updates_total",
    "Admin fee edits written to the identity store",
    ["flavour", "action"],
    namespace=NAMESPACE,
)
FEE_STATE_ERRORS = Counter(
    "fee_state_errors_total",
    "Stored payment records that failed validation when read",
    ["flavour"],
    namespace=NAMESPACE,
)
CHECKOUT_RECONCILIATIONS = Counter(
    "checkout_reconciliations_total",
    "Checkout sessions folded into a member's billing link",
    ["flavour", "status"],
    namespace=NAMESPACE,
)

PROCESS_UPTIME = Gauge("uptime_seconds", "Seconds since the app was created", namespace=NAMESPACE)
BUILD_INFO = Info("build", "Application name and version", namespace=NAMESPACE)

_STARTED_AT = time.monotonic()


def _request_labels(request: Request) -> Tuple[str, str]:
    # Templated route keeps user ids out of the label set.
    route = request.scope.get("route")
    template = getattr(route, "path", None) if route else None
    return request.method, template or request.url.path


def record_fee_update(flavour: str, action: str) -> None:
    FEE_UPDATES.labels(flavour=flavour, action=action).inc()


def record_fee_state_error(flavour: str) -> None:
    FEE_STATE_ERRORS.labels(flavour=flavour).inc()


def record_reconciliation(flavour: str, status: Optional[str]) -> None:
    CHECKOUT_RECONCILIATIONS.labels(flavour=flavour, status=status or "unknown").inc()


async def metrics_middleware(request: Request, call_next: Callable[[Request], Response]) -> Response:
    method, route = _request_labels(request)
    inflight = HTTP_INFLIGHT.labels(method=method, route=route)
    inflight.inc()
    started = time.perf_counter()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        inflight.dec()
        HTTP_DURATION.labels(method=method, route=route).observe(time.perf_counter() - started)
        HTTP_REQUESTS.labels(method=method, route=route, status=str(status)).inc()
        if status >= 500:
            HTTP_SERVER_ERRORS.labels(method=method, route=route).inc()


def set_app_info(name: str, version: str) -> None:
    BUILD_INFO.info({"name": name, "version": version})


def metrics_endpoint() -> Response:
    PROCESS_UPTIME.set(time.monotonic() - _STARTED_AT)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
