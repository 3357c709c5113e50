from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

payment_request_decisions_total = Counter(
    "payment_request_decisions_total",
    "Payment request decisions by outcome",
    ["status"],
)

storage_operations_total = Counter(
    "storage_operations_total",
    "Storage operations by backend and operation",
    ["backend", "operation"],
)

audit_log_writes_total = Counter(
    "audit_log_writes_total",
    "Audit log rows written by module and action",
    ["module", "action"],
)

scope_denials_total = Counter(
    "scope_denials_total",
    "Requests denied by role or team scope",
    ["resource", "reason"],
)

masked_fields_total = Counter(
    "masked_fields_total",
    "Fields masked on read",
    ["resource"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return path_format
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return route_path
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_payment_request_decision(status: str) -> None:
    payment_request_decisions_total.labels(status=status).inc()


def observe_storage_operation(backend: str, operation: str) -> None:
    storage_operations_total.labels(backend=backend, operation=operation).inc()


def observe_audit_write(module: str, action: str) -> None:
    audit_log_writes_total.labels(module=module, action=action).inc()


def observe_scope_denial(resource: str, reason: str) -> None:
    scope_denials_total.labels(resource=resource, reason=reason).inc()


def observe_masked_fields(resource: str, count: int) -> None:
    if count > 0:
        masked_fields_total.labels(resource=resource).inc(count)


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
