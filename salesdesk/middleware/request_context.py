from __future__ import annotations

from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from salesdesk.context import reset_client_info, set_client_info
from salesdesk.core.config import get_settings


@dataclass
class RequestContext:
    request_id: str
    correlation_id: str
    ip_address: str | None
    user_agent: str | None


def resolve_client_ip(request: Request) -> str | None:
    hops = get_settings().trusted_proxy_hops
    if hops > 0:
        # The entry appended by the outermost trusted proxy is the client address.
        forwarded = [part.strip() for part in request.headers.get("x-forwarded-for", "").split(",") if part.strip()]
        if len(forwarded) >= hops:
            return forwarded[-hops]
    if request.client is not None:
        return request.client.host
    return None


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = getattr(request.state, "correlation_id", None) or ""
        ip_address = resolve_client_ip(request)
        user_agent = request.headers.get("user-agent")
        request.state.context = RequestContext(
            request_id=correlation_id,
            correlation_id=correlation_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        tokens = set_client_info(ip_address, user_agent)
        try:
            response = await call_next(request)
        finally:
            reset_client_info(tokens)
        response.headers["x-request-id"] = request.state.context.request_id
        return response
