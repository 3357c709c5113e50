from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from salesdesk.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("salesdesk.request")


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._record(request, 500, started, message="http.error", exc_info=True)
            raise
        self._record(request, response.status_code, started, message="http.request")
        return response

    @staticmethod
    def _record(request: Request, status_code: int, started: float, *, message: str, exc_info: bool = False) -> None:
        elapsed = time.perf_counter() - started
        path = resolve_http_path_label(request)
        observe_http_request(method=request.method, path=path, status=status_code, duration=elapsed)
        logger.log(
            _level_for(status_code),
            message,
            exc_info=exc_info,
            extra={
                "method": request.method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(elapsed * 1000, 2),
            },
        )
