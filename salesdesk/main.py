from contextlib import asynccontextmanager
import logging
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from salesdesk.api.errors import register_exception_handlers
from salesdesk.api.routes import router as api_router
from salesdesk.core.config import get_settings
from salesdesk.events import event_bus
from salesdesk.logging import configure_logging
from salesdesk.middleware.correlation_id import CorrelationIdMiddleware
from salesdesk.middleware.rate_limit import MutationRateLimitMiddleware
from salesdesk.middleware.request_context import RequestContextMiddleware
from salesdesk.middleware.request_logging import RequestLoggingMiddleware
from salesdesk.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("salesdesk.lifecycle")

_logged_event_types = [
    "lead.converted",
    "lead_transfer.decided",
    "payment_request.decided",
]


def _log_domain_event(envelope: dict[str, Any]) -> None:
    payload = envelope.get("payload") or {}
    logger.info(
        "domain_event",
        extra={
            "event_name": envelope["event_type"],
            "user_id": envelope.get("actor_user_id"),
            "status": payload.get("status"),
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    for event_type in _logged_event_types:
        event_bus.subscribe(event_type, _log_domain_event)
    current = get_settings()
    if current.storage_backend == "local":
        Path(current.upload_dir).mkdir(parents=True, exist_ok=True)
    logger.info("system_event", extra={"event_name": "system.started"})
    yield
    for event_type in _logged_event_types:
        event_bus.unsubscribe(event_type, _log_domain_event)


settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
app.add_middleware(MutationRateLimitMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
register_exception_handlers(app)
app.include_router(api_router)

if settings.storage_backend == "local":
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

setup_otel(settings)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
