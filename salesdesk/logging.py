from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from salesdesk.context import get_client_ip, get_correlation_id
from salesdesk.core.config import get_settings


# Extra attributes copied into the "fields" object of a JSON log line.
LOGGED_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "user_id",
        "entity_id",
        "audit_module",
        "action",
        "status",
        "storage_key",
        "event_name",
        "error",
    }
)
MAX_ERROR_LENGTH = 500

_base_factory = logging.getLogRecordFactory()


def _salesdesk_record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _base_factory(*args, **kwargs)
    record.correlation_id = get_correlation_id()
    record.client_ip = get_client_ip()
    return record


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields = {key: getattr(record, key) for key in LOGGED_FIELDS if hasattr(record, key)}
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "client_ip": getattr(record, "client_ip", None),
            "fields": fields,
        }
        return json.dumps(line, default=str)


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    if getattr(root, "_salesdesk_configured", False):
        return

    level_name = (level or get_settings().log_level).upper()
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    logging.setLogRecordFactory(_salesdesk_record_factory)
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level_name, logging.INFO))
    # uvicorn's access log duplicates salesdesk.request.
    logging.getLogger("uvicorn.access").propagate = False
    root._salesdesk_configured = True  # type: ignore[attr-defined]
