from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy import Select, func, inspect, select
from sqlalchemy.orm import Session, selectinload

from salesdesk.audit_logs.models import AuditLog
from salesdesk.audit_logs.schemas import AuditLogPage, AuditLogRead, Pagination
from salesdesk.context import get_client_ip, get_correlation_id, get_user_agent
from salesdesk.metrics import observe_audit_write
from salesdesk.security.context import Actor

logger = logging.getLogger("salesdesk.audit")

_EXCLUDED_FIELDS = {"password_hash", "refresh_token_hash"}


def snapshot(record: Any) -> dict[str, Any]:
    """Column values of an ORM row as JSON-safe data, without secrets."""
    mapper = inspect(record).mapper
    values = {
        column.key: getattr(record, column.key)
        for column in mapper.column_attrs
        if column.key not in _EXCLUDED_FIELDS
    }
    return jsonable_encoder(values)


@dataclass(slots=True)
class AuditLogService:
    def record(
        self,
        session: Session,
        actor: Actor | None,
        *,
        module: str,
        action: str,
        entity_id: uuid.UUID | str | None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=actor.user_id if actor is not None else None,
            action=action,
            module=module,
            entity_id=str(entity_id) if entity_id is not None else None,
            old_values=jsonable_encoder(old_values) if old_values is not None else None,
            new_values=jsonable_encoder(new_values) if new_values is not None else None,
            ip_address=get_client_ip(),
            user_agent=get_user_agent(),
            correlation_id=(actor.correlation_id if actor is not None else None) or get_correlation_id(),
        )
        session.add(entry)
        observe_audit_write(module, action)
        logger.debug("audit.recorded", extra={"audit_module": module, "action": action, "entity_id": entry.entity_id})
        return entry

    def list_logs(
        self,
        session: Session,
        *,
        user_id: uuid.UUID | None = None,
        action: str | None = None,
        module: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> AuditLogPage:
        stmt: Select[tuple[AuditLog]] = select(AuditLog)
        if user_id is not None:
            stmt = stmt.where(AuditLog.user_id == user_id)
        if action:
            stmt = stmt.where(AuditLog.action == action)
        if module:
            stmt = stmt.where(AuditLog.module == module)
        if start_date is not None:
            stmt = stmt.where(AuditLog.created_at >= start_date)
        if end_date is not None:
            stmt = stmt.where(AuditLog.created_at <= end_date)

        total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        rows = session.scalars(
            stmt.options(selectinload(AuditLog.user))
            .order_by(AuditLog.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return AuditLogPage(
            logs=[AuditLogRead.model_validate(row) for row in rows],
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0),
        )

    def list_for_entity(self, session: Session, module: str, entity_id: str) -> list[AuditLogRead]:
        rows = session.scalars(
            select(AuditLog)
            .where(AuditLog.module == module, AuditLog.entity_id == entity_id)
            .options(selectinload(AuditLog.user))
            .order_by(AuditLog.created_at.desc())
        ).all()
        return [AuditLogRead.model_validate(row) for row in rows]


audit_log_service = AuditLogService()
