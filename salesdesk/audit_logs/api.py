from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from salesdesk.audit_logs.schemas import AuditLogPage, AuditLogRead
from salesdesk.audit_logs.service import audit_log_service
from salesdesk.core.auth import require_roles
from salesdesk.core.database import get_db
from salesdesk.security.context import MANAGER, SUPER_ADMIN, Actor


router = APIRouter(prefix="/api/audit-logs", tags=["audit-logs"])


@router.get("", response_model=AuditLogPage)
def list_audit_logs(
    user_id: uuid.UUID | None = Query(default=None),
    action: str | None = Query(default=None),
    module: str | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN)),
) -> AuditLogPage:
    return audit_log_service.list_logs(
        db,
        user_id=user_id,
        action=action,
        module=module,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.get("/entity/{module}/{entity_id}", response_model=list[AuditLogRead])
def list_entity_audit_logs(
    module: str,
    entity_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> list[AuditLogRead]:
    return audit_log_service.list_for_entity(db, module, entity_id)
