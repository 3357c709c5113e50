from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from salesdesk.users.schemas import UserSummary


AuditAction = Literal["CREATE", "UPDATE", "DELETE"]


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None
    action: AuditAction | str
    module: str
    entity_id: str | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    correlation_id: str | None
    created_at: datetime
    user: UserSummary | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AuditLogPage(BaseModel):
    logs: list[AuditLogRead]
    pagination: Pagination
