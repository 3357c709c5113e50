from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.sql import Select

from salesdesk.security.context import Actor
from salesdesk.security.masking import apply_masking
from salesdesk.security.scope import apply_branch_filter, apply_owner_filter, validate_branch_scope


class BaseRepository:
    resource = ""
    model: Any = None
    owner_field = ""

    def apply_scope_query(self, query: Select[Any], actor: Actor, *, owner_scoped: bool = True) -> Select[Any]:
        query = apply_branch_filter(query, self.model, actor)
        if owner_scoped and self.owner_field:
            query = apply_owner_filter(query, getattr(self.model, self.owner_field), actor)
        return query

    def validate_read_scope(self, actor: Actor, record: Any) -> None:
        validate_branch_scope(self.resource, actor, getattr(record, "branch_id", None))

    def owner_of(self, record: Any) -> uuid.UUID | None:
        if not self.owner_field:
            return None
        return getattr(record, self.owner_field)

    def apply_read_security(self, payload: dict[str, Any], actor: Actor, *, owner_id: uuid.UUID | None) -> dict[str, Any]:
        return apply_masking(self.resource, payload, actor, owner_id=owner_id)
