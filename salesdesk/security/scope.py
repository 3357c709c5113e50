from __future__ import annotations

import uuid
from typing import Any, NoReturn

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.sql import Select

from salesdesk.metrics import observe_scope_denial
from salesdesk.security.context import Actor
from salesdesk.security.errors import OutOfScopeError


def apply_branch_filter(query: Select[Any], model: Any, actor: Actor) -> Select[Any]:
    """Restrict branch-scoped rows to the actor's branch plus rows without a branch."""

    if actor.is_super_admin or actor.branch_id is None:
        return query
    column = getattr(model, "branch_id")
    return query.where(or_(column == actor.branch_id, column.is_(None)))


def apply_owner_filter(query: Select[Any], column: Any, actor: Actor) -> Select[Any]:
    visible = actor.visible_owner_ids()
    if visible is None:
        return query
    return query.where(column.in_(visible))


def validate_branch_scope(resource: str, actor: Actor, branch_id: uuid.UUID | None) -> None:
    if actor.is_super_admin or actor.branch_id is None or branch_id is None:
        return
    if branch_id != actor.branch_id:
        observe_scope_denial(resource, "branch")
        raise OutOfScopeError(resource, "branch")


def deny(resource: str, reason: str, detail: str) -> NoReturn:
    observe_scope_denial(resource, reason)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def require_not_employee(actor: Actor, resource: str, detail: str) -> None:
    if actor.is_employee:
        deny(resource, "role", detail)


def require_role(actor: Actor, resource: str, roles: set[str], detail: str = "insufficient role") -> None:
    if actor.role not in roles:
        deny(resource, "role", detail)
