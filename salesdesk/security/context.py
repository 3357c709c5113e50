from __future__ import annotations

import uuid
from dataclasses import dataclass, field

SUPER_ADMIN = "SUPER_ADMIN"
MANAGER = "MANAGER"
EMPLOYEE = "EMPLOYEE"
ROLES = (SUPER_ADMIN, MANAGER, EMPLOYEE)


@dataclass(slots=True)
class Actor:
    """The authenticated user a request acts as, with the ids needed for scope checks."""

    user_id: uuid.UUID
    role: str
    email: str | None = None
    branch_id: uuid.UUID | None = None
    manager_id: uuid.UUID | None = None
    team_user_ids: list[uuid.UUID] = field(default_factory=list)
    correlation_id: str | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role == MANAGER

    @property
    def is_employee(self) -> bool:
        return self.role == EMPLOYEE

    def visible_owner_ids(self) -> list[uuid.UUID] | None:
        """Owner ids whose records this actor may see; None means unrestricted."""
        if self.is_super_admin:
            return None
        if self.is_manager:
            return [self.user_id, *self.team_user_ids]
        return [self.user_id]

    def can_see_owner(self, owner_id: uuid.UUID | None) -> bool:
        visible = self.visible_owner_ids()
        if visible is None:
            return True
        return owner_id is not None and owner_id in visible
