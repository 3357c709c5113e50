from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.branches.models import Branch
from salesdesk.core.auth import hash_secret
from salesdesk.security.context import EMPLOYEE, MANAGER, SUPER_ADMIN, Actor
from salesdesk.users.models import User
from salesdesk.users.schemas import AssignManagerRequest, UserCreate, UserDetailRead, UserRead, UserSummary, UserUpdate

logger = logging.getLogger("salesdesk.users")


@dataclass(slots=True)
class UsersService:
    module = "users"

    def create_user(self, session: Session, actor: Actor, payload: UserCreate) -> UserRead:
        email = str(payload.email).lower()
        if self._email_taken(session, email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
        if payload.branch_id is not None:
            self._require_branch(session, payload.branch_id)
        if payload.manager_id is not None:
            self._validate_manager(session, payload.role, payload.manager_id, None)

        user = User(
            email=email,
            password_hash=hash_secret(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone=payload.phone,
            role=payload.role,
            branch_id=payload.branch_id,
            manager_id=payload.manager_id,
        )
        session.add(user)
        session.flush()
        audit_log_service.record(session, actor, module=self.module, action="CREATE", entity_id=user.id, new_values=snapshot(user))
        session.commit()
        session.refresh(user)
        logger.info("user.created", extra={"entity_id": str(user.id)})
        return UserRead.model_validate(user)

    def list_users(self, session: Session, role: str | None = None) -> list[UserRead]:
        stmt = select(User)
        if role:
            stmt = stmt.where(User.role == role)
        rows = session.scalars(stmt.order_by(User.created_at.desc())).all()
        return [UserRead.model_validate(row) for row in rows]

    def list_managers(self, session: Session) -> list[UserSummary]:
        rows = session.scalars(
            select(User).where(User.role == MANAGER, User.is_active.is_(True)).order_by(User.first_name)
        ).all()
        return [UserSummary.model_validate(row) for row in rows]

    def list_team(self, session: Session, actor: Actor) -> list[UserRead]:
        rows = session.scalars(select(User).where(User.manager_id == actor.user_id).order_by(User.first_name)).all()
        return [UserRead.model_validate(row) for row in rows]

    def get_user(self, session: Session, user_id: uuid.UUID) -> UserDetailRead:
        user = session.scalar(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.manager), selectinload(User.employees))
        )
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
        return UserDetailRead.model_validate(user)

    def update_user(self, session: Session, actor: Actor, user_id: uuid.UUID, payload: UserUpdate) -> UserRead:
        user = self._get(session, user_id)
        before = snapshot(user)
        data = payload.model_dump(exclude_unset=True)

        if "email" in data and data["email"] is not None:
            email = str(data["email"]).lower()
            if email != user.email and self._email_taken(session, email):
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
            data["email"] = email
        if data.get("password"):
            user.password_hash = hash_secret(data.pop("password"))
        data.pop("password", None)
        if data.get("branch_id") is not None:
            self._require_branch(session, data["branch_id"])

        for key, value in data.items():
            if value is None and key in {"email", "first_name", "last_name", "role"}:
                continue
            setattr(user, key, value)

        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=user.id, old_values=before, new_values=snapshot(user)
        )
        session.commit()
        session.refresh(user)
        return UserRead.model_validate(user)

    def assign_manager(self, session: Session, actor: Actor, user_id: uuid.UUID, payload: AssignManagerRequest) -> UserRead:
        user = self._get(session, user_id)
        self._validate_manager(session, user.role, payload.manager_id, user.id)
        before = snapshot(user)
        user.manager_id = payload.manager_id
        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=user.id, old_values=before, new_values=snapshot(user)
        )
        session.commit()
        session.refresh(user)
        return UserRead.model_validate(user)

    def set_active(self, session: Session, actor: Actor, user_id: uuid.UUID, is_active: bool) -> UserRead:
        user = self._get(session, user_id)
        before = snapshot(user)
        user.is_active = is_active
        if not is_active:
            user.refresh_token_hash = None
        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=user.id, old_values=before, new_values=snapshot(user)
        )
        session.commit()
        session.refresh(user)
        logger.info("user.activated" if is_active else "user.deactivated", extra={"entity_id": str(user.id)})
        return UserRead.model_validate(user)

    @staticmethod
    def _get(session: Session, user_id: uuid.UUID) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
        return user

    @staticmethod
    def _email_taken(session: Session, email: str) -> bool:
        return session.scalar(select(User.id).where(func.lower(User.email) == email)) is not None

    @staticmethod
    def _require_branch(session: Session, branch_id: uuid.UUID) -> None:
        if session.get(Branch, branch_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="branch not found")

    @staticmethod
    def _validate_manager(session: Session, role: str, manager_id: uuid.UUID, user_id: uuid.UUID | None) -> None:
        if role == SUPER_ADMIN:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot assign a manager to a super admin")
        if user_id is not None and manager_id == user_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A user cannot manage themselves")
        manager = session.get(User, manager_id)
        if manager is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="manager not found")
        if manager.role == EMPLOYEE:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="An employee cannot be assigned as a manager")


users_service = UsersService()
