from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor, require_roles
from salesdesk.core.database import get_db
from salesdesk.security.context import MANAGER, SUPER_ADMIN, Actor
from salesdesk.users.schemas import AssignManagerRequest, Role, UserCreate, UserDetailRead, UserRead, UserSummary, UserUpdate
from salesdesk.users.service import users_service


router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN)),
) -> UserRead:
    return users_service.create_user(db, actor, payload)


@router.get("", response_model=list[UserRead])
def list_users(
    role: Role | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> list[UserRead]:
    return users_service.list_users(db, role)


@router.get("/managers", response_model=list[UserSummary])
def list_managers(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> list[UserSummary]:
    return users_service.list_managers(db)


@router.get("/team", response_model=list[UserRead])
def list_team(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> list[UserRead]:
    return users_service.list_team(db, actor)


@router.get("/{user_id}", response_model=UserDetailRead)
def get_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> UserDetailRead:
    return users_service.get_user(db, user_id)


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN)),
) -> UserRead:
    return users_service.update_user(db, actor, user_id, payload)


@router.patch("/{user_id}/manager", response_model=UserRead)
def assign_manager(
    user_id: uuid.UUID,
    payload: AssignManagerRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN)),
) -> UserRead:
    return users_service.assign_manager(db, actor, user_id, payload)


@router.patch("/{user_id}/activate", response_model=UserRead)
def activate_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN)),
) -> UserRead:
    return users_service.set_active(db, actor, user_id, True)


@router.patch("/{user_id}/deactivate", response_model=UserRead)
def deactivate_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN)),
) -> UserRead:
    return users_service.set_active(db, actor, user_id, False)
