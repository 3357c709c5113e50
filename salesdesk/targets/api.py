from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor, require_roles
from salesdesk.core.database import get_db
from salesdesk.security.context import MANAGER, SUPER_ADMIN, Actor
from salesdesk.targets.schemas import TargetProgress, TargetRead, TargetStats, TargetUpsert
from salesdesk.targets.service import targets_service


router = APIRouter(prefix="/api/targets", tags=["targets"])


@router.post("", response_model=TargetRead)
def upsert_target(
    payload: TargetUpsert,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> TargetRead:
    return targets_service.upsert_target(db, actor, payload)


@router.get("", response_model=list[TargetProgress])
def list_targets(
    month: date | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[TargetProgress]:
    return targets_service.list_targets(db, actor, month)


@router.get("/my-stats", response_model=TargetStats)
def my_target_stats(
    month: date | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> TargetStats:
    return targets_service.user_stats(db, actor, actor.user_id, month)


@router.get("/user-stats/{user_id}", response_model=TargetStats)
def user_target_stats(
    user_id: uuid.UUID,
    month: date | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> TargetStats:
    return targets_service.user_stats(db, actor, user_id, month)
