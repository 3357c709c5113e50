from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from salesdesk.activities.schemas import (
    ActivityComplete,
    ActivityCreate,
    ActivityRead,
    ActivityReschedule,
    ActivityStats,
    ActivityStatus,
    ActivityType,
    ActivityUpdate,
)
from salesdesk.activities.service import activities_service
from salesdesk.core.auth import get_current_actor
from salesdesk.core.database import get_db
from salesdesk.security.context import Actor


router = APIRouter(prefix="/api/activities", tags=["activities"])


@router.post("", response_model=ActivityRead, status_code=status.HTTP_201_CREATED)
def create_activity(
    payload: ActivityCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> ActivityRead:
    return activities_service.create_activity(db, actor, payload)


@router.get("", response_model=list[ActivityRead])
def list_activities(
    type: ActivityType | None = Query(default=None),
    status_filter: ActivityStatus | None = Query(default=None, alias="status"),
    assignee_id: uuid.UUID | None = Query(default=None),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[ActivityRead]:
    filters = {"type": type, "status": status_filter, "assignee_id": assignee_id, "start": start, "end": end}
    return activities_service.list_activities(db, actor, filters)


@router.get("/today", response_model=list[ActivityRead])
def list_today_activities(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> list[ActivityRead]:
    return activities_service.list_today(db, actor)


@router.get("/overdue", response_model=list[ActivityRead])
def list_overdue_activities(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> list[ActivityRead]:
    return activities_service.list_overdue(db, actor)


@router.get("/stats", response_model=ActivityStats)
def activity_stats(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> ActivityStats:
    return activities_service.stats(db, actor)


@router.get("/{activity_id}", response_model=ActivityRead)
def get_activity(
    activity_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> ActivityRead:
    return activities_service.get_activity(db, actor, activity_id)


@router.patch("/{activity_id}", response_model=ActivityRead)
def update_activity(
    activity_id: uuid.UUID,
    payload: ActivityUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> ActivityRead:
    return activities_service.update_activity(db, actor, activity_id, payload)


@router.patch("/{activity_id}/complete", response_model=ActivityRead)
def complete_activity(
    activity_id: uuid.UUID,
    payload: ActivityComplete | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> ActivityRead:
    return activities_service.complete(db, actor, activity_id, payload.outcome if payload else None)


@router.patch("/{activity_id}/reschedule", response_model=ActivityRead)
def reschedule_activity(
    activity_id: uuid.UUID,
    payload: ActivityReschedule,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> ActivityRead:
    return activities_service.reschedule(db, actor, activity_id, payload)


@router.patch("/{activity_id}/cancel", response_model=ActivityRead)
def cancel_activity(
    activity_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> ActivityRead:
    return activities_service.cancel(db, actor, activity_id)


@router.delete("/{activity_id}", status_code=status.HTTP_200_OK)
def delete_activity(
    activity_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> dict[str, str]:
    activities_service.delete_activity(db, actor, activity_id)
    return {"message": "Activity deleted successfully"}
