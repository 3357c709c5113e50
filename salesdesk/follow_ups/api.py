from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor
from salesdesk.core.database import get_db
from salesdesk.follow_ups.schemas import FollowUpCreate, FollowUpRead, FollowUpUpdate
from salesdesk.follow_ups.service import follow_ups_service
from salesdesk.security.context import Actor


router = APIRouter(prefix="/api/follow-ups", tags=["follow-ups"])


@router.post("", response_model=FollowUpRead, status_code=status.HTTP_201_CREATED)
def create_follow_up(
    payload: FollowUpCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> FollowUpRead:
    return follow_ups_service.create_follow_up(db, actor, payload)


@router.get("/lead/{lead_id}", response_model=list[FollowUpRead])
def list_lead_follow_ups(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[FollowUpRead]:
    return follow_ups_service.list_for_lead(db, actor, lead_id)


@router.get("/{follow_up_id}", response_model=FollowUpRead)
def get_follow_up(
    follow_up_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> FollowUpRead:
    return follow_ups_service.get_follow_up(db, follow_up_id)


@router.patch("/{follow_up_id}", response_model=FollowUpRead)
def update_follow_up(
    follow_up_id: uuid.UUID,
    payload: FollowUpUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> FollowUpRead:
    return follow_ups_service.update_follow_up(db, actor, follow_up_id, payload)


@router.patch("/{follow_up_id}/complete", response_model=FollowUpRead)
def complete_follow_up(
    follow_up_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> FollowUpRead:
    return follow_ups_service.complete(db, actor, follow_up_id)


@router.delete("/{follow_up_id}", status_code=status.HTTP_200_OK)
def delete_follow_up(
    follow_up_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> dict[str, str]:
    follow_ups_service.delete_follow_up(db, actor, follow_up_id)
    return {"message": "Follow-up deleted successfully"}
