from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.follow_ups.models import FollowUp
from salesdesk.follow_ups.schemas import FollowUpCreate, FollowUpRead, FollowUpUpdate
from salesdesk.leads.models import Lead
from salesdesk.security.context import Actor
from salesdesk.security.scope import deny


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class FollowUpsService:
    module = "follow_ups"

    def create_follow_up(self, session: Session, actor: Actor, payload: FollowUpCreate) -> FollowUpRead:
        if session.get(Lead, payload.lead_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lead not found")
        follow_up = FollowUp(
            lead_id=payload.lead_id,
            description=payload.description,
            scheduled_at=payload.scheduled_at,
            created_by_id=actor.user_id,
        )
        session.add(follow_up)
        session.flush()
        audit_log_service.record(
            session, actor, module=self.module, action="CREATE", entity_id=follow_up.id, new_values=snapshot(follow_up)
        )
        session.commit()
        return FollowUpRead.model_validate(follow_up)

    def list_for_lead(self, session: Session, actor: Actor, lead_id: uuid.UUID) -> list[FollowUpRead]:
        lead = session.get(Lead, lead_id)
        if lead is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lead not found")
        if actor.is_employee and lead.assignee_id != actor.user_id:
            deny("follow_up", "owner", "You can only view follow-ups for your own leads")
        rows = session.scalars(
            select(FollowUp).where(FollowUp.lead_id == lead_id).order_by(FollowUp.scheduled_at.desc())
        ).all()
        return [FollowUpRead.model_validate(row) for row in rows]

    def get_follow_up(self, session: Session, follow_up_id: uuid.UUID) -> FollowUpRead:
        return FollowUpRead.model_validate(self._get(session, follow_up_id))

    def update_follow_up(
        self,
        session: Session,
        actor: Actor,
        follow_up_id: uuid.UUID,
        payload: FollowUpUpdate,
    ) -> FollowUpRead:
        follow_up = self._get_owned(session, actor, follow_up_id, "You can only update your own follow-ups")
        before = snapshot(follow_up)
        for key, value in payload.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            setattr(follow_up, key, value)
        if payload.status == "COMPLETED":
            follow_up.completed_at = utcnow()
        audit_log_service.record(
            session,
            actor,
            module=self.module,
            action="UPDATE",
            entity_id=follow_up.id,
            old_values=before,
            new_values=snapshot(follow_up),
        )
        session.commit()
        return FollowUpRead.model_validate(follow_up)

    def complete(self, session: Session, actor: Actor, follow_up_id: uuid.UUID) -> FollowUpRead:
        return self.update_follow_up(session, actor, follow_up_id, FollowUpUpdate(status="COMPLETED"))

    def delete_follow_up(self, session: Session, actor: Actor, follow_up_id: uuid.UUID) -> None:
        follow_up = self._get_owned(session, actor, follow_up_id, "You can only delete your own follow-ups")
        before = snapshot(follow_up)
        session.delete(follow_up)
        audit_log_service.record(session, actor, module=self.module, action="DELETE", entity_id=follow_up_id, old_values=before)
        session.commit()

    def _get_owned(self, session: Session, actor: Actor, follow_up_id: uuid.UUID, detail: str) -> FollowUp:
        follow_up = self._get(session, follow_up_id)
        if actor.is_employee and follow_up.created_by_id != actor.user_id:
            deny("follow_up", "owner", detail)
        return follow_up

    @staticmethod
    def _get(session: Session, follow_up_id: uuid.UUID) -> FollowUp:
        follow_up = session.get(FollowUp, follow_up_id)
        if follow_up is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="follow-up not found")
        return follow_up


follow_ups_service = FollowUpsService()
