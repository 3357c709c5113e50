from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import Select, func, select, update
from sqlalchemy.orm import Session, selectinload

from salesdesk import events
from salesdesk.activities.models import Activity
from salesdesk.activities.schemas import (
    ActivityCreate,
    ActivityRead,
    ActivityReschedule,
    ActivityStats,
    ActivityUpdate,
)
from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.notes.service import require_parents
from salesdesk.security.context import Actor
from salesdesk.security.scope import deny
from salesdesk.targets.service import month_bounds
from salesdesk.users.models import User

logger = logging.getLogger("salesdesk.activities")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ActivitiesService:
    module = "activities"

    def create_activity(self, session: Session, actor: Actor, payload: ActivityCreate) -> ActivityRead:
        data = payload.model_dump()
        data["assignee_id"] = data["assignee_id"] or actor.user_id
        self._require_assignee(session, actor, data["assignee_id"])
        require_parents(
            session,
            {"lead_id": payload.lead_id, "customer_id": payload.customer_id, "deal_id": payload.deal_id},
            required=False,
        )
        activity = Activity(**data, created_by_id=actor.user_id)
        if activity.status == "COMPLETED":
            activity.completed_at = utcnow()
        session.add(activity)
        session.flush()
        audit_log_service.record(
            session, actor, module=self.module, action="CREATE", entity_id=activity.id, new_values=snapshot(activity)
        )
        session.commit()
        events.publish(
            events.build_envelope(
                "activity.created",
                actor.user_id,
                {"activity_id": str(activity.id), "type": activity.type, "assignee_id": str(activity.assignee_id)},
            )
        )
        return self._read(session, activity.id)

    def list_activities(self, session: Session, actor: Actor, filters: dict[str, Any]) -> list[ActivityRead]:
        stmt = self._scoped(select(Activity), actor)
        assignee_id = filters.get("assignee_id")
        if assignee_id is not None and not actor.is_employee:
            if not actor.can_see_owner(assignee_id):
                return []
            stmt = stmt.where(Activity.assignee_id == assignee_id)
        if filters.get("type"):
            stmt = stmt.where(Activity.type == filters["type"])
        if filters.get("status"):
            stmt = stmt.where(Activity.status == filters["status"])
        if filters.get("start") is not None:
            stmt = stmt.where(Activity.scheduled_at >= filters["start"])
        if filters.get("end") is not None:
            stmt = stmt.where(Activity.scheduled_at <= filters["end"])
        return self._rows(session, stmt)

    def list_today(self, session: Session, actor: Actor, today: date | None = None) -> list[ActivityRead]:
        today = today or utcnow().date()
        start = datetime.combine(today, time.min, tzinfo=timezone.utc)
        stmt = self._scoped(select(Activity), actor).where(
            Activity.scheduled_at >= start,
            Activity.scheduled_at < start + timedelta(days=1),
        )
        return self._rows(session, stmt)

    def list_overdue(self, session: Session, actor: Actor) -> list[ActivityRead]:
        """Flag scheduled activities whose time has passed as OVERDUE and return every overdue one in scope."""
        flagged = session.execute(
            self._scoped(update(Activity), actor)
            .where(Activity.status == "SCHEDULED", Activity.scheduled_at < utcnow())
            .values(status="OVERDUE", updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        ).rowcount
        session.commit()
        if flagged:
            logger.info("activity.overdue_flagged", extra={"user_id": str(actor.user_id), "status": "OVERDUE"})
        return self._rows(session, self._scoped(select(Activity), actor).where(Activity.status == "OVERDUE"))

    def stats(self, session: Session, actor: Actor) -> ActivityStats:
        visible = actor.visible_owner_ids()

        def grouped(column: Any) -> dict[str, int]:
            stmt = select(column, func.count(Activity.id)).group_by(column)
            if visible is not None:
                stmt = stmt.where(Activity.assignee_id.in_(visible))
            return {key: count for key, count in session.execute(stmt).all()}

        by_status = grouped(Activity.status)
        month_start, _ = month_bounds(utcnow().date())
        completed = select(func.count(Activity.id)).where(
            Activity.status == "COMPLETED",
            Activity.completed_at >= month_start,
        )
        if visible is not None:
            completed = completed.where(Activity.assignee_id.in_(visible))
        return ActivityStats(
            total=sum(by_status.values()),
            completed_this_month=session.scalar(completed) or 0,
            by_status=by_status,
            by_type=grouped(Activity.type),
        )

    def get_activity(self, session: Session, actor: Actor, activity_id: uuid.UUID) -> ActivityRead:
        self._get_visible(session, actor, activity_id, "You do not have access to this activity")
        return self._read(session, activity_id)

    def update_activity(
        self,
        session: Session,
        actor: Actor,
        activity_id: uuid.UUID,
        payload: ActivityUpdate,
    ) -> ActivityRead:
        activity = self._get_visible(session, actor, activity_id, "You do not have access to update this activity")
        changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
        if "assignee_id" in changes:
            self._require_assignee(session, actor, changes["assignee_id"])
        if changes.get("status") == "COMPLETED" and activity.status != "COMPLETED":
            changes["completed_at"] = utcnow()
        return self._apply(session, actor, activity, changes)

    def complete(self, session: Session, actor: Actor, activity_id: uuid.UUID, outcome: str | None) -> ActivityRead:
        activity = self._get_visible(session, actor, activity_id, "You cannot complete this activity")
        return self._apply(session, actor, activity, {"status": "COMPLETED", "completed_at": utcnow(), "outcome": outcome or ""})

    def reschedule(
        self, session: Session, actor: Actor, activity_id: uuid.UUID, payload: ActivityReschedule
    ) -> ActivityRead:
        activity = self._get_visible(session, actor, activity_id, "You cannot reschedule this activity")
        return self._apply(
            session,
            actor,
            activity,
            {"scheduled_at": payload.scheduled_at, "status": "SCHEDULED", "completed_at": None},
        )

    def cancel(self, session: Session, actor: Actor, activity_id: uuid.UUID) -> ActivityRead:
        activity = self._get_visible(session, actor, activity_id, "You cannot cancel this activity")
        return self._apply(session, actor, activity, {"status": "CANCELLED"})

    def delete_activity(self, session: Session, actor: Actor, activity_id: uuid.UUID) -> None:
        activity = self._get_visible(session, actor, activity_id, "You cannot delete this activity")
        before = snapshot(activity)
        session.delete(activity)
        audit_log_service.record(session, actor, module=self.module, action="DELETE", entity_id=activity_id, old_values=before)
        session.commit()

    def _apply(self, session: Session, actor: Actor, activity: Activity, changes: dict[str, Any]) -> ActivityRead:
        before = snapshot(activity)
        for key, value in changes.items():
            setattr(activity, key, value)
        audit_log_service.record(
            session,
            actor,
            module=self.module,
            action="UPDATE",
            entity_id=activity.id,
            old_values=before,
            new_values=snapshot(activity),
        )
        session.commit()
        if before.get("status") != activity.status:
            logger.info("activity.status_changed", extra={"entity_id": str(activity.id), "status": activity.status})
        return self._read(session, activity.id)

    @staticmethod
    def _require_assignee(session: Session, actor: Actor, assignee_id: uuid.UUID) -> None:
        if session.get(User, assignee_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
        if not actor.can_see_owner(assignee_id):
            deny("activity", "team", "You can only assign activities within your team")

    @staticmethod
    def _scoped(stmt: Any, actor: Actor) -> Any:
        visible = actor.visible_owner_ids()
        if visible is None:
            return stmt
        return stmt.where(Activity.assignee_id.in_(visible))

    @staticmethod
    def _rows(session: Session, stmt: Select[tuple[Activity]]) -> list[ActivityRead]:
        rows = session.scalars(
            stmt.options(selectinload(Activity.assignee)).order_by(Activity.scheduled_at.asc())
        ).all()
        return [ActivityRead.model_validate(row) for row in rows]

    def _get_visible(self, session: Session, actor: Actor, activity_id: uuid.UUID, detail: str) -> Activity:
        activity = self._get(session, activity_id)
        if not actor.can_see_owner(activity.assignee_id):
            deny("activity", "owner", detail)
        return activity

    @staticmethod
    def _get(session: Session, activity_id: uuid.UUID) -> Activity:
        activity = session.get(Activity, activity_id)
        if activity is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity not found")
        return activity

    @staticmethod
    def _read(session: Session, activity_id: uuid.UUID) -> ActivityRead:
        activity = session.scalar(
            select(Activity).options(selectinload(Activity.assignee)).where(Activity.id == activity_id)
        )
        return ActivityRead.model_validate(activity)


activities_service = ActivitiesService()
