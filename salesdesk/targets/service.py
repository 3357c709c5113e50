from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.payments.models import Payment
from salesdesk.security.context import Actor
from salesdesk.security.scope import deny
from salesdesk.targets.models import Target
from salesdesk.targets.schemas import TargetProgress, TargetRead, TargetStats, TargetUpsert
from salesdesk.users.models import User

ZERO = Decimal("0.00")


def _q(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


def month_start(value: date | None = None) -> date:
    value = value or datetime.now(timezone.utc).date()
    return value.replace(day=1)


def month_bounds(month: date) -> tuple[datetime, datetime]:
    start = month_start(month)
    following = date(start.year + 1, 1, 1) if start.month == 12 else date(start.year, start.month + 1, 1)
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(following, time.min, tzinfo=timezone.utc),
    )


def payments_by_creator(
    session: Session,
    user_ids: list[uuid.UUID] | None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict[uuid.UUID, Decimal]:
    """Sum of payment amounts per creator for payments dated in [start, end); None for user_ids means everyone."""
    if user_ids is not None and not user_ids:
        return {}
    stmt = select(Payment.created_by_id, func.sum(Payment.amount)).group_by(Payment.created_by_id)
    if user_ids is not None:
        stmt = stmt.where(Payment.created_by_id.in_(user_ids))
    if start is not None:
        stmt = stmt.where(Payment.payment_date >= start)
    if end is not None:
        stmt = stmt.where(Payment.payment_date < end)
    return {user_id: _q(total) for user_id, total in session.execute(stmt).all()}


def percentage(achieved: Decimal, target: Decimal) -> float:
    if target <= 0:
        return 0.0
    return round(float(achieved / target * 100), 2)


@dataclass(slots=True)
class TargetsService:
    module = "targets"

    def upsert_target(self, session: Session, actor: Actor, payload: TargetUpsert) -> TargetRead:
        if actor.is_manager and not actor.can_see_owner(payload.user_id):
            deny("target", "team", "Managers can only set targets for their team")
        if session.get(User, payload.user_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")

        month = month_start(payload.month)
        target = session.scalar(select(Target).where(Target.user_id == payload.user_id, Target.month == month))
        if target is None:
            target = Target(user_id=payload.user_id, month=month, amount=payload.amount, set_by_id=actor.user_id)
            session.add(target)
            session.flush()
            audit_log_service.record(session, actor, module=self.module, action="CREATE", entity_id=target.id, new_values=snapshot(target))
        else:
            before = snapshot(target)
            target.amount = payload.amount
            target.set_by_id = actor.user_id
            audit_log_service.record(
                session, actor, module=self.module, action="UPDATE", entity_id=target.id, old_values=before, new_values=snapshot(target)
            )
        session.commit()
        return TargetRead.model_validate(target)

    def user_stats(self, session: Session, actor: Actor, user_id: uuid.UUID, month: date | None = None) -> TargetStats:
        if not actor.can_see_owner(user_id):
            deny("target", "owner", "You do not have access to this user's target")
        month = month_start(month)
        target = session.scalar(select(Target.amount).where(Target.user_id == user_id, Target.month == month))
        target_amount = _q(target)
        achieved = self._achieved(session, [user_id], month).get(user_id, ZERO)
        return TargetStats(
            target=target_amount,
            achieved=achieved,
            pending=max(ZERO, target_amount - achieved),
            percentage=percentage(achieved, target_amount),
            month=month,
        )

    def list_targets(self, session: Session, actor: Actor, month: date | None = None) -> list[TargetProgress]:
        month = month_start(month)
        stmt = select(Target).where(Target.month == month)
        visible = actor.visible_owner_ids()
        if visible is not None:
            stmt = stmt.where(Target.user_id.in_(visible))
        targets = session.scalars(stmt.options(selectinload(Target.user)).order_by(Target.amount.desc())).all()
        achieved = self._achieved(session, [target.user_id for target in targets], month)

        rows: list[TargetProgress] = []
        for target in targets:
            amount = _q(target.amount)
            done = achieved.get(target.user_id, ZERO)
            row = TargetProgress.model_validate(target)
            rows.append(row.model_copy(update={"achieved": done, "percentage": percentage(done, amount)}))
        return rows

    @staticmethod
    def _achieved(session: Session, user_ids: list[uuid.UUID], month: date) -> dict[uuid.UUID, Decimal]:
        return payments_by_creator(session, user_ids, *month_bounds(month))


targets_service = TargetsService()
