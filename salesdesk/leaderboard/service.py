from __future__ import annotations

import uuid
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from salesdesk.activities.models import Activity
from salesdesk.deals.models import Deal
from salesdesk.leaderboard.schemas import LeaderboardEntry, LeaderboardMetrics, ManagerStanding, SelfStanding
from salesdesk.leads.models import Lead
from salesdesk.security.context import EMPLOYEE, MANAGER, Actor
from salesdesk.targets.service import month_bounds, payments_by_creator
from salesdesk.users.models import User
from salesdesk.users.schemas import UserSummary

ZERO = Decimal("0.00")
WON_STAGE = "CLOSED_WON"


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


def _rate(part: int, whole: int) -> int:
    if not whole:
        return 0
    return int((Decimal(part * 100) / Decimal(whole)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class Period:
    """Half-open [start, end) window on creation time; an open side is unbounded."""

    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def between(cls, start_date: date | None, end_date: date | None) -> Period:
        if start_date is not None and end_date is not None and end_date < start_date:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="end_date must not be before start_date",
            )
        return cls(
            start=_day_start(start_date) if start_date is not None else None,
            end=_day_start(end_date + timedelta(days=1)) if end_date is not None else None,
        )

    @classmethod
    def month_of(cls, day: date) -> Period:
        start, end = month_bounds(day)
        return cls(start=start, end=end)

    def bound(self, column: Any) -> list[Any]:
        clauses = []
        if self.start is not None:
            clauses.append(column >= self.start)
        if self.end is not None:
            clauses.append(column < self.end)
        return clauses


def _ordered(users: Sequence[User], key: Any) -> list[User]:
    return sorted(users, key=lambda user: (*key(user), user.first_name, user.last_name))


@dataclass(slots=True)
class LeaderboardService:
    def global_board(self, session: Session, period: Period) -> list[LeaderboardEntry]:
        users = session.scalars(select(User).where(User.is_active.is_(True), User.role == EMPLOYEE)).all()
        return self._rank(session, users, period)

    def team_board(self, session: Session, actor: Actor, period: Period) -> list[LeaderboardEntry]:
        users = session.scalars(select(User).where(User.manager_id == actor.user_id, User.is_active.is_(True))).all()
        return self._rank(session, users, period)

    def managers_board(self, session: Session, period: Period) -> list[ManagerStanding]:
        managers = session.scalars(select(User).where(User.is_active.is_(True), User.role == MANAGER)).all()
        teams: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
        if managers:
            rows = session.execute(
                select(User.id, User.manager_id).where(User.manager_id.in_([manager.id for manager in managers]))
            ).all()
            for member_id, manager_id in rows:
                teams[manager_id].append(member_id)
        won = self._won_deals(session, [member for team in teams.values() for member in team], period)

        totals: dict[uuid.UUID, tuple[Decimal, int]] = {}
        for manager in managers:
            team_won = [won[member] for member in teams[manager.id] if member in won]
            totals[manager.id] = (
                sum((revenue for revenue, _ in team_won), ZERO),
                sum(count for _, count in team_won),
            )
        ordered = _ordered(managers, lambda user: (-totals[user.id][0], -totals[user.id][1]))
        return [
            ManagerStanding(
                rank=rank,
                user=UserSummary.model_validate(manager),
                revenue_closed=totals[manager.id][0],
                deals_won=totals[manager.id][1],
                team_size=len(teams[manager.id]),
            )
            for rank, manager in enumerate(ordered, start=1)
        ]

    def self_standing(self, session: Session, actor: Actor, period: Period) -> SelfStanding:
        user = session.get(User, actor.user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
        metrics = self._metrics(session, [user.id], period)[user.id]
        ranks = {entry.user.id: entry.rank for entry in self.global_board(session, period)}
        return SelfStanding(user=UserSummary.model_validate(user), metrics=metrics, global_rank=ranks.get(user.id))

    def monthly_standing(self, session: Session, actor: Actor, today: date | None = None) -> SelfStanding:
        return self.self_standing(session, actor, Period.month_of(today or datetime.now(timezone.utc).date()))

    def _rank(self, session: Session, users: Sequence[User], period: Period) -> list[LeaderboardEntry]:
        metrics = self._metrics(session, [user.id for user in users], period)
        ordered = _ordered(users, lambda user: (-metrics[user.id].revenue_closed, -metrics[user.id].deals_won))
        return [
            LeaderboardEntry(rank=rank, user=UserSummary.model_validate(user), metrics=metrics[user.id])
            for rank, user in enumerate(ordered, start=1)
        ]

    def _metrics(self, session: Session, user_ids: list[uuid.UUID], period: Period) -> dict[uuid.UUID, LeaderboardMetrics]:
        if not user_ids:
            return {}
        won = self._won_deals(session, user_ids, period)
        activity_rows = session.execute(
            select(
                Activity.assignee_id,
                func.count(Activity.id),
                func.count(case((Activity.status == "COMPLETED", Activity.id))),
            )
            .where(Activity.assignee_id.in_(user_ids), *period.bound(Activity.created_at))
            .group_by(Activity.assignee_id)
        ).all()
        activities = {user_id: (total, completed) for user_id, total, completed in activity_rows}
        lead_rows = session.execute(
            select(Lead.assignee_id, func.count(Lead.id), func.count(Lead.converted_to_customer_id))
            .where(Lead.assignee_id.in_(user_ids), *period.bound(Lead.created_at))
            .group_by(Lead.assignee_id)
        ).all()
        leads = {user_id: (total, converted) for user_id, total, converted in lead_rows}
        payments = payments_by_creator(session, user_ids, period.start, period.end)

        metrics: dict[uuid.UUID, LeaderboardMetrics] = {}
        for user_id in user_ids:
            revenue, deals = won.get(user_id, (ZERO, 0))
            activity_total, completed = activities.get(user_id, (0, 0))
            lead_total, converted = leads.get(user_id, (0, 0))
            metrics[user_id] = LeaderboardMetrics(
                revenue_closed=revenue,
                deals_won=deals,
                payments_collected=payments.get(user_id, ZERO),
                activities_completed=completed,
                activity_completion_rate=_rate(completed, activity_total),
                lead_conversion_rate=_rate(converted, lead_total),
            )
        return metrics

    @staticmethod
    def _won_deals(session: Session, owner_ids: list[uuid.UUID], period: Period) -> dict[uuid.UUID, tuple[Decimal, int]]:
        if not owner_ids:
            return {}
        rows = session.execute(
            select(Deal.owner_id, func.sum(Deal.value), func.count(Deal.id))
            .where(Deal.owner_id.in_(owner_ids), Deal.stage == WON_STAGE, *period.bound(Deal.created_at))
            .group_by(Deal.owner_id)
        ).all()
        return {owner_id: (_money(total), count) for owner_id, total, count in rows}


leaderboard_service = LeaderboardService()
