from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel

from salesdesk.users.schemas import UserSummary


class LeaderboardMetrics(BaseModel):
    revenue_closed: Decimal = Decimal("0.00")
    deals_won: int = 0
    payments_collected: Decimal = Decimal("0.00")
    activities_completed: int = 0
    activity_completion_rate: int = 0
    lead_conversion_rate: int = 0


class LeaderboardEntry(BaseModel):
    rank: int
    user: UserSummary
    metrics: LeaderboardMetrics


class ManagerStanding(BaseModel):
    rank: int
    user: UserSummary
    revenue_closed: Decimal
    deals_won: int
    team_size: int


class SelfStanding(BaseModel):
    user: UserSummary
    metrics: LeaderboardMetrics
    global_rank: int | None
