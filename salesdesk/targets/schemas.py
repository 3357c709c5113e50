from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from salesdesk.users.schemas import UserSummary


class TargetUpsert(BaseModel):
    user_id: UUID
    amount: Decimal = Field(ge=Decimal("0"))
    month: date


class TargetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    month: date
    amount: Decimal
    set_by_id: UUID | None
    created_at: datetime
    updated_at: datetime


class TargetStats(BaseModel):
    target: Decimal
    achieved: Decimal
    pending: Decimal
    percentage: float
    month: date


class TargetProgress(TargetRead):
    user: UserSummary | None = None
    achieved: Decimal = Decimal("0.00")
    percentage: float = 0.0
