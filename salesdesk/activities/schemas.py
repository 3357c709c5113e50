from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from salesdesk.users.schemas import UserSummary


ActivityType = Literal["CALL", "MEETING", "EMAIL", "TASK", "FOLLOW_UP"]
ActivityStatus = Literal["SCHEDULED", "COMPLETED", "CANCELLED", "OVERDUE"]


class ActivityCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    type: ActivityType
    status: ActivityStatus = "SCHEDULED"
    description: str | None = None
    scheduled_at: datetime
    duration_minutes: int | None = Field(default=None, ge=1)
    location: str | None = Field(default=None, max_length=255)
    assignee_id: UUID | None = None
    lead_id: UUID | None = None
    customer_id: UUID | None = None
    deal_id: UUID | None = None


class ActivityUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    type: ActivityType | None = None
    status: ActivityStatus | None = None
    description: str | None = None
    scheduled_at: datetime | None = None
    duration_minutes: int | None = Field(default=None, ge=1)
    location: str | None = Field(default=None, max_length=255)
    assignee_id: UUID | None = None


class ActivityComplete(BaseModel):
    outcome: str | None = None


class ActivityReschedule(BaseModel):
    scheduled_at: datetime


class ActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    type: ActivityType | str
    status: ActivityStatus | str
    description: str | None
    scheduled_at: datetime
    duration_minutes: int | None
    location: str | None
    outcome: str | None
    completed_at: datetime | None
    assignee_id: UUID
    created_by_id: UUID
    lead_id: UUID | None
    customer_id: UUID | None
    deal_id: UUID | None
    created_at: datetime
    updated_at: datetime
    assignee: UserSummary | None = None


class ActivityStats(BaseModel):
    total: int
    completed_this_month: int
    by_status: dict[str, int]
    by_type: dict[str, int]
