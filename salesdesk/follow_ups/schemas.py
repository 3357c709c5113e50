from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


FollowUpStatus = Literal["SCHEDULED", "COMPLETED", "CANCELLED"]


class FollowUpCreate(BaseModel):
    lead_id: UUID
    description: str = Field(min_length=1)
    scheduled_at: datetime


class FollowUpUpdate(BaseModel):
    description: str | None = Field(default=None, min_length=1)
    scheduled_at: datetime | None = None
    status: FollowUpStatus | None = None


class FollowUpRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    description: str
    scheduled_at: datetime
    status: FollowUpStatus | str
    completed_at: datetime | None
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime
