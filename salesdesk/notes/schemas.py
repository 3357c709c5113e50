from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from salesdesk.users.schemas import UserSummary


class NoteCreate(BaseModel):
    content: str = Field(min_length=1)
    lead_id: UUID | None = None
    customer_id: UUID | None = None
    deal_id: UUID | None = None


class NoteUpdate(BaseModel):
    content: str = Field(min_length=1)


class NoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    content: str
    author_id: UUID
    lead_id: UUID | None
    customer_id: UUID | None
    deal_id: UUID | None
    created_at: datetime
    updated_at: datetime
    author: UserSummary | None = None
