from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AttachmentRecordCreate(BaseModel):
    filename: str = Field(min_length=1, max_length=255)
    original_name: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(min_length=1, max_length=128)
    size: int = Field(ge=0)
    url: str = Field(min_length=1, max_length=1024)
    s3_key: str = Field(min_length=1, max_length=512)
    lead_id: UUID | None = None
    customer_id: UUID | None = None
    deal_id: UUID | None = None


class AttachmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str
    storage_backend: str
    storage_key: str
    lead_id: UUID | None
    customer_id: UUID | None
    deal_id: UUID | None
    uploaded_by_id: UUID
    created_at: datetime
