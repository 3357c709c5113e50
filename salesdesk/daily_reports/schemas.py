from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from salesdesk.customers.schemas import CustomerSummary
from salesdesk.users.schemas import UserSummary


class DailyReportCreate(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    content: str = Field(min_length=1)
    call_count: int = Field(default=0, ge=0)
    avg_talk_time: Decimal | None = Field(default=None, ge=Decimal("0"))
    payment_received_from_customer_ids: list[UUID] = Field(default_factory=list)


class DailyReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID
    title: str | None
    content: str
    call_count: int
    avg_talk_time: Decimal | None
    created_at: datetime
    updated_at: datetime
    employee: UserSummary | None = None
    payment_received_from: list[CustomerSummary] = Field(default_factory=list)
