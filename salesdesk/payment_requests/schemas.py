from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from salesdesk.customers.schemas import CustomerSummary
from salesdesk.leads.schemas import LeadSummary
from salesdesk.users.schemas import UserSummary


PaymentRequestStatus = Literal["PENDING", "APPROVED", "REJECTED"]


class PaymentRequestDecision(BaseModel):
    status: Literal["APPROVED", "REJECTED"]
    rejection_reason: str | None = None


class PaymentRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    amount: Decimal
    notes: str | None
    screenshot_url: str | None
    status: PaymentRequestStatus | str
    requester_id: UUID
    approver_id: UUID | None
    rejection_reason: str | None
    lead_id: UUID | None
    customer_id: UUID | None
    payment_id: UUID | None
    created_at: datetime
    updated_at: datetime
    requester: UserSummary | None = None
    approver: UserSummary | None = None
    lead: LeadSummary | None = None
    customer: CustomerSummary | None = None
