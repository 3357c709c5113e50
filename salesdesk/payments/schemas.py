from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


PaymentMethod = Literal["CASH", "BANK_TRANSFER", "UPI", "CHEQUE", "CARD", "OTHER"]
ReferenceType = Literal["INVOICE", "INTERNAL"]


class PaymentCreate(BaseModel):
    amount: Decimal = Field(gt=Decimal("0"))
    total_amount: Decimal | None = Field(default=None, gt=Decimal("0"))
    payment_date: datetime | None = None
    payment_method: PaymentMethod = "OTHER"
    reference_type: ReferenceType = "INTERNAL"
    reference_number: str | None = Field(default=None, max_length=128)
    customer_id: UUID | None = None
    notes: str | None = None


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payment_number: str
    amount: Decimal
    total_amount: Decimal
    payment_date: datetime
    payment_method: PaymentMethod | str
    reference_type: ReferenceType | str
    reference_number: str | None
    customer_id: UUID | None
    notes: str | None
    created_by_id: UUID
    created_at: datetime
