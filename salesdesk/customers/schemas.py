from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from salesdesk.users.schemas import UserSummary


CustomerLifecycle = Literal["LEAD", "PROSPECT", "OPPORTUNITY", "CUSTOMER", "CHURNED"]
CUSTOMER_LIFECYCLES: tuple[str, ...] = ("LEAD", "PROSPECT", "OPPORTUNITY", "CUSTOMER", "CHURNED")


class CustomerCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    phone: str | None = None
    mobile: str | None = None
    company: str | None = None
    position: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    website: str | None = None
    industry: str | None = None
    annual_revenue: Decimal | None = Field(default=None, ge=Decimal("0"))
    notes: str | None = None
    lifecycle: CustomerLifecycle = "CUSTOMER"
    assignee_id: UUID | None = None


class CustomerUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    mobile: str | None = None
    company: str | None = None
    position: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    website: str | None = None
    industry: str | None = None
    annual_revenue: Decimal | None = Field(default=None, ge=Decimal("0"))
    notes: str | None = None
    assignee_id: UUID | None = None


class UpdateLifecycleRequest(BaseModel):
    lifecycle: CustomerLifecycle


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str
    phone: str | None
    mobile: str | None
    company: str | None
    position: str | None
    address: str | None
    city: str | None
    state: str | None
    country: str | None
    website: str | None
    industry: str | None
    annual_revenue: Decimal | None
    notes: str | None
    lifecycle: CustomerLifecycle | str
    assignee_id: UUID | None
    created_by_id: UUID
    branch_id: UUID | None
    lead_id: UUID | None
    created_at: datetime
    updated_at: datetime
    assignee: UserSummary | None = None


class CustomerStats(BaseModel):
    total: int
    by_lifecycle: dict[str, int]


class CustomerSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str
    company: str | None = None
