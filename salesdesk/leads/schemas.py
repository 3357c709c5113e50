from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from salesdesk.users.schemas import UserSummary


LeadStatus = Literal["COLD_LEAD", "WARM_LEAD", "HOT_LEAD", "PROPOSAL_LEAD", "CLOSED_LEAD", "NOT_INTERESTED"]
LeadSource = Literal["WEBSITE", "REFERRAL", "SOCIAL_MEDIA", "COLD_CALL", "EMAIL", "OTHER"]
LEAD_STATUSES: tuple[str, ...] = ("COLD_LEAD", "WARM_LEAD", "HOT_LEAD", "PROPOSAL_LEAD", "CLOSED_LEAD", "NOT_INTERESTED")
LEAD_SOURCES: tuple[str, ...] = ("WEBSITE", "REFERRAL", "SOCIAL_MEDIA", "COLD_CALL", "EMAIL", "OTHER")
TransferStatus = Literal["PENDING", "APPROVED", "REJECTED"]


class LeadCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    salutation: str | None = None
    phone: str | None = None
    mobile: str | None = None
    company: str | None = None
    department: str | None = None
    industry: str | None = None
    gstin: str | None = None
    description: str | None = None
    status: LeadStatus = "COLD_LEAD"
    source: LeadSource = "OTHER"
    assignee_id: UUID | None = None
    notes: str | None = None
    next_follow_up: datetime | None = None


class LeadUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    salutation: str | None = None
    phone: str | None = None
    mobile: str | None = None
    company: str | None = None
    department: str | None = None
    industry: str | None = None
    gstin: str | None = None
    description: str | None = None
    status: LeadStatus | None = None
    source: LeadSource | None = None
    next_follow_up: datetime | None = None


class AssignLeadRequest(BaseModel):
    assignee_id: UUID


class UpdateLeadStatusRequest(BaseModel):
    status: LeadStatus


class BulkAssignRequest(BaseModel):
    lead_ids: list[UUID] = Field(min_length=1)
    assignee_id: UUID


class BulkDeleteRequest(BaseModel):
    lead_ids: list[UUID] = Field(min_length=1)


class BulkResult(BaseModel):
    count: int


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    salutation: str | None
    first_name: str
    last_name: str
    email: str
    phone: str | None
    mobile: str | None
    company: str | None
    department: str | None
    industry: str | None
    gstin: str | None
    description: str | None
    status: LeadStatus | str
    source: LeadSource | str
    next_follow_up: datetime | None
    assignee_id: UUID | None
    created_by_id: UUID
    branch_id: UUID | None
    converted_to_customer_id: UUID | None
    created_at: datetime
    updated_at: datetime
    assignee: UserSummary | None = None


class LeadPage(BaseModel):
    items: list[LeadRead]
    total: int
    page: int
    page_size: int


class LeadStats(BaseModel):
    total: int
    by_status: dict[str, int]


class ImportRowError(BaseModel):
    row_number: int
    message: str


class LeadImportResult(BaseModel):
    created: int
    failed: int
    errors: list[ImportRowError] = Field(default_factory=list)


class TransferRequestCreate(BaseModel):
    reason: str | None = None
    target_user_id: UUID | None = None


class TransferDecisionRequest(BaseModel):
    decision: Literal["APPROVE", "REJECT"]
    notes: str | None = None


class TransferRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    requester_id: UUID
    target_user_id: UUID | None
    reason: str | None
    status: TransferStatus | str
    decided_by_id: UUID | None
    decision_notes: str | None
    decided_at: datetime | None
    created_at: datetime


class LeadSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    first_name: str
    last_name: str
    company: str | None = None
