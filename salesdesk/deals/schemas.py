from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from salesdesk.users.schemas import UserSummary


DealStage = Literal["QUALIFICATION", "NEEDS_ANALYSIS", "PROPOSAL", "NEGOTIATION", "CLOSED_WON", "CLOSED_LOST"]
DEAL_STAGES: tuple[str, ...] = ("QUALIFICATION", "NEEDS_ANALYSIS", "PROPOSAL", "NEGOTIATION", "CLOSED_WON", "CLOSED_LOST")
STAGE_PROBABILITY: dict[str, int] = {
    "QUALIFICATION": 10,
    "NEEDS_ANALYSIS": 25,
    "PROPOSAL": 50,
    "NEGOTIATION": 75,
    "CLOSED_WON": 100,
    "CLOSED_LOST": 0,
}
CLOSED_STAGES = frozenset({"CLOSED_WON", "CLOSED_LOST"})


class DealCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    value: Decimal = Field(ge=Decimal("0"))
    stage: DealStage = "QUALIFICATION"
    probability: int | None = Field(default=None, ge=0, le=100)
    expected_close_date: date | None = None
    description: str | None = None
    lead_id: UUID | None = None
    customer_id: UUID | None = None


class DealUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    value: Decimal | None = Field(default=None, ge=Decimal("0"))
    stage: DealStage | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    expected_close_date: date | None = None
    description: str | None = None
    customer_id: UUID | None = None


class UpdateStageRequest(BaseModel):
    stage: DealStage


class DealRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None
    value: Decimal
    stage: DealStage | str
    probability: int
    expected_close_date: date | None
    actual_close_date: datetime | None
    owner_id: UUID
    lead_id: UUID | None
    customer_id: UUID | None
    branch_id: UUID | None
    created_at: datetime
    updated_at: datetime
    owner: UserSummary | None = None


class StageBucket(BaseModel):
    count: int = 0
    value: Decimal = Decimal("0.00")


class DealStats(BaseModel):
    total: int
    total_value: Decimal
    won_deals: int
    won_value: Decimal
    by_stage: dict[str, StageBucket]


class PipelineStage(BaseModel):
    stage: str
    probability: int
    deals: list[DealRead]
