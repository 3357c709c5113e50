from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor, require_roles
from salesdesk.core.database import get_db
from salesdesk.deals.schemas import DealCreate, DealRead, DealStage, DealStats, DealUpdate, PipelineStage, UpdateStageRequest
from salesdesk.deals.service import deals_service
from salesdesk.security.context import MANAGER, SUPER_ADMIN, Actor


router = APIRouter(prefix="/api/deals", tags=["deals"])


@router.post("", response_model=DealRead, status_code=status.HTTP_201_CREATED)
def create_deal(
    payload: DealCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> DealRead:
    return deals_service.create_deal(db, actor, payload)


@router.post("/from-lead/{lead_id}", response_model=DealRead, status_code=status.HTTP_201_CREATED)
def create_deal_from_lead(
    lead_id: uuid.UUID,
    payload: DealCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> DealRead:
    return deals_service.create_from_lead(db, actor, lead_id, payload)


@router.get("", response_model=list[DealRead])
def list_deals(
    stage: DealStage | None = Query(default=None),
    owner_id: uuid.UUID | None = Query(default=None),
    customer_id: uuid.UUID | None = Query(default=None),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[DealRead]:
    return deals_service.list_deals(db, actor, stage=stage, owner_id=owner_id, customer_id=customer_id, search=search)


@router.get("/stats", response_model=DealStats)
def deal_stats(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> DealStats:
    return deals_service.get_stats(db, actor)


@router.get("/pipeline", response_model=list[PipelineStage])
def deal_pipeline(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> list[PipelineStage]:
    return deals_service.get_pipeline(db, actor)


@router.get("/{deal_id}", response_model=DealRead)
def get_deal(
    deal_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> DealRead:
    return deals_service.get_deal(db, actor, deal_id)


@router.patch("/{deal_id}", response_model=DealRead)
def update_deal(
    deal_id: uuid.UUID,
    payload: DealUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> DealRead:
    return deals_service.update_deal(db, actor, deal_id, payload)


@router.patch("/{deal_id}/stage", response_model=DealRead)
def update_deal_stage(
    deal_id: uuid.UUID,
    payload: UpdateStageRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> DealRead:
    return deals_service.update_stage(db, actor, deal_id, payload.stage)


@router.delete("/{deal_id}", status_code=status.HTTP_200_OK)
def delete_deal(
    deal_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> dict[str, str]:
    deals_service.delete_deal(db, actor, deal_id)
    return {"message": "Deal deleted successfully"}
