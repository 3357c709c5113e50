from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, selectinload

from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.customers.models import Customer
from salesdesk.deals.models import Deal
from salesdesk.deals.repository import DealRepository
from salesdesk.deals.schemas import (
    CLOSED_STAGES,
    DEAL_STAGES,
    STAGE_PROBABILITY,
    DealCreate,
    DealRead,
    DealStats,
    DealUpdate,
    PipelineStage,
    StageBucket,
)
from salesdesk.leads.models import Lead
from salesdesk.security.context import Actor
from salesdesk.security.errors import AuthorizationError
from salesdesk.security.scope import deny, require_not_employee

logger = logging.getLogger("salesdesk.deals")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _q(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


@dataclass(slots=True)
class DealsService:
    repository: DealRepository = DealRepository()
    module = "deals"

    def create_deal(self, session: Session, actor: Actor, payload: DealCreate) -> DealRead:
        if payload.lead_id is not None and session.get(Lead, payload.lead_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lead not found")
        self._require_customer(session, payload.customer_id)
        return self._insert(session, actor, payload, lead_id=payload.lead_id)

    def create_from_lead(self, session: Session, actor: Actor, lead_id: uuid.UUID, payload: DealCreate) -> DealRead:
        lead = session.get(Lead, lead_id)
        if lead is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lead not found")
        self._require_customer(session, payload.customer_id)
        return self._insert(session, actor, payload, lead_id=lead.id, branch_id=lead.branch_id)

    def list_deals(
        self,
        session: Session,
        actor: Actor,
        *,
        stage: str | None = None,
        owner_id: uuid.UUID | None = None,
        customer_id: uuid.UUID | None = None,
        search: str | None = None,
    ) -> list[DealRead]:
        stmt: Select[tuple[Deal]] = self.repository.apply_scope_query(select(Deal), actor)
        if stage:
            stmt = stmt.where(Deal.stage == stage)
        if owner_id is not None and not actor.is_employee:
            stmt = stmt.where(Deal.owner_id == owner_id)
        if customer_id is not None:
            stmt = stmt.where(Deal.customer_id == customer_id)
        if search:
            stmt = stmt.where(Deal.title.ilike(f"%{search}%"))
        rows = session.scalars(stmt.options(selectinload(Deal.owner)).order_by(Deal.created_at.desc())).all()
        return [DealRead.model_validate(row) for row in rows]

    def get_deal(self, session: Session, actor: Actor, deal_id: uuid.UUID) -> DealRead:
        return DealRead.model_validate(self._get_visible(session, actor, deal_id))

    def update_deal(self, session: Session, actor: Actor, deal_id: uuid.UUID, payload: DealUpdate) -> DealRead:
        deal = self._get_visible(session, actor, deal_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("customer_id") is not None:
            self._require_customer(session, data["customer_id"])

        before = snapshot(deal)
        new_stage = data.pop("stage", None)
        for key, value in data.items():
            if value is None and key in {"title", "value", "probability"}:
                continue
            setattr(deal, key, value)
        if new_stage is not None:
            self._set_stage(deal, new_stage, keep_probability="probability" in data and data["probability"] is not None)

        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=deal.id, old_values=before, new_values=snapshot(deal)
        )
        session.commit()
        return self._read(session, deal.id)

    def update_stage(self, session: Session, actor: Actor, deal_id: uuid.UUID, stage: str) -> DealRead:
        deal = self._get_visible(session, actor, deal_id)
        before = snapshot(deal)
        self._set_stage(deal, stage)
        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=deal.id, old_values=before, new_values=snapshot(deal)
        )
        session.commit()
        logger.info("deal.stage_changed", extra={"entity_id": str(deal.id), "status": stage})
        return self._read(session, deal.id)

    def delete_deal(self, session: Session, actor: Actor, deal_id: uuid.UUID) -> None:
        require_not_employee(actor, self.repository.resource, "Employees cannot delete deals")
        deal = self._get_visible(session, actor, deal_id)
        before = snapshot(deal)
        session.delete(deal)
        audit_log_service.record(session, actor, module=self.module, action="DELETE", entity_id=deal_id, old_values=before)
        session.commit()

    def get_stats(self, session: Session, actor: Actor) -> DealStats:
        stmt = self.repository.apply_scope_query(select(Deal.stage, func.count(), func.sum(Deal.value)), actor)
        rows = session.execute(stmt.group_by(Deal.stage)).all()
        by_stage = {stage: StageBucket() for stage in DEAL_STAGES}
        for stage, count, value in rows:
            by_stage[stage] = StageBucket(count=int(count), value=_q(value))

        won = by_stage["CLOSED_WON"]
        return DealStats(
            total=sum(bucket.count for bucket in by_stage.values()),
            total_value=_q(sum((bucket.value for bucket in by_stage.values()), Decimal("0"))),
            won_deals=won.count,
            won_value=won.value,
            by_stage=by_stage,
        )

    def get_pipeline(self, session: Session, actor: Actor) -> list[PipelineStage]:
        stmt = self.repository.apply_scope_query(select(Deal), actor)
        rows = session.scalars(stmt.options(selectinload(Deal.owner)).order_by(Deal.updated_at.desc())).all()
        grouped: dict[str, list[DealRead]] = {stage: [] for stage in DEAL_STAGES}
        for row in rows:
            grouped.setdefault(row.stage, []).append(DealRead.model_validate(row))
        return [
            PipelineStage(stage=stage, probability=STAGE_PROBABILITY.get(stage, 0), deals=deals)
            for stage, deals in grouped.items()
        ]

    def _insert(
        self,
        session: Session,
        actor: Actor,
        payload: DealCreate,
        *,
        lead_id: uuid.UUID | None,
        branch_id: uuid.UUID | None = None,
    ) -> DealRead:
        data = payload.model_dump(mode="python", exclude={"lead_id"})
        if data.get("probability") is None:
            data["probability"] = STAGE_PROBABILITY[payload.stage]
        deal = Deal(
            **data,
            lead_id=lead_id,
            owner_id=actor.user_id,
            branch_id=branch_id or actor.branch_id,
        )
        if deal.stage in CLOSED_STAGES:
            deal.actual_close_date = utcnow()
        session.add(deal)
        session.flush()
        audit_log_service.record(session, actor, module=self.module, action="CREATE", entity_id=deal.id, new_values=snapshot(deal))
        session.commit()
        logger.info("deal.created", extra={"entity_id": str(deal.id)})
        return self._read(session, deal.id)

    @staticmethod
    def _set_stage(deal: Deal, stage: str, *, keep_probability: bool = False) -> None:
        deal.stage = stage
        if not keep_probability:
            deal.probability = STAGE_PROBABILITY[stage]
        if stage in CLOSED_STAGES:
            deal.actual_close_date = utcnow()

    def _get_visible(self, session: Session, actor: Actor, deal_id: uuid.UUID) -> Deal:
        deal = session.get(Deal, deal_id)
        if deal is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="deal not found")
        try:
            self.repository.validate_read_scope(actor, deal)
        except AuthorizationError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
        if not actor.can_see_owner(deal.owner_id):
            deny(self.repository.resource, "owner", "You do not have access to this deal")
        return deal

    @staticmethod
    def _read(session: Session, deal_id: uuid.UUID) -> DealRead:
        deal = session.scalar(select(Deal).where(Deal.id == deal_id).options(selectinload(Deal.owner)))
        return DealRead.model_validate(deal)

    @staticmethod
    def _require_customer(session: Session, customer_id: uuid.UUID | None) -> None:
        if customer_id is not None and session.get(Customer, customer_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="customer not found")


deals_service = DealsService()
