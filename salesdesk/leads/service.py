from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session, selectinload

from salesdesk import events
from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.customers.service import customers_service
from salesdesk.follow_ups.models import FollowUp
from salesdesk.leads.models import Lead, LeadTransferRequest
from salesdesk.leads.repository import LeadRepository
from salesdesk.leads.schemas import (
    LEAD_STATUSES,
    BulkResult,
    LeadCreate,
    LeadPage,
    LeadRead,
    LeadStats,
    LeadUpdate,
    TransferDecisionRequest,
    TransferRequestCreate,
    TransferRequestRead,
)
from salesdesk.notes.models import Note
from salesdesk.security.context import Actor
from salesdesk.security.errors import AuthorizationError
from salesdesk.security.scope import deny, require_not_employee
from salesdesk.users.models import User

logger = logging.getLogger("salesdesk.leads")

CLOSED_STATUS = "CLOSED_LEAD"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class LeadsService:
    repository: LeadRepository = LeadRepository()
    module = "leads"

    def create_lead(self, session: Session, actor: Actor, payload: LeadCreate) -> LeadRead:
        lead = self.build_lead(session, actor, payload)
        session.commit()
        logger.info("lead.created", extra={"entity_id": str(lead.id)})
        return self._to_read(session, actor, lead.id)

    def build_lead(self, session: Session, actor: Actor, payload: LeadCreate) -> Lead:
        """Add a lead with its first note and follow-up to the caller's transaction."""
        data = payload.model_dump(mode="python")
        initial_note = data.pop("notes", None)
        data["email"] = str(data["email"])
        data["assignee_id"] = data.get("assignee_id") or actor.user_id
        self._require_user(session, data["assignee_id"])

        lead = Lead(
            **data,
            title=f"{payload.first_name} {payload.last_name}",
            created_by_id=actor.user_id,
            branch_id=actor.branch_id,
        )
        session.add(lead)
        session.flush()

        if initial_note:
            session.add(Note(content=initial_note, author_id=actor.user_id, lead_id=lead.id))
        if lead.next_follow_up is not None and lead.status != CLOSED_STATUS:
            self._schedule_follow_up(session, actor, lead, lead.next_follow_up)

        audit_log_service.record(session, actor, module=self.module, action="CREATE", entity_id=lead.id, new_values=snapshot(lead))
        events.publish(
            events.build_envelope("lead.created", actor.user_id, {"lead_id": str(lead.id), "status": lead.status})
        )
        return lead

    def list_leads(
        self,
        session: Session,
        actor: Actor,
        filters: dict[str, Any],
        *,
        page: int = 1,
        page_size: int = 25,
    ) -> LeadPage:
        stmt: Select[tuple[Lead]] = self.repository.apply_scope_query(select(Lead), actor)

        assignee_id = filters.get("assignee_id")
        if assignee_id is not None:
            if not actor.can_see_owner(assignee_id) and actor.is_manager:
                return LeadPage(items=[], total=0, page=page, page_size=page_size)
            stmt = stmt.where(Lead.assignee_id == assignee_id)
        if filters.get("exclude_assignee_id") is not None:
            excluded = filters["exclude_assignee_id"]
            stmt = stmt.where(or_(Lead.assignee_id != excluded, Lead.assignee_id.is_(None)))
        if filters.get("status"):
            stmt = stmt.where(Lead.status == filters["status"])
        if filters.get("source"):
            stmt = stmt.where(Lead.source == filters["source"])
        if filters.get("search"):
            pattern = f"%{filters['search']}%"
            stmt = stmt.where(
                or_(
                    Lead.first_name.ilike(pattern),
                    Lead.last_name.ilike(pattern),
                    Lead.email.ilike(pattern),
                    Lead.company.ilike(pattern),
                )
            )

        total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        rows = session.scalars(
            stmt.options(selectinload(Lead.assignee))
            .order_by(Lead.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return LeadPage(
            items=[self._secure(actor, row) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
        )

    def get_lead(self, session: Session, actor: Actor, lead_id: uuid.UUID) -> LeadRead:
        lead = self._get_readable(session, actor, lead_id)
        return self._secure(actor, lead)

    def update_lead(self, session: Session, actor: Actor, lead_id: uuid.UUID, payload: LeadUpdate) -> LeadRead:
        lead = self._get_writable(session, actor, lead_id, "You can only update leads assigned to you")
        before = snapshot(lead)
        data = payload.model_dump(exclude_unset=True)
        requested_status = data.pop("status", None)
        next_follow_up = data.pop("next_follow_up", None)

        for key, value in data.items():
            if value is None and key in {"first_name", "last_name", "email", "source"}:
                continue
            setattr(lead, key, str(value) if key == "email" else value)
        lead.title = f"{lead.first_name} {lead.last_name}"

        if requested_status is not None:
            self._apply_status(session, actor, lead, requested_status)
        if next_follow_up is not None and lead.status != CLOSED_STATUS:
            lead.next_follow_up = next_follow_up
            self._schedule_follow_up(session, actor, lead, next_follow_up)

        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=lead.id, old_values=before, new_values=snapshot(lead)
        )
        session.commit()
        return self._to_read(session, actor, lead.id)

    def assign_lead(self, session: Session, actor: Actor, lead_id: uuid.UUID, assignee_id: uuid.UUID) -> LeadRead:
        require_not_employee(actor, self.repository.resource, "Employees cannot assign leads")
        lead = self._get_readable(session, actor, lead_id)
        self._require_user(session, assignee_id)
        before = snapshot(lead)
        lead.assignee_id = assignee_id
        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=lead.id, old_values=before, new_values=snapshot(lead)
        )
        session.commit()
        return self._to_read(session, actor, lead.id)

    def update_status(self, session: Session, actor: Actor, lead_id: uuid.UUID, new_status: str) -> LeadRead:
        lead = self._get_writable(session, actor, lead_id, "You cannot update status of this lead")
        before = snapshot(lead)
        self._apply_status(session, actor, lead, new_status)
        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=lead.id, old_values=before, new_values=snapshot(lead)
        )
        session.commit()
        return self._to_read(session, actor, lead.id)

    def delete_lead(self, session: Session, actor: Actor, lead_id: uuid.UUID) -> None:
        require_not_employee(actor, self.repository.resource, "Employees cannot delete leads")
        lead = self._get_readable(session, actor, lead_id)
        before = snapshot(lead)
        session.delete(lead)
        audit_log_service.record(session, actor, module=self.module, action="DELETE", entity_id=lead_id, old_values=before)
        session.commit()

    def bulk_assign(self, session: Session, actor: Actor, lead_ids: list[uuid.UUID], assignee_id: uuid.UUID) -> BulkResult:
        require_not_employee(actor, self.repository.resource, "Employees cannot assign leads")
        self._require_user(session, assignee_id)
        leads = self._scoped_leads(session, actor, lead_ids)
        for lead in leads:
            before = snapshot(lead)
            lead.assignee_id = assignee_id
            audit_log_service.record(
                session, actor, module=self.module, action="UPDATE", entity_id=lead.id, old_values=before, new_values=snapshot(lead)
            )
        session.commit()
        return BulkResult(count=len(leads))

    def bulk_delete(self, session: Session, actor: Actor, lead_ids: list[uuid.UUID]) -> BulkResult:
        require_not_employee(actor, self.repository.resource, "Employees cannot delete leads")
        leads = self._scoped_leads(session, actor, lead_ids)
        for lead in leads:
            audit_log_service.record(session, actor, module=self.module, action="DELETE", entity_id=lead.id, old_values=snapshot(lead))
            session.delete(lead)
        session.commit()
        return BulkResult(count=len(leads))

    def get_stats(self, session: Session, actor: Actor) -> LeadStats:
        stmt = self.repository.apply_stats_scope(select(Lead.status, func.count()), actor)
        rows = session.execute(stmt.group_by(Lead.status)).all()
        by_status = {lead_status: 0 for lead_status in LEAD_STATUSES}
        for lead_status, total in rows:
            by_status[lead_status] = int(total)
        return LeadStats(total=sum(by_status.values()), by_status=by_status)

    def request_transfer(
        self,
        session: Session,
        actor: Actor,
        lead_id: uuid.UUID,
        payload: TransferRequestCreate,
    ) -> TransferRequestRead:
        lead = session.get(Lead, lead_id)
        if lead is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lead not found")
        if lead.assignee_id != actor.user_id:
            deny(self.repository.resource, "owner", "Only the assigned user can request a transfer")
        if payload.target_user_id is not None:
            self._require_user(session, payload.target_user_id)

        request = LeadTransferRequest(
            lead_id=lead.id,
            requester_id=actor.user_id,
            target_user_id=payload.target_user_id,
            reason=payload.reason,
        )
        session.add(request)
        session.flush()
        audit_log_service.record(
            session, actor, module="lead_transfer_requests", action="CREATE", entity_id=request.id, new_values=snapshot(request)
        )
        session.commit()
        return TransferRequestRead.model_validate(request)

    def list_transfer_requests(self, session: Session, actor: Actor, status_filter: str | None = None) -> list[TransferRequestRead]:
        stmt = select(LeadTransferRequest)
        if status_filter:
            stmt = stmt.where(LeadTransferRequest.status == status_filter)
        if actor.is_manager:
            stmt = stmt.where(LeadTransferRequest.requester_id.in_(actor.visible_owner_ids() or []))
        rows = session.scalars(stmt.order_by(LeadTransferRequest.created_at.desc())).all()
        return [TransferRequestRead.model_validate(row) for row in rows]

    def decide_transfer(
        self,
        session: Session,
        actor: Actor,
        request_id: uuid.UUID,
        payload: TransferDecisionRequest,
    ) -> TransferRequestRead:
        request = session.get(LeadTransferRequest, request_id)
        if request is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="transfer request not found")
        if request.status != "PENDING":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request is already processed")
        if not actor.can_see_owner(request.requester_id):
            deny("lead_transfer_request", "owner", "You cannot decide this transfer request")

        before = snapshot(request)
        request.status = "APPROVED" if payload.decision == "APPROVE" else "REJECTED"
        request.decided_by_id = actor.user_id
        request.decision_notes = payload.notes
        request.decided_at = utcnow()

        if request.status == "APPROVED":
            lead = session.get(Lead, request.lead_id)
            if lead is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lead not found")
            lead_before = snapshot(lead)
            lead.assignee_id = request.target_user_id
            audit_log_service.record(
                session, actor, module=self.module, action="UPDATE", entity_id=lead.id, old_values=lead_before, new_values=snapshot(lead)
            )

        audit_log_service.record(
            session,
            actor,
            module="lead_transfer_requests",
            action="UPDATE",
            entity_id=request.id,
            old_values=before,
            new_values=snapshot(request),
        )
        session.commit()
        events.publish(
            events.build_envelope(
                "lead_transfer.decided",
                actor.user_id,
                {"request_id": str(request.id), "lead_id": str(request.lead_id), "status": request.status},
            )
        )
        return TransferRequestRead.model_validate(request)

    def _apply_status(self, session: Session, actor: Actor, lead: Lead, new_status: str) -> None:
        lead.status = new_status
        if new_status != CLOSED_STATUS:
            return
        lead.next_follow_up = None
        if lead.converted_to_customer_id is None:
            customer = customers_service.convert_lead(session, actor, lead)
            logger.info("lead.auto_converted", extra={"entity_id": str(lead.id), "status": new_status})
            logger.debug("lead.customer_created", extra={"entity_id": str(customer.id)})

    @staticmethod
    def _schedule_follow_up(session: Session, actor: Actor, lead: Lead, scheduled_at: datetime) -> None:
        session.add(
            FollowUp(
                lead_id=lead.id,
                description=f"Follow-up with {lead.first_name} {lead.last_name}",
                scheduled_at=scheduled_at,
                created_by_id=actor.user_id,
            )
        )

    def _scoped_leads(self, session: Session, actor: Actor, lead_ids: list[uuid.UUID]) -> list[Lead]:
        stmt = self.repository.apply_scope_query(select(Lead).where(Lead.id.in_(lead_ids)), actor)
        return list(session.scalars(stmt).all())

    def _get_readable(self, session: Session, actor: Actor, lead_id: uuid.UUID) -> Lead:
        lead = session.get(Lead, lead_id)
        if lead is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lead not found")
        try:
            self.repository.validate_read_scope(actor, lead)
        except AuthorizationError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
        if actor.is_manager and not actor.can_see_owner(lead.assignee_id):
            deny(self.repository.resource, "team", "You do not have access to this lead")
        return lead

    def _get_writable(self, session: Session, actor: Actor, lead_id: uuid.UUID, detail: str) -> Lead:
        lead = self._get_readable(session, actor, lead_id)
        if actor.is_employee and lead.assignee_id != actor.user_id:
            deny(self.repository.resource, "owner", detail)
        return lead

    def _secure(self, actor: Actor, lead: Lead) -> LeadRead:
        payload = LeadRead.model_validate(lead).model_dump()
        secured = self.repository.apply_read_security(payload, actor, owner_id=lead.assignee_id)
        return LeadRead.model_validate(secured)

    def _to_read(self, session: Session, actor: Actor, lead_id: uuid.UUID) -> LeadRead:
        lead = session.scalar(select(Lead).where(Lead.id == lead_id).options(selectinload(Lead.assignee)))
        if lead is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lead not found")
        return self._secure(actor, lead)

    @staticmethod
    def _require_user(session: Session, user_id: uuid.UUID) -> None:
        if session.get(User, user_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="assignee not found")


leads_service = LeadsService()
