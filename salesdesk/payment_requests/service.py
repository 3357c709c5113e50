from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from fastapi import HTTPException, status
from sqlalchemy import Select, select
from sqlalchemy.orm import Session, selectinload

from salesdesk import events
from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.context import get_correlation_id
from salesdesk.customers.models import Customer
from salesdesk.leads.models import Lead
from salesdesk.metrics import observe_payment_request_decision
from salesdesk.otel import get_tracer
from salesdesk.payment_requests.models import PaymentRequest
from salesdesk.payment_requests.schemas import PaymentRequestDecision, PaymentRequestRead
from salesdesk.payments.service import payments_service
from salesdesk.security.context import Actor
from salesdesk.security.scope import deny
from salesdesk.storage.backends import StorageBackend, StorageError

logger = logging.getLogger("salesdesk.payment_requests")
tracer = get_tracer("salesdesk.payment_requests")

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9_-]+")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def screenshot_key(filename: str) -> str:
    path = Path(filename or "screenshot")
    stem = _UNSAFE_NAME.sub("_", path.stem).strip("_") or "screenshot"
    return f"payment_requests/{stem}-{int(time.time() * 1000)}{path.suffix.lower()}"


@dataclass(slots=True)
class PaymentRequestsService:
    module = "payment_requests"

    def create_request(
        self,
        session: Session,
        actor: Actor,
        backend: StorageBackend,
        *,
        amount: Decimal,
        notes: str | None = None,
        lead_id: uuid.UUID | None = None,
        customer_id: uuid.UUID | None = None,
        screenshot: tuple[str, bytes, str | None] | None = None,
    ) -> PaymentRequestRead:
        if amount <= 0:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="amount must be greater than 0")
        if lead_id is not None and session.get(Lead, lead_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lead not found")
        if customer_id is not None and session.get(Customer, customer_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="customer not found")

        screenshot_url: str | None = None
        stored_key: str | None = None
        if screenshot is not None:
            filename, content, content_type = screenshot
            stored_key = screenshot_key(filename)
            try:
                screenshot_url = backend.save(stored_key, content, content_type or "application/octet-stream")
            except StorageError as exc:
                raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

        request = PaymentRequest(
            amount=amount,
            notes=notes,
            screenshot_url=screenshot_url,
            screenshot_key=stored_key,
            requester_id=actor.user_id,
            lead_id=lead_id,
            customer_id=customer_id,
        )
        session.add(request)
        session.flush()
        audit_log_service.record(session, actor, module=self.module, action="CREATE", entity_id=request.id, new_values=snapshot(request))
        session.commit()
        logger.info("payment_request.created", extra={"entity_id": str(request.id)})
        return self._read(session, request.id)

    def list_requests(self, session: Session, actor: Actor, *, own_only: bool = False) -> list[PaymentRequestRead]:
        stmt: Select[tuple[PaymentRequest]] = select(PaymentRequest)
        if own_only:
            stmt = stmt.where(PaymentRequest.requester_id == actor.user_id)
        else:
            visible = actor.visible_owner_ids()
            if visible is not None:
                stmt = stmt.where(PaymentRequest.requester_id.in_(visible))
        rows = session.scalars(self._with_relations(stmt).order_by(PaymentRequest.created_at.desc())).all()
        return [PaymentRequestRead.model_validate(row) for row in rows]

    def decide(
        self,
        session: Session,
        actor: Actor,
        request_id: uuid.UUID,
        payload: PaymentRequestDecision,
    ) -> PaymentRequestRead:
        with tracer.start_as_current_span("payment_request.decide") as span:
            span.set_attribute("payment_request_id", str(request_id))
            span.set_attribute("decision", payload.status)
            span.set_attribute("correlation_id", get_correlation_id() or "")

            request = session.get(PaymentRequest, request_id)
            if request is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="payment request not found")
            if request.status != "PENDING":
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request is already processed")
            if not actor.can_see_owner(request.requester_id):
                deny("payment_request", "team", "You can only decide requests from your team")

            before = snapshot(request)
            if payload.status == "APPROVED":
                payment = payments_service.build_payment(
                    session,
                    actor,
                    amount=request.amount,
                    total_amount=request.amount,
                    payment_date=utcnow(),
                    payment_method="OTHER",
                    reference_type="INTERNAL",
                    customer_id=request.customer_id,
                    notes=f"Approved from Request #{request.id}. Notes: {request.notes or ''}",
                    created_by_id=request.requester_id,
                )
                request.payment_id = payment.id
                span.set_attribute("payment_id", str(payment.id))

            request.status = payload.status
            request.approver_id = actor.user_id
            request.rejection_reason = payload.rejection_reason
            audit_log_service.record(
                session,
                actor,
                module=self.module,
                action="UPDATE",
                entity_id=request.id,
                old_values=before,
                new_values=snapshot(request),
            )
            session.commit()

        observe_payment_request_decision(payload.status)
        events.publish(
            events.build_envelope(
                "payment_request.decided",
                actor.user_id,
                {
                    "payment_request_id": str(request.id),
                    "status": request.status,
                    "payment_id": str(request.payment_id) if request.payment_id else None,
                },
            )
        )
        return self._read(session, request.id)

    @staticmethod
    def _with_relations(stmt: Select[tuple[PaymentRequest]]) -> Select[tuple[PaymentRequest]]:
        return stmt.options(
            selectinload(PaymentRequest.requester),
            selectinload(PaymentRequest.approver),
            selectinload(PaymentRequest.lead),
            selectinload(PaymentRequest.customer),
        )

    def _read(self, session: Session, request_id: uuid.UUID) -> PaymentRequestRead:
        request = session.scalar(self._with_relations(select(PaymentRequest).where(PaymentRequest.id == request_id)))
        return PaymentRequestRead.model_validate(request)


payment_requests_service = PaymentRequestsService()
