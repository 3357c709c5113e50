from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.customers.models import Customer
from salesdesk.payments.models import Payment
from salesdesk.payments.schemas import PaymentCreate, PaymentRead
from salesdesk.security.context import Actor
from salesdesk.security.scope import deny

NUMBER_PREFIX = "PAY-"
NUMBER_ATTEMPTS = 5


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class PaymentsService:
    module = "payments"

    def create_payment(self, session: Session, actor: Actor, payload: PaymentCreate) -> PaymentRead:
        if payload.customer_id is not None and session.get(Customer, payload.customer_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="customer not found")
        payment = self.build_payment(
            session,
            actor,
            amount=payload.amount,
            total_amount=payload.total_amount or payload.amount,
            payment_date=payload.payment_date or utcnow(),
            payment_method=payload.payment_method,
            reference_type=payload.reference_type,
            reference_number=payload.reference_number,
            customer_id=payload.customer_id,
            notes=payload.notes,
            created_by_id=actor.user_id,
        )
        session.commit()
        return PaymentRead.model_validate(payment)

    def build_payment(
        self,
        session: Session,
        actor: Actor,
        *,
        amount: Decimal,
        total_amount: Decimal,
        created_by_id: uuid.UUID,
        payment_date: datetime | None = None,
        payment_method: str = "OTHER",
        reference_type: str = "INTERNAL",
        reference_number: str | None = None,
        customer_id: uuid.UUID | None = None,
        notes: str | None = None,
    ) -> Payment:
        """Add a payment to the caller's transaction."""
        payment = Payment(
            amount=amount,
            total_amount=total_amount,
            payment_date=payment_date or utcnow(),
            payment_method=payment_method,
            reference_type=reference_type,
            reference_number=reference_number,
            customer_id=customer_id,
            notes=notes,
            created_by_id=created_by_id,
        )
        self._insert_numbered(session, payment)
        audit_log_service.record(session, actor, module=self.module, action="CREATE", entity_id=payment.id, new_values=snapshot(payment))
        return payment

    def list_payments(self, session: Session, actor: Actor) -> list[PaymentRead]:
        stmt = select(Payment)
        visible = actor.visible_owner_ids()
        if visible is not None:
            stmt = stmt.where(Payment.created_by_id.in_(visible))
        rows = session.scalars(stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc())).all()
        return [PaymentRead.model_validate(row) for row in rows]

    def get_payment(self, session: Session, actor: Actor, payment_id: uuid.UUID) -> PaymentRead:
        payment = session.get(Payment, payment_id)
        if payment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="payment not found")
        if not actor.can_see_owner(payment.created_by_id):
            deny("payment", "owner", "You do not have access to this payment")
        return PaymentRead.model_validate(payment)

    def _insert_numbered(self, session: Session, payment: Payment) -> None:
        # Another transaction may take the same number between the count and the insert.
        for attempt in range(NUMBER_ATTEMPTS):
            payment.payment_number = self._next_number(session, skip=attempt)
            try:
                with session.begin_nested():
                    session.add(payment)
            except IntegrityError:
                continue
            return
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="could not allocate a payment number")

    @staticmethod
    def _next_number(session: Session, skip: int = 0) -> str:
        count = session.scalar(select(func.count(Payment.id))) or 0
        return f"{NUMBER_PREFIX}{count + 1 + skip:05d}"


payments_service = PaymentsService()
