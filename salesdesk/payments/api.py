from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor, require_roles
from salesdesk.core.database import get_db
from salesdesk.payments.schemas import PaymentCreate, PaymentRead
from salesdesk.payments.service import payments_service
from salesdesk.security.context import MANAGER, SUPER_ADMIN, Actor


router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> PaymentRead:
    return payments_service.create_payment(db, actor, payload)


@router.get("", response_model=list[PaymentRead])
def list_payments(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> list[PaymentRead]:
    return payments_service.list_payments(db, actor)


@router.get("/{payment_id}", response_model=PaymentRead)
def get_payment(
    payment_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> PaymentRead:
    return payments_service.get_payment(db, actor, payment_id)
