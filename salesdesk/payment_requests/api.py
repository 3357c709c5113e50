from __future__ import annotations

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor, require_roles
from salesdesk.core.database import get_db
from salesdesk.payment_requests.schemas import PaymentRequestDecision, PaymentRequestRead
from salesdesk.payment_requests.service import payment_requests_service
from salesdesk.security.context import MANAGER, SUPER_ADMIN, Actor
from salesdesk.storage.backends import StorageBackend, get_storage_backend


router = APIRouter(prefix="/api/payment-requests", tags=["payment-requests"])


@router.post("", response_model=PaymentRequestRead, status_code=status.HTTP_201_CREATED)
def create_payment_request(
    amount: Decimal = Form(...),
    notes: str | None = Form(default=None),
    lead_id: uuid.UUID | None = Form(default=None),
    customer_id: uuid.UUID | None = Form(default=None),
    screenshot: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    backend: StorageBackend = Depends(get_storage_backend),
) -> PaymentRequestRead:
    upload = None
    if screenshot is not None and screenshot.filename:
        upload = (screenshot.filename, screenshot.file.read(), screenshot.content_type)
    return payment_requests_service.create_request(
        db,
        actor,
        backend,
        amount=amount,
        notes=notes,
        lead_id=lead_id,
        customer_id=customer_id,
        screenshot=upload,
    )


@router.get("", response_model=list[PaymentRequestRead])
def list_payment_requests(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> list[PaymentRequestRead]:
    return payment_requests_service.list_requests(db, actor)


@router.get("/my", response_model=list[PaymentRequestRead])
def list_my_payment_requests(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[PaymentRequestRead]:
    return payment_requests_service.list_requests(db, actor, own_only=True)


@router.patch("/{request_id}/status", response_model=PaymentRequestRead)
def decide_payment_request(
    request_id: uuid.UUID,
    payload: PaymentRequestDecision,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> PaymentRequestRead:
    return payment_requests_service.decide(db, actor, request_id, payload)
