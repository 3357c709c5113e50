from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor
from salesdesk.core.database import get_db
from salesdesk.customers.schemas import (
    CustomerCreate,
    CustomerLifecycle,
    CustomerRead,
    CustomerStats,
    CustomerUpdate,
    UpdateLifecycleRequest,
)
from salesdesk.customers.service import customers_service
from salesdesk.security.context import Actor


router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> CustomerRead:
    return customers_service.create_customer(db, actor, payload)


@router.post("/from-lead/{lead_id}", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer_from_lead(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> CustomerRead:
    return customers_service.create_from_lead(db, actor, lead_id)


@router.get("", response_model=list[CustomerRead])
def list_customers(
    lifecycle: CustomerLifecycle | None = Query(default=None),
    assignee_id: uuid.UUID | None = Query(default=None),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[CustomerRead]:
    return customers_service.list_customers(db, actor, lifecycle=lifecycle, assignee_id=assignee_id, search=search)


@router.get("/stats", response_model=CustomerStats)
def customer_stats(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> CustomerStats:
    return customers_service.get_stats(db, actor)


@router.get("/{customer_id}", response_model=CustomerRead)
def get_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> CustomerRead:
    return customers_service.get_customer(db, actor, customer_id)


@router.patch("/{customer_id}", response_model=CustomerRead)
def update_customer(
    customer_id: uuid.UUID,
    payload: CustomerUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> CustomerRead:
    return customers_service.update_customer(db, actor, customer_id, payload)


@router.patch("/{customer_id}/lifecycle", response_model=CustomerRead)
def update_customer_lifecycle(
    customer_id: uuid.UUID,
    payload: UpdateLifecycleRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> CustomerRead:
    return customers_service.update_lifecycle(db, actor, customer_id, payload.lifecycle)


@router.delete("/{customer_id}", status_code=status.HTTP_200_OK)
def delete_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> dict[str, str]:
    customers_service.delete_customer(db, actor, customer_id)
    return {"message": "Customer deleted successfully"}
