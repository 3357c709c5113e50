from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from fastapi import HTTPException, status
from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from salesdesk import events
from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.customers.models import Customer
from salesdesk.customers.repository import CustomerRepository
from salesdesk.customers.schemas import (
    CUSTOMER_LIFECYCLES,
    CustomerCreate,
    CustomerRead,
    CustomerStats,
    CustomerUpdate,
)
from salesdesk.leads.models import Lead
from salesdesk.security.context import Actor
from salesdesk.security.errors import AuthorizationError
from salesdesk.security.scope import deny, require_not_employee
from salesdesk.users.models import User

logger = logging.getLogger("salesdesk.customers")


@dataclass(slots=True)
class CustomersService:
    repository: CustomerRepository = CustomerRepository()
    module = "customers"

    def create_customer(self, session: Session, actor: Actor, payload: CustomerCreate) -> CustomerRead:
        data = payload.model_dump(mode="python")
        data["email"] = str(data["email"])
        data["assignee_id"] = data.get("assignee_id") or actor.user_id
        self._require_user(session, data["assignee_id"])

        customer = Customer(**data, created_by_id=actor.user_id, branch_id=actor.branch_id)
        session.add(customer)
        session.flush()
        audit_log_service.record(
            session, actor, module=self.module, action="CREATE", entity_id=customer.id, new_values=snapshot(customer)
        )
        session.commit()
        logger.info("customer.created", extra={"entity_id": str(customer.id)})
        return self._read(session, customer.id)

    def create_from_lead(self, session: Session, actor: Actor, lead_id: uuid.UUID) -> CustomerRead:
        lead = session.get(Lead, lead_id)
        if lead is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lead not found")
        if not actor.can_see_owner(lead.assignee_id):
            deny(self.repository.resource, "owner", "You cannot convert this lead")
        customer = self.convert_lead(session, actor, lead)
        session.commit()
        return self._read(session, customer.id)

    def convert_lead(self, session: Session, actor: Actor, lead: Lead) -> Customer:
        """Create the customer for a lead inside the caller's transaction."""
        if lead.converted_to_customer_id is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="lead already converted")

        customer = Customer(
            first_name=lead.first_name,
            last_name=lead.last_name,
            email=lead.email,
            phone=lead.phone,
            mobile=lead.mobile,
            company=lead.company,
            industry=lead.industry,
            notes=lead.description,
            lifecycle="CUSTOMER",
            assignee_id=lead.assignee_id or actor.user_id,
            created_by_id=actor.user_id,
            branch_id=lead.branch_id,
            lead_id=lead.id,
        )
        session.add(customer)
        session.flush()
        lead.converted_to_customer_id = customer.id
        audit_log_service.record(
            session, actor, module=self.module, action="CREATE", entity_id=customer.id, new_values=snapshot(customer)
        )
        events.publish(
            events.build_envelope(
                "lead.converted",
                actor.user_id,
                {"lead_id": str(lead.id), "customer_id": str(customer.id)},
            )
        )
        return customer

    def list_customers(
        self,
        session: Session,
        actor: Actor,
        *,
        lifecycle: str | None = None,
        assignee_id: uuid.UUID | None = None,
        search: str | None = None,
    ) -> list[CustomerRead]:
        stmt: Select[tuple[Customer]] = select(Customer).options(selectinload(Customer.assignee))
        stmt = self.repository.apply_scope_query(stmt, actor)
        if lifecycle:
            stmt = stmt.where(Customer.lifecycle == lifecycle)
        if assignee_id is not None and not actor.is_employee:
            stmt = stmt.where(Customer.assignee_id == assignee_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Customer.first_name.ilike(pattern),
                    Customer.last_name.ilike(pattern),
                    Customer.email.ilike(pattern),
                    Customer.company.ilike(pattern),
                )
            )
        rows = session.scalars(stmt.order_by(Customer.created_at.desc())).all()
        return [CustomerRead.model_validate(row) for row in rows]

    def get_customer(self, session: Session, actor: Actor, customer_id: uuid.UUID) -> CustomerRead:
        customer = self._get_visible(session, actor, customer_id)
        return CustomerRead.model_validate(customer)

    def update_customer(self, session: Session, actor: Actor, customer_id: uuid.UUID, payload: CustomerUpdate) -> CustomerRead:
        customer = self._get_visible(session, actor, customer_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("assignee_id") is not None:
            self._require_user(session, data["assignee_id"])

        before = snapshot(customer)
        for key, value in data.items():
            if value is None and key in {"first_name", "last_name", "email"}:
                continue
            setattr(customer, key, str(value) if key == "email" and value is not None else value)

        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=customer.id, old_values=before, new_values=snapshot(customer)
        )
        session.commit()
        return self._read(session, customer.id)

    def update_lifecycle(self, session: Session, actor: Actor, customer_id: uuid.UUID, lifecycle: str) -> CustomerRead:
        customer = self._get_visible(session, actor, customer_id)
        before = snapshot(customer)
        customer.lifecycle = lifecycle
        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=customer.id, old_values=before, new_values=snapshot(customer)
        )
        session.commit()
        return self._read(session, customer.id)

    def delete_customer(self, session: Session, actor: Actor, customer_id: uuid.UUID) -> None:
        require_not_employee(actor, self.repository.resource, "Employees cannot delete customers")
        customer = self._get_visible(session, actor, customer_id)
        before = snapshot(customer)
        session.execute(
            update(Lead).where(Lead.converted_to_customer_id == customer.id).values(converted_to_customer_id=None)
        )
        session.delete(customer)
        audit_log_service.record(session, actor, module=self.module, action="DELETE", entity_id=customer_id, old_values=before)
        session.commit()

    def get_stats(self, session: Session, actor: Actor) -> CustomerStats:
        base = self.repository.apply_scope_query(select(Customer.lifecycle, func.count()), actor)
        rows = session.execute(base.group_by(Customer.lifecycle)).all()
        by_lifecycle = {lifecycle: 0 for lifecycle in CUSTOMER_LIFECYCLES}
        for lifecycle, total in rows:
            by_lifecycle[lifecycle] = int(total)
        return CustomerStats(total=sum(by_lifecycle.values()), by_lifecycle=by_lifecycle)

    def _get_visible(self, session: Session, actor: Actor, customer_id: uuid.UUID) -> Customer:
        customer = session.get(Customer, customer_id)
        if customer is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="customer not found")
        try:
            self.repository.validate_read_scope(actor, customer)
        except AuthorizationError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
        if not actor.can_see_owner(customer.assignee_id):
            deny(self.repository.resource, "owner", "You do not have access to this customer")
        return customer

    @staticmethod
    def _read(session: Session, customer_id: uuid.UUID) -> CustomerRead:
        customer = session.scalar(
            select(Customer).where(Customer.id == customer_id).options(selectinload(Customer.assignee))
        )
        return CustomerRead.model_validate(customer)

    @staticmethod
    def _require_user(session: Session, user_id: uuid.UUID) -> None:
        if session.get(User, user_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="assignee not found")


customers_service = CustomersService()
