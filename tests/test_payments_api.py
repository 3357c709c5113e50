from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import ClientAndActor
from salesdesk.audit_logs.models import AuditLog
from salesdesk.payments.models import Payment
from salesdesk.users.models import User


def test_manager_records_numbered_payments(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    set_actor(manager)

    first = test_client.post("/api/payments", json={"amount": "499.99", "payment_method": "UPI", "reference_number": "UTR-1"})
    assert first.status_code == 201, first.text
    assert first.json()["payment_number"] == "PAY-00001"
    assert Decimal(first.json()["total_amount"]) == Decimal("499.99")
    assert first.json()["created_by_id"] == str(manager.id)

    second = test_client.post("/api/payments", json={"amount": "100", "total_amount": "150"})
    assert second.json()["payment_number"] == "PAY-00002"
    assert second.json()["payment_method"] == "OTHER"

    assert test_client.post("/api/payments", json={"amount": "0"}).status_code == 422


def test_employee_cannot_record_payments(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user())

    response = test_client.post("/api/payments", json={"amount": "10"})
    assert response.status_code == 403


def test_payment_visibility_by_creator(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    manager = make_user("MANAGER")
    other_manager = make_user("MANAGER")

    set_actor(manager)
    own = test_client.post("/api/payments", json={"amount": "10"}).json()
    set_actor(other_manager)
    test_client.post("/api/payments", json={"amount": "20"})

    set_actor(manager)
    assert [item["id"] for item in test_client.get("/api/payments").json()] == [own["id"]]

    set_actor(other_manager)
    assert test_client.get(f"/api/payments/{own['id']}").status_code == 403

    set_actor(admin)
    assert len(test_client.get("/api/payments").json()) == 2
    assert test_client.get(f"/api/payments/{own['id']}").status_code == 200


def test_payment_number_skips_numbers_taken_concurrently(
    client: ClientAndActor, make_user: Callable[..., User], db_session: Session
) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    set_actor(manager)
    assert test_client.post("/api/payments", json={"amount": "10"}).json()["payment_number"] == "PAY-00001"

    # A row committed elsewhere already holds the number the count points at.
    db_session.add(Payment(payment_number="PAY-00003", amount=Decimal("1"), total_amount=Decimal("1"), created_by_id=manager.id))
    db_session.commit()

    response = test_client.post("/api/payments", json={"amount": "20"})
    assert response.status_code == 201, response.text
    assert response.json()["payment_number"] == "PAY-00004"

    numbers = db_session.scalars(select(Payment.payment_number).order_by(Payment.payment_number)).all()
    assert numbers == ["PAY-00001", "PAY-00003", "PAY-00004"]
    audit_rows = db_session.scalar(select(func.count(AuditLog.id)).where(AuditLog.module == "payments"))
    assert audit_rows == 2
