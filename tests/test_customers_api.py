from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

from conftest import ClientAndActor
from salesdesk.users.models import User


def _create_customer(test_client, **overrides) -> dict:
    payload = {
        "first_name": "Vikram",
        "last_name": "Singh",
        "email": "vikram@example.com",
        "company": "Singh Exports",
        "annual_revenue": "250000.50",
    }
    payload.update(overrides)
    response = test_client.post("/api/customers", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_read_customer(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    employee = make_user()
    set_actor(employee)

    customer = _create_customer(test_client)
    assert customer["assignee_id"] == str(employee.id)
    assert customer["lifecycle"] == "CUSTOMER"
    assert Decimal(customer["annual_revenue"]) == Decimal("250000.50")

    fetched = test_client.get(f"/api/customers/{customer['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["assignee"]["id"] == str(employee.id)


def test_customer_visibility_follows_assignee(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    member = make_user(manager=manager)
    outsider = make_user()

    set_actor(member)
    customer = _create_customer(test_client)

    set_actor(outsider)
    assert test_client.get("/api/customers").json() == []
    denied = test_client.get(f"/api/customers/{customer['id']}")
    assert denied.status_code == 403
    assert denied.json()["message"] == "You do not have access to this customer"

    set_actor(manager)
    assert [item["id"] for item in test_client.get("/api/customers").json()] == [customer["id"]]
    assert test_client.get(f"/api/customers/{customer['id']}").status_code == 200


def test_convert_lead_to_customer_once(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user())

    lead = test_client.post(
        "/api/leads",
        json={"first_name": "Nila", "last_name": "Menon", "email": "nila@example.com", "description": "wants demo"},
    ).json()

    converted = test_client.post(f"/api/customers/from-lead/{lead['id']}")
    assert converted.status_code == 201
    assert converted.json()["lead_id"] == lead["id"]
    assert converted.json()["notes"] == "wants demo"
    assert test_client.get(f"/api/leads/{lead['id']}").json()["converted_to_customer_id"] == converted.json()["id"]

    again = test_client.post(f"/api/customers/from-lead/{lead['id']}")
    assert again.status_code == 409
    assert again.json()["message"] == "lead already converted"


def test_update_lifecycle_and_stats(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user())

    first = _create_customer(test_client)
    _create_customer(test_client, email="other@example.com", lifecycle="PROSPECT")

    response = test_client.patch(f"/api/customers/{first['id']}/lifecycle", json={"lifecycle": "CHURNED"})
    assert response.status_code == 200
    assert response.json()["lifecycle"] == "CHURNED"

    invalid = test_client.patch(f"/api/customers/{first['id']}/lifecycle", json={"lifecycle": "GONE"})
    assert invalid.status_code == 422

    stats = test_client.get("/api/customers/stats").json()
    assert stats["total"] == 2
    assert stats["by_lifecycle"]["CHURNED"] == 1
    assert stats["by_lifecycle"]["PROSPECT"] == 1
    assert stats["by_lifecycle"]["CUSTOMER"] == 0

    filtered = test_client.get("/api/customers", params={"lifecycle": "PROSPECT"}).json()
    assert [item["email"] for item in filtered] == ["other@example.com"]


def test_update_customer_fields(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user())
    customer = _create_customer(test_client)

    response = test_client.patch(f"/api/customers/{customer['id']}", json={"city": "Pune", "first_name": None})
    assert response.status_code == 200
    assert response.json()["city"] == "Pune"
    assert response.json()["first_name"] == "Vikram"


def test_delete_customer_requires_manager_and_unlinks_lead(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    member = make_user(manager=manager)

    set_actor(member)
    lead = test_client.post("/api/leads", json={"first_name": "Om", "last_name": "Joshi", "email": "om@example.com"}).json()
    customer = test_client.post(f"/api/customers/from-lead/{lead['id']}").json()

    denied = test_client.delete(f"/api/customers/{customer['id']}")
    assert denied.status_code == 403
    assert denied.json()["message"] == "Employees cannot delete customers"

    set_actor(manager)
    deleted = test_client.delete(f"/api/customers/{customer['id']}")
    assert deleted.status_code == 200
    assert test_client.get(f"/api/customers/{customer['id']}").status_code == 404
    assert test_client.get(f"/api/leads/{lead['id']}").json()["converted_to_customer_id"] is None
