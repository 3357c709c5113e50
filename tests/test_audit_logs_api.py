from __future__ import annotations

from collections.abc import Callable

from conftest import ClientAndActor
from salesdesk.users.models import User


def test_mutations_are_audited_with_request_context(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    set_actor(admin)

    lead = test_client.post(
        "/api/leads",
        json={"first_name": "Au", "last_name": "Dit", "email": "audit@example.com"},
        headers={"X-Correlation-Id": "audit-corr-1", "User-Agent": "crm-tests"},
    ).json()
    test_client.patch(f"/api/leads/{lead['id']}", json={"company": "Audit Co"})

    page = test_client.get("/api/audit-logs", params={"module": "leads"}).json()
    assert page["pagination"] == {"page": 1, "limit": 50, "total": 2, "total_pages": 1}
    by_action = {row["action"]: row for row in page["logs"]}
    create, update = by_action["CREATE"], by_action["UPDATE"]
    assert create["action"] == "CREATE"
    assert create["entity_id"] == lead["id"]
    assert create["user_id"] == str(admin.id)
    assert create["correlation_id"] == "audit-corr-1"
    assert create["user_agent"] == "crm-tests"
    assert create["new_values"]["email"] == "audit@example.com"

    assert update["action"] == "UPDATE"
    assert update["old_values"]["company"] is None
    assert update["new_values"]["company"] == "Audit Co"
    assert update["correlation_id"] not in (None, "audit-corr-1")


def test_user_audit_rows_never_include_secrets(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user("SUPER_ADMIN"))

    created = test_client.post(
        "/api/users",
        json={"email": "secret@example.com", "password": "secret123", "first_name": "Se", "last_name": "Cret"},
    ).json()

    rows = test_client.get(f"/api/audit-logs/entity/users/{created['id']}").json()
    assert len(rows) == 1
    assert "password_hash" not in rows[0]["new_values"]
    assert "refresh_token_hash" not in rows[0]["new_values"]


def test_audit_log_filters_and_pagination(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    employee = make_user()

    set_actor(employee)
    for index in range(3):
        test_client.post("/api/deals", json={"title": f"Deal {index}", "value": "1"})

    set_actor(admin)
    first_page = test_client.get("/api/audit-logs", params={"user_id": str(employee.id), "limit": 2}).json()
    assert first_page["pagination"]["total"] == 3
    assert first_page["pagination"]["total_pages"] == 2
    assert len(first_page["logs"]) == 2
    second_page = test_client.get("/api/audit-logs", params={"user_id": str(employee.id), "limit": 2, "page": 2}).json()
    assert len(second_page["logs"]) == 1

    assert test_client.get("/api/audit-logs", params={"action": "DELETE"}).json()["pagination"]["total"] == 0
    future = test_client.get("/api/audit-logs", params={"start_date": "2999-01-01T00:00:00"}).json()
    assert future["logs"] == []


def test_audit_log_access_by_role(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    employee = make_user(manager=manager)

    set_actor(employee)
    deal = test_client.post("/api/deals", json={"title": "Scoped", "value": "1"}).json()
    assert test_client.get(f"/api/audit-logs/entity/deals/{deal['id']}").status_code == 403

    set_actor(manager)
    assert test_client.get("/api/audit-logs").status_code == 403
    history = test_client.get(f"/api/audit-logs/entity/deals/{deal['id']}")
    assert history.status_code == 200
    assert [row["action"] for row in history.json()] == ["CREATE"]
