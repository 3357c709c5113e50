from __future__ import annotations

from collections.abc import Callable

from conftest import ClientAndActor
from salesdesk import events
from salesdesk.branches.models import Branch
from salesdesk.users.models import User


def _create_lead(test_client, **overrides) -> dict:
    payload = {
        "first_name": "Asha",
        "last_name": "Rao",
        "email": "asha@example.com",
        "mobile": "9876543210",
        "company": "Rao Traders",
        "source": "WEBSITE",
    }
    payload.update(overrides)
    response = test_client.post("/api/leads", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_lead_defaults_assignee_and_branch(client: ClientAndActor, make_user: Callable[..., User], make_branch: Callable[..., Branch]) -> None:
    test_client, set_actor = client
    branch = make_branch()
    employee = make_user(branch=branch)
    set_actor(employee)

    lead = _create_lead(test_client, notes="met at expo")
    assert lead["assignee_id"] == str(employee.id)
    assert lead["created_by_id"] == str(employee.id)
    assert lead["branch_id"] == str(branch.id)
    assert lead["title"] == "Asha Rao"
    assert lead["status"] == "COLD_LEAD"
    assert lead["mobile"] == "9876543210"

    notes = test_client.get(f"/api/notes/lead/{lead['id']}")
    assert notes.status_code == 200
    assert [note["content"] for note in notes.json()] == ["met at expo"]
    assert [event["event_type"] for event in events.published_events] == ["lead.created"]


def test_create_lead_rejects_invalid_payload(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user())

    response = test_client.post("/api/leads", json={"first_name": "", "last_name": "X", "email": "not-an-email"})
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["message"] == "request validation failed"


def test_employee_sees_other_leads_with_masked_mobile(client: ClientAndActor, make_user: Callable[..., User], make_branch: Callable[..., Branch]) -> None:
    test_client, set_actor = client
    branch = make_branch()
    owner = make_user(branch=branch)
    colleague = make_user(branch=branch)

    set_actor(owner)
    lead = _create_lead(test_client)

    set_actor(colleague)
    listed = test_client.get("/api/leads")
    assert listed.status_code == 200
    assert listed.json()["total"] == 1
    assert listed.json()["items"][0]["mobile"] == "******3210"

    detail = test_client.get(f"/api/leads/{lead['id']}")
    assert detail.status_code == 200
    assert detail.json()["mobile"] == "******3210"

    update = test_client.patch(f"/api/leads/{lead['id']}", json={"company": "Other"})
    assert update.status_code == 403
    assert update.json()["message"] == "You can only update leads assigned to you"

    set_actor(owner)
    assert test_client.get(f"/api/leads/{lead['id']}").json()["mobile"] == "9876543210"


def test_employee_cannot_read_leads_from_another_branch(client: ClientAndActor, make_user: Callable[..., User], make_branch: Callable[..., Branch]) -> None:
    test_client, set_actor = client
    north, south = make_branch("North"), make_branch("South")
    north_user = make_user(branch=north)
    south_user = make_user(branch=south)

    set_actor(north_user)
    lead = _create_lead(test_client)

    set_actor(south_user)
    assert test_client.get("/api/leads").json()["total"] == 0
    response = test_client.get(f"/api/leads/{lead['id']}")
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_manager_is_limited_to_team_leads(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    member = make_user(manager=manager)
    outsider = make_user()

    set_actor(member)
    team_lead = _create_lead(test_client, email="team@example.com")
    set_actor(outsider)
    other_lead = _create_lead(test_client, email="other@example.com")

    set_actor(manager)
    listed = test_client.get("/api/leads").json()
    assert [item["id"] for item in listed["items"]] == [team_lead["id"]]
    assert listed["items"][0]["mobile"] == "9876543210"

    assert test_client.get(f"/api/leads/{other_lead['id']}").status_code == 403
    assert test_client.get(f"/api/leads/{team_lead['id']}").status_code == 200

    stats = test_client.get("/api/leads/stats").json()
    assert stats["total"] == 1
    assert stats["by_status"]["COLD_LEAD"] == 1


def test_closing_lead_converts_it_to_customer(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    employee = make_user()
    set_actor(employee)
    lead = _create_lead(test_client)

    response = test_client.patch(f"/api/leads/{lead['id']}/status", json={"status": "CLOSED_LEAD"})
    assert response.status_code == 200
    closed = response.json()
    assert closed["status"] == "CLOSED_LEAD"
    assert closed["converted_to_customer_id"] is not None

    customer = test_client.get(f"/api/customers/{closed['converted_to_customer_id']}")
    assert customer.status_code == 200
    assert customer.json()["lead_id"] == lead["id"]
    assert customer.json()["assignee_id"] == str(employee.id)

    converted = [event for event in events.published_events if event["event_type"] == "lead.converted"]
    assert len(converted) == 1
    assert converted[0]["payload"]["customer_id"] == closed["converted_to_customer_id"]

    # Closing again does not create a second customer.
    again = test_client.patch(f"/api/leads/{lead['id']}/status", json={"status": "CLOSED_LEAD"})
    assert again.status_code == 200
    assert again.json()["converted_to_customer_id"] == closed["converted_to_customer_id"]


def test_bulk_assign_and_delete_are_manager_operations(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    first = make_user(manager=manager)
    second = make_user(manager=manager)

    set_actor(first)
    lead_ids = [_create_lead(test_client, email=f"lead{index}@example.com")["id"] for index in range(3)]

    denied = test_client.post("/api/leads/bulk-assign", json={"lead_ids": lead_ids, "assignee_id": str(second.id)})
    assert denied.status_code == 403
    assert denied.json()["message"] == "requires role: MANAGER or SUPER_ADMIN"

    set_actor(manager)
    assigned = test_client.post("/api/leads/bulk-assign", json={"lead_ids": lead_ids, "assignee_id": str(second.id)})
    assert assigned.status_code == 200
    assert assigned.json() == {"count": 3}
    assert test_client.get("/api/leads", params={"assignee_id": str(second.id)}).json()["total"] == 3

    deleted = test_client.post("/api/leads/bulk-delete", json={"lead_ids": lead_ids[:2]})
    assert deleted.json() == {"count": 2}
    assert test_client.get("/api/leads").json()["total"] == 1


def test_bulk_import_reports_row_errors(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    employee = make_user(email="rep@example.com")
    set_actor(admin)

    content = (
        "first_name,last_name,email,status,source,assignee_email\n"
        "Ravi,Kumar,ravi@example.com,warm_lead,referral,rep@example.com\n"
        "Meena,Shah,not-an-email,,,\n"
        "Kiran,Das,kiran@example.com,,,ghost@example.com\n"
        "Lata,Iyer,lata@example.com,,,\n"
    )
    response = test_client.post(
        "/api/leads/bulk-import",
        files={"file": ("leads.csv", content.encode("utf-8"), "text/csv")},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["created"] == 2
    assert body["failed"] == 2
    assert [error["row_number"] for error in body["errors"]] == [3, 4]
    assert body["errors"][1]["message"] == "unknown assignee: ghost@example.com"

    ravi = test_client.get("/api/leads", params={"search": "Ravi"}).json()["items"][0]
    assert ravi["status"] == "WARM_LEAD"
    assert ravi["source"] == "REFERRAL"
    assert ravi["assignee_id"] == str(employee.id)


def test_bulk_import_requires_columns(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user("SUPER_ADMIN"))

    response = test_client.post(
        "/api/leads/bulk-import",
        files={"file": ("leads.csv", b"first_name,company\nA,B\n", "text/csv")},
    )
    assert response.status_code == 422
    assert response.json()["message"] == "missing required columns: last_name, email"


def test_transfer_request_approval_reassigns_lead(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    requester = make_user(manager=manager)
    target = make_user(manager=manager)

    set_actor(requester)
    lead = _create_lead(test_client)

    set_actor(target)
    not_owner = test_client.post(f"/api/leads/{lead['id']}/transfer-requests", json={"reason": "mine now"})
    assert not_owner.status_code == 403

    set_actor(requester)
    created = test_client.post(
        f"/api/leads/{lead['id']}/transfer-requests",
        json={"reason": "customer speaks Tamil", "target_user_id": str(target.id)},
    )
    assert created.status_code == 201
    request_id = created.json()["id"]
    assert created.json()["status"] == "PENDING"

    set_actor(manager)
    pending = test_client.get("/api/lead-transfer-requests", params={"status": "PENDING"})
    assert [item["id"] for item in pending.json()] == [request_id]

    decided = test_client.post(
        f"/api/lead-transfer-requests/{request_id}/decision",
        json={"decision": "APPROVE", "notes": "ok"},
    )
    assert decided.status_code == 200
    assert decided.json()["status"] == "APPROVED"
    assert decided.json()["decided_by_id"] == str(manager.id)
    assert test_client.get(f"/api/leads/{lead['id']}").json()["assignee_id"] == str(target.id)

    repeat = test_client.post(f"/api/lead-transfer-requests/{request_id}/decision", json={"decision": "REJECT"})
    assert repeat.status_code == 400
    assert repeat.json()["message"] == "Request is already processed"


def test_delete_lead(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    employee = make_user()

    set_actor(employee)
    lead = _create_lead(test_client)
    assert test_client.delete(f"/api/leads/{lead['id']}").status_code == 403

    set_actor(admin)
    response = test_client.delete(f"/api/leads/{lead['id']}")
    assert response.status_code == 200
    assert response.json() == {"message": "Lead deleted successfully"}
    assert test_client.get(f"/api/leads/{lead['id']}").status_code == 404


def test_list_leads_paginates(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user("SUPER_ADMIN"))
    created = {_create_lead(test_client, email=f"lead{index}@example.com")["id"] for index in range(5)}

    first = test_client.get("/api/leads", params={"page": 1, "page_size": 2}).json()
    second = test_client.get("/api/leads", params={"page": 2, "page_size": 2}).json()
    last = test_client.get("/api/leads", params={"page": 3, "page_size": 2}).json()
    assert (first["total"], first["page"], first["page_size"]) == (5, 1, 2)
    assert [len(page["items"]) for page in (first, second, last)] == [2, 2, 1]
    seen = [item["id"] for page in (first, second, last) for item in page["items"]]
    assert len(seen) == len(set(seen))
    assert set(seen) == created

    beyond = test_client.get("/api/leads", params={"page": 4, "page_size": 2}).json()
    assert beyond["items"] == []
    assert beyond["total"] == 5


def test_list_leads_rejects_out_of_range_paging(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user("SUPER_ADMIN"))

    for params in ({"page_size": 101}, {"page_size": 0}, {"page": 0}):
        response = test_client.get("/api/leads", params=params)
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
    assert test_client.get("/api/leads", params={"page_size": 100}).status_code == 200


def test_list_leads_excludes_an_assignee(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    first = make_user()
    second = make_user()
    set_actor(admin)
    mine = _create_lead(test_client, email="a@example.com", assignee_id=str(first.id))
    theirs = _create_lead(test_client, email="b@example.com", assignee_id=str(second.id))
    own = _create_lead(test_client, email="c@example.com")

    others = test_client.get("/api/leads", params={"exclude_assignee_id": str(first.id)}).json()
    assert {item["id"] for item in others["items"]} == {theirs["id"], own["id"]}
    assert others["total"] == 2
    assert mine["id"] not in {item["id"] for item in others["items"]}

    combined = test_client.get(
        "/api/leads", params={"exclude_assignee_id": str(first.id), "assignee_id": str(second.id)}
    ).json()
    assert [item["id"] for item in combined["items"]] == [theirs["id"]]
