from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

from conftest import ClientAndActor
from salesdesk.users.models import User


def _create_deal(test_client, **overrides) -> dict:
    payload = {"title": "ERP rollout", "value": "1500.00"}
    payload.update(overrides)
    response = test_client.post("/api/deals", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_deal_defaults_probability_from_stage(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    owner = make_user()
    set_actor(owner)

    qualification = _create_deal(test_client)
    assert qualification["stage"] == "QUALIFICATION"
    assert qualification["probability"] == 10
    assert qualification["owner_id"] == str(owner.id)
    assert qualification["actual_close_date"] is None

    negotiation = _create_deal(test_client, stage="NEGOTIATION")
    assert negotiation["probability"] == 75

    explicit = _create_deal(test_client, stage="PROPOSAL", probability=40)
    assert explicit["probability"] == 40

    won = _create_deal(test_client, stage="CLOSED_WON")
    assert won["probability"] == 100
    assert won["actual_close_date"] is not None


def test_create_deal_rejects_negative_value(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user())

    response = test_client.post("/api/deals", json={"title": "Bad", "value": "-1"})
    assert response.status_code == 422


def test_stage_change_sets_probability_and_close_date(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user())
    deal = _create_deal(test_client)

    proposal = test_client.patch(f"/api/deals/{deal['id']}/stage", json={"stage": "PROPOSAL"})
    assert proposal.status_code == 200
    assert proposal.json()["probability"] == 50

    lost = test_client.patch(f"/api/deals/{deal['id']}/stage", json={"stage": "CLOSED_LOST"})
    assert lost.json()["probability"] == 0
    assert lost.json()["actual_close_date"] is not None

    updated = test_client.patch(f"/api/deals/{deal['id']}", json={"stage": "NEGOTIATION", "probability": 60, "value": "2000"})
    assert updated.status_code == 200
    assert updated.json()["probability"] == 60
    assert Decimal(updated.json()["value"]) == Decimal("2000")


def test_deal_from_lead_links_lead_and_branch(client: ClientAndActor, make_user: Callable[..., User], make_branch) -> None:
    test_client, set_actor = client
    branch = make_branch()
    set_actor(make_user(branch=branch))

    lead = test_client.post("/api/leads", json={"first_name": "Jay", "last_name": "Patel", "email": "jay@example.com"}).json()
    response = test_client.post(f"/api/deals/from-lead/{lead['id']}", json={"title": "Jay renewal", "value": "800"})
    assert response.status_code == 201
    assert response.json()["lead_id"] == lead["id"]
    assert response.json()["branch_id"] == str(branch.id)

    missing = test_client.post(
        "/api/deals/from-lead/00000000-0000-0000-0000-000000000000",
        json={"title": "Nope", "value": "1"},
    )
    assert missing.status_code == 404


def test_stats_and_pipeline_are_scoped_to_owner(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    first = make_user()
    second = make_user()

    set_actor(first)
    _create_deal(test_client, value="1000")
    _create_deal(test_client, value="500", stage="CLOSED_WON")
    set_actor(second)
    other = _create_deal(test_client, value="300")

    set_actor(first)
    stats = test_client.get("/api/deals/stats").json()
    assert stats["total"] == 2
    assert Decimal(stats["total_value"]) == Decimal("1500")
    assert stats["won_deals"] == 1
    assert Decimal(stats["won_value"]) == Decimal("500")
    assert stats["by_stage"]["QUALIFICATION"]["count"] == 1
    assert test_client.get(f"/api/deals/{other['id']}").status_code == 403

    pipeline = test_client.get("/api/deals/pipeline").json()
    assert [column["stage"] for column in pipeline] == [
        "QUALIFICATION",
        "NEEDS_ANALYSIS",
        "PROPOSAL",
        "NEGOTIATION",
        "CLOSED_WON",
        "CLOSED_LOST",
    ]
    assert [column["probability"] for column in pipeline] == [10, 25, 50, 75, 100, 0]
    assert len(pipeline[0]["deals"]) == 1
    assert len(pipeline[4]["deals"]) == 1

    set_actor(admin)
    assert test_client.get("/api/deals/stats").json()["total"] == 3
    assert len(test_client.get("/api/deals", params={"owner_id": str(second.id)}).json()) == 1


def test_delete_deal_requires_manager_role(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    member = make_user(manager=manager)

    set_actor(member)
    deal = _create_deal(test_client)
    assert test_client.delete(f"/api/deals/{deal['id']}").status_code == 403

    set_actor(manager)
    response = test_client.delete(f"/api/deals/{deal['id']}")
    assert response.status_code == 200
    assert test_client.get(f"/api/deals/{deal['id']}").status_code == 404
