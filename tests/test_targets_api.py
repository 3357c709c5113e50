from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal

from conftest import ClientAndActor
from salesdesk.users.models import User


def _this_month() -> str:
    return datetime.now(timezone.utc).date().replace(day=1).isoformat()


def test_manager_sets_target_for_team_only(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    member = make_user(manager=manager)
    outsider = make_user()
    set_actor(manager)

    created = test_client.post("/api/targets", json={"user_id": str(member.id), "amount": "10000", "month": "2026-10-17"})
    assert created.status_code == 200
    assert created.json()["month"] == "2026-10-01"
    assert created.json()["set_by_id"] == str(manager.id)

    updated = test_client.post("/api/targets", json={"user_id": str(member.id), "amount": "12000", "month": "2026-10-01"})
    assert updated.json()["id"] == created.json()["id"]
    assert Decimal(updated.json()["amount"]) == Decimal("12000")

    denied = test_client.post("/api/targets", json={"user_id": str(outsider.id), "amount": "5000", "month": "2026-10-01"})
    assert denied.status_code == 403
    assert denied.json()["message"] == "Managers can only set targets for their team"

    set_actor(member)
    assert test_client.post("/api/targets", json={"user_id": str(member.id), "amount": "1", "month": "2026-10-01"}).status_code == 403


def test_my_stats_counts_approved_payment_requests(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    member = make_user(manager=manager)

    set_actor(manager)
    test_client.post("/api/targets", json={"user_id": str(member.id), "amount": "1000", "month": _this_month()})

    set_actor(member)
    empty = test_client.get("/api/targets/my-stats").json()
    assert Decimal(empty["target"]) == Decimal("1000")
    assert Decimal(empty["achieved"]) == Decimal("0")
    assert empty["percentage"] == 0.0

    approved = test_client.post("/api/payment-requests", data={"amount": "250", "notes": "advance"}).json()
    rejected = test_client.post("/api/payment-requests", data={"amount": "100"}).json()

    set_actor(manager)
    test_client.patch(f"/api/payment-requests/{approved['id']}/status", json={"status": "APPROVED"})
    test_client.patch(f"/api/payment-requests/{rejected['id']}/status", json={"status": "REJECTED", "rejection_reason": "dup"})

    set_actor(member)
    stats = test_client.get("/api/targets/my-stats").json()
    assert Decimal(stats["achieved"]) == Decimal("250")
    assert Decimal(stats["pending"]) == Decimal("750")
    assert stats["percentage"] == 25.0
    assert stats["month"] == _this_month()

    set_actor(manager)
    progress = test_client.get("/api/targets").json()
    assert len(progress) == 1
    assert progress[0]["user"]["id"] == str(member.id)
    assert Decimal(progress[0]["achieved"]) == Decimal("250")
    assert Decimal(test_client.get(f"/api/targets/user-stats/{member.id}").json()["achieved"]) == Decimal("250")


def test_user_stats_hidden_outside_scope(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    first = make_user()
    second = make_user()
    set_actor(first)

    response = test_client.get(f"/api/targets/user-stats/{second.id}")
    assert response.status_code == 403

    no_target = test_client.get("/api/targets/my-stats", params={"month": "2020-02-15"}).json()
    assert no_target["month"] == "2020-02-01"
    assert Decimal(no_target["target"]) == Decimal("0")
    assert Decimal(no_target["pending"]) == Decimal("0")


def test_achieved_counts_only_payments_inside_the_month(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    manager = make_user("MANAGER")
    set_actor(admin)
    test_client.post("/api/targets", json={"user_id": str(manager.id), "amount": "1000", "month": "2026-03-01"})

    set_actor(manager)
    for amount, paid_at in (
        ("1", "2026-02-28T23:59:59Z"),
        ("20", "2026-03-01T00:00:00Z"),
        ("300", "2026-03-31T23:59:59Z"),
        ("4000", "2026-04-01T00:00:00Z"),
    ):
        response = test_client.post("/api/payments", json={"amount": amount, "payment_date": paid_at})
        assert response.status_code == 201, response.text

    march = test_client.get("/api/targets/my-stats", params={"month": "2026-03-15"}).json()
    assert Decimal(march["achieved"]) == Decimal("320")
    assert Decimal(march["pending"]) == Decimal("680")
    assert march["percentage"] == 32.0

    february = test_client.get("/api/targets/my-stats", params={"month": "2026-02-01"}).json()
    assert Decimal(february["achieved"]) == Decimal("1")
    april = test_client.get("/api/targets/my-stats", params={"month": "2026-04-01"}).json()
    assert Decimal(april["achieved"]) == Decimal("4000")
