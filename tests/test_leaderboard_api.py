from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from conftest import ClientAndActor
from salesdesk.deals.models import Deal
from salesdesk.users.models import User


@pytest.fixture()
def sales_floor(client: ClientAndActor, make_user: Callable[..., User], db_session: Session) -> dict[str, User]:
    """Two teams with won deals, activities, leads and an approved payment request."""
    test_client, set_actor = client
    first_manager = make_user("MANAGER")
    second_manager = make_user("MANAGER")
    closer = make_user(manager=first_manager)
    runner_up = make_user(manager=first_manager)
    veteran = make_user(manager=second_manager)
    make_user(manager=second_manager, is_active=False)

    set_actor(runner_up)
    for value, stage in (("1000", "CLOSED_WON"), ("500", "CLOSED_WON"), ("9999", "NEGOTIATION")):
        assert test_client.post("/api/deals", json={"title": "Deal", "value": value, "stage": stage}).status_code == 201
    done = test_client.post("/api/activities", json={"title": "Call", "type": "CALL", "scheduled_at": "2099-01-01T10:00:00Z"}).json()
    test_client.post("/api/activities", json={"title": "Visit", "type": "MEETING", "scheduled_at": "2099-01-02T10:00:00Z"})
    test_client.patch(f"/api/activities/{done['id']}/complete", json={"outcome": "ok"})
    leads = [
        test_client.post(
            "/api/leads",
            json={"first_name": "Lead", "last_name": str(index), "email": f"lead{index}@example.com"},
        ).json()
        for index in range(3)
    ]
    test_client.patch(f"/api/leads/{leads[0]['id']}/status", json={"status": "CLOSED_LEAD"})
    request = test_client.post("/api/payment-requests", data={"amount": "250"}).json()

    set_actor(closer)
    test_client.post("/api/deals", json={"title": "Big deal", "value": "2000", "stage": "CLOSED_WON"})

    set_actor(first_manager)
    test_client.patch(f"/api/payment-requests/{request['id']}/status", json={"status": "APPROVED"})

    db_session.add(
        Deal(
            title="Old win",
            value=Decimal("700"),
            stage="CLOSED_WON",
            probability=100,
            owner_id=veteran.id,
            created_at=datetime(2020, 6, 15, tzinfo=timezone.utc),
        )
    )
    db_session.commit()
    return {
        "first_manager": first_manager,
        "second_manager": second_manager,
        "closer": closer,
        "runner_up": runner_up,
        "veteran": veteran,
    }


def test_global_leaderboard_ranks_active_employees_by_revenue(client: ClientAndActor, sales_floor: dict[str, User]) -> None:
    test_client, set_actor = client
    set_actor(sales_floor["first_manager"])

    response = test_client.get("/api/leaderboard/global")
    assert response.status_code == 200
    board = response.json()
    assert [(entry["rank"], entry["user"]["id"]) for entry in board] == [
        (1, str(sales_floor["closer"].id)),
        (2, str(sales_floor["runner_up"].id)),
        (3, str(sales_floor["veteran"].id)),
    ]
    metrics = board[1]["metrics"]
    assert Decimal(metrics["revenue_closed"]) == Decimal("1500")
    assert metrics["deals_won"] == 2
    assert Decimal(metrics["payments_collected"]) == Decimal("250")
    assert metrics["activities_completed"] == 1
    assert metrics["activity_completion_rate"] == 50
    assert metrics["lead_conversion_rate"] == 33

    set_actor(sales_floor["closer"])
    assert test_client.get("/api/leaderboard/global").status_code == 403


def test_period_limits_leaderboard_to_records_created_inside_it(client: ClientAndActor, sales_floor: dict[str, User]) -> None:
    test_client, set_actor = client
    set_actor(sales_floor["second_manager"])

    board = test_client.get("/api/leaderboard/global", params={"start_date": "2020-01-01", "end_date": "2020-06-15"}).json()
    assert board[0]["user"]["id"] == str(sales_floor["veteran"].id)
    assert Decimal(board[0]["metrics"]["revenue_closed"]) == Decimal("700")
    assert all(Decimal(entry["metrics"]["revenue_closed"]) == 0 for entry in board[1:])

    before_the_win = test_client.get("/api/leaderboard/global", params={"end_date": "2020-06-14"}).json()
    assert all(Decimal(entry["metrics"]["revenue_closed"]) == 0 for entry in before_the_win)

    inverted = test_client.get("/api/leaderboard/global", params={"start_date": "2021-01-01", "end_date": "2020-01-01"})
    assert inverted.status_code == 422
    assert inverted.json()["message"] == "end_date must not be before start_date"


def test_team_leaderboard_is_for_managers(client: ClientAndActor, sales_floor: dict[str, User]) -> None:
    test_client, set_actor = client
    set_actor(sales_floor["first_manager"])

    team = test_client.get("/api/leaderboard/team").json()
    assert [entry["user"]["id"] for entry in team] == [str(sales_floor["closer"].id), str(sales_floor["runner_up"].id)]
    assert [entry["rank"] for entry in team] == [1, 2]

    set_actor(sales_floor["runner_up"])
    assert test_client.get("/api/leaderboard/team").status_code == 403


def test_managers_leaderboard_sums_team_wins(client: ClientAndActor, sales_floor: dict[str, User]) -> None:
    test_client, set_actor = client
    set_actor(sales_floor["veteran"])

    standings = test_client.get("/api/leaderboard/managers").json()
    assert [(row["rank"], row["user"]["id"]) for row in standings] == [
        (1, str(sales_floor["first_manager"].id)),
        (2, str(sales_floor["second_manager"].id)),
    ]
    assert Decimal(standings[0]["revenue_closed"]) == Decimal("3500")
    assert standings[0]["deals_won"] == 3
    assert standings[0]["team_size"] == 2
    assert Decimal(standings[1]["revenue_closed"]) == Decimal("700")
    assert standings[1]["team_size"] == 2


def test_self_and_monthly_standing(client: ClientAndActor, sales_floor: dict[str, User]) -> None:
    test_client, set_actor = client
    set_actor(sales_floor["runner_up"])

    own = test_client.get("/api/leaderboard/self").json()
    assert own["user"]["id"] == str(sales_floor["runner_up"].id)
    assert own["global_rank"] == 2
    assert own["metrics"]["deals_won"] == 2

    monthly = test_client.get("/api/leaderboard/monthly").json()
    assert Decimal(monthly["metrics"]["revenue_closed"]) == Decimal("1500")
    assert Decimal(monthly["metrics"]["payments_collected"]) == Decimal("250")
    assert monthly["global_rank"] == 2

    set_actor(sales_floor["veteran"])
    assert test_client.get("/api/leaderboard/monthly").json()["global_rank"] == 3

    set_actor(sales_floor["first_manager"])
    manager_view = test_client.get("/api/leaderboard/self").json()
    assert manager_view["global_rank"] is None
    assert manager_view["metrics"]["deals_won"] == 0
