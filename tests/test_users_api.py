from __future__ import annotations

from collections.abc import Callable

from conftest import ClientAndActor
from salesdesk.branches.models import Branch
from salesdesk.users.models import User


def test_super_admin_creates_user_in_branch_under_manager(
    client: ClientAndActor,
    make_user: Callable[..., User],
    make_branch: Callable[..., Branch],
) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    manager = make_user("MANAGER")
    branch = make_branch()
    set_actor(admin)

    response = test_client.post(
        "/api/users",
        json={
            "email": "New.Hire@example.com",
            "password": "secret123",
            "first_name": "New",
            "last_name": "Hire",
            "branch_id": str(branch.id),
            "manager_id": str(manager.id),
        },
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["email"] == "new.hire@example.com"
    assert body["role"] == "EMPLOYEE"
    assert body["manager_id"] == str(manager.id)
    assert "password_hash" not in body

    duplicate = test_client.post(
        "/api/users",
        json={"email": "new.hire@example.com", "password": "secret123", "first_name": "Dup", "last_name": "Hire"},
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "Email already exists"

    detail = test_client.get(f"/api/users/{manager.id}").json()
    assert [employee["email"] for employee in detail["employees"]] == ["new.hire@example.com"]


def test_only_super_admin_creates_users(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user("MANAGER"))

    response = test_client.post(
        "/api/users",
        json={"email": "x@example.com", "password": "secret123", "first_name": "X", "last_name": "Y"},
    )
    assert response.status_code == 403
    assert response.json()["message"] == "requires role: SUPER_ADMIN"


def test_employee_cannot_be_assigned_as_manager(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    employee = make_user()
    other = make_user()
    manager = make_user("MANAGER")
    set_actor(admin)

    invalid = test_client.patch(f"/api/users/{other.id}/manager", json={"manager_id": str(employee.id)})
    assert invalid.status_code == 400
    assert invalid.json()["message"] == "An employee cannot be assigned as a manager"

    self_managed = test_client.patch(f"/api/users/{manager.id}/manager", json={"manager_id": str(manager.id)})
    assert self_managed.status_code == 400

    assigned = test_client.patch(f"/api/users/{other.id}/manager", json={"manager_id": str(manager.id)})
    assert assigned.status_code == 200
    assert assigned.json()["manager_id"] == str(manager.id)

    set_actor(manager)
    team = test_client.get("/api/users/team").json()
    assert [member["id"] for member in team] == [str(other.id)]


def test_list_users_by_role_and_managers(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    manager = make_user("MANAGER")
    make_user("MANAGER", is_active=False)
    employee = make_user()

    set_actor(employee)
    assert test_client.get("/api/users").status_code == 403
    managers = test_client.get("/api/users/managers").json()
    assert [item["id"] for item in managers] == [str(manager.id)]

    set_actor(admin)
    employees = test_client.get("/api/users", params={"role": "EMPLOYEE"}).json()
    assert [item["id"] for item in employees] == [str(employee.id)]
    assert len(test_client.get("/api/users").json()) == 4


def test_update_and_deactivate_user(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    employee = make_user()
    set_actor(admin)

    updated = test_client.patch(f"/api/users/{employee.id}", json={"phone": "555-0101", "role": "MANAGER"})
    assert updated.status_code == 200
    assert updated.json()["phone"] == "555-0101"
    assert updated.json()["role"] == "MANAGER"

    deactivated = test_client.patch(f"/api/users/{employee.id}/deactivate")
    assert deactivated.json()["is_active"] is False
    activated = test_client.patch(f"/api/users/{employee.id}/activate")
    assert activated.json()["is_active"] is True

    assert test_client.get("/api/users/00000000-0000-0000-0000-000000000000").status_code == 404
