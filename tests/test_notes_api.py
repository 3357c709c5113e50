from __future__ import annotations

import uuid
from collections.abc import Callable

from conftest import ClientAndActor
from salesdesk.users.models import User


def _lead_id(test_client) -> str:
    response = test_client.post("/api/leads", json={"first_name": "Ria", "last_name": "Sen", "email": "ria@example.com"})
    assert response.status_code == 201
    return response.json()["id"]


def test_note_requires_a_parent(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user())

    orphan = test_client.post("/api/notes", json={"content": "floating"})
    assert orphan.status_code == 422
    assert orphan.json()["message"] == "one of lead_id, customer_id or deal_id is required"

    missing = test_client.post("/api/notes", json={"content": "lost", "deal_id": str(uuid.uuid4())})
    assert missing.status_code == 404
    assert missing.json()["message"] == "deal not found"


def test_notes_are_listed_per_parent(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    author = make_user()
    set_actor(author)
    lead_id = _lead_id(test_client)
    deal = test_client.post("/api/deals", json={"title": "Ria deal", "value": "10"}).json()

    created = test_client.post("/api/notes", json={"content": "called twice", "lead_id": lead_id})
    assert created.status_code == 201
    assert created.json()["author"]["id"] == str(author.id)
    test_client.post("/api/notes", json={"content": "sent quote", "deal_id": deal["id"]})

    lead_notes = test_client.get(f"/api/notes/lead/{lead_id}").json()
    assert [note["content"] for note in lead_notes] == ["called twice"]
    deal_notes = test_client.get(f"/api/notes/deal/{deal['id']}").json()
    assert [note["content"] for note in deal_notes] == ["sent quote"]
    assert test_client.get(f"/api/notes/customer/{uuid.uuid4()}").json() == []


def test_only_author_edits_and_admin_may_delete(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    admin = make_user("SUPER_ADMIN")
    author = make_user()
    other = make_user()

    set_actor(author)
    lead_id = _lead_id(test_client)
    note = test_client.post("/api/notes", json={"content": "draft", "lead_id": lead_id}).json()

    set_actor(other)
    edit = test_client.put(f"/api/notes/{note['id']}", json={"content": "hijacked"})
    assert edit.status_code == 403
    assert edit.json()["message"] == "You can only edit your own notes"
    assert test_client.delete(f"/api/notes/{note['id']}").status_code == 403

    set_actor(author)
    edited = test_client.put(f"/api/notes/{note['id']}", json={"content": "final"})
    assert edited.status_code == 200
    assert edited.json()["content"] == "final"

    set_actor(admin)
    deleted = test_client.delete(f"/api/notes/{note['id']}")
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "Note deleted successfully"}
    assert test_client.get(f"/api/notes/lead/{lead_id}").json() == []
