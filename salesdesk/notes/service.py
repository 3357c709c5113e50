from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.customers.models import Customer
from salesdesk.deals.models import Deal
from salesdesk.leads.models import Lead
from salesdesk.notes.models import Note
from salesdesk.notes.schemas import NoteCreate, NoteRead
from salesdesk.security.context import Actor
from salesdesk.security.scope import deny

_PARENTS: dict[str, tuple[Any, str]] = {
    "lead_id": (Lead, "lead not found"),
    "customer_id": (Customer, "customer not found"),
    "deal_id": (Deal, "deal not found"),
}


def require_parents(session: Session, refs: dict[str, uuid.UUID | None], *, required: bool = True) -> None:
    """Require that every given parent exists and, unless `required` is off, that at least one is given."""
    if required and all(value is None for value in refs.values()):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="one of lead_id, customer_id or deal_id is required",
        )
    for field, value in refs.items():
        if value is None:
            continue
        model, detail = _PARENTS[field]
        if session.get(model, value) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


@dataclass(slots=True)
class NotesService:
    module = "notes"

    def create_note(self, session: Session, actor: Actor, payload: NoteCreate) -> NoteRead:
        refs = {"lead_id": payload.lead_id, "customer_id": payload.customer_id, "deal_id": payload.deal_id}
        require_parents(session, refs)
        note = Note(content=payload.content, author_id=actor.user_id, **refs)
        session.add(note)
        session.flush()
        audit_log_service.record(session, actor, module=self.module, action="CREATE", entity_id=note.id, new_values=snapshot(note))
        session.commit()
        return self._read(session, note.id)

    def list_for(self, session: Session, field: str, parent_id: uuid.UUID) -> list[NoteRead]:
        column = getattr(Note, field)
        rows = session.scalars(
            select(Note).where(column == parent_id).options(selectinload(Note.author)).order_by(Note.created_at.desc())
        ).all()
        return [NoteRead.model_validate(row) for row in rows]

    def update_note(self, session: Session, actor: Actor, note_id: uuid.UUID, content: str) -> NoteRead:
        note = self._get(session, note_id)
        if note.author_id != actor.user_id:
            deny("note", "owner", "You can only edit your own notes")
        before = snapshot(note)
        note.content = content
        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=note.id, old_values=before, new_values=snapshot(note)
        )
        session.commit()
        return self._read(session, note.id)

    def delete_note(self, session: Session, actor: Actor, note_id: uuid.UUID) -> None:
        note = self._get(session, note_id)
        if note.author_id != actor.user_id and not actor.is_super_admin:
            deny("note", "owner", "You can only delete your own notes")
        before = snapshot(note)
        session.delete(note)
        audit_log_service.record(session, actor, module=self.module, action="DELETE", entity_id=note_id, old_values=before)
        session.commit()

    @staticmethod
    def _get(session: Session, note_id: uuid.UUID) -> Note:
        note = session.get(Note, note_id)
        if note is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="note not found")
        return note

    @staticmethod
    def _read(session: Session, note_id: uuid.UUID) -> NoteRead:
        note = session.scalar(select(Note).where(Note.id == note_id).options(selectinload(Note.author)))
        return NoteRead.model_validate(note)


notes_service = NotesService()
