from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor
from salesdesk.core.database import get_db
from salesdesk.notes.schemas import NoteCreate, NoteRead, NoteUpdate
from salesdesk.notes.service import notes_service
from salesdesk.security.context import Actor


router = APIRouter(prefix="/api/notes", tags=["notes"])


@router.post("", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
def create_note(
    payload: NoteCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> NoteRead:
    return notes_service.create_note(db, actor, payload)


@router.get("/lead/{lead_id}", response_model=list[NoteRead])
def list_lead_notes(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[NoteRead]:
    return notes_service.list_for(db, "lead_id", lead_id)


@router.get("/customer/{customer_id}", response_model=list[NoteRead])
def list_customer_notes(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[NoteRead]:
    return notes_service.list_for(db, "customer_id", customer_id)


@router.get("/deal/{deal_id}", response_model=list[NoteRead])
def list_deal_notes(
    deal_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[NoteRead]:
    return notes_service.list_for(db, "deal_id", deal_id)


@router.put("/{note_id}", response_model=NoteRead)
def update_note(
    note_id: uuid.UUID,
    payload: NoteUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> NoteRead:
    return notes_service.update_note(db, actor, note_id, payload.content)


@router.delete("/{note_id}", status_code=status.HTTP_200_OK)
def delete_note(
    note_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> dict[str, str]:
    notes_service.delete_note(db, actor, note_id)
    return {"message": "Note deleted successfully"}
