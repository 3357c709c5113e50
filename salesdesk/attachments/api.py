from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from salesdesk.attachments.schemas import AttachmentRead
from salesdesk.attachments.service import attachments_service
from salesdesk.core.auth import get_current_actor
from salesdesk.core.config import get_settings
from salesdesk.core.database import get_db
from salesdesk.security.context import Actor
from salesdesk.storage.backends import StorageBackend, get_storage_backend


router = APIRouter(prefix="/api/attachments", tags=["attachments"])


def _content_disposition(name: str) -> str:
    safe = name.encode("ascii", "ignore").decode().replace('"', "") or "download"
    return f'attachment; filename="{safe}"'


@router.post("/upload", response_model=AttachmentRead, status_code=status.HTTP_201_CREATED)
def upload_attachment(
    file: UploadFile = File(...),
    lead_id: uuid.UUID | None = Query(default=None),
    customer_id: uuid.UUID | None = Query(default=None),
    deal_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    backend: StorageBackend = Depends(get_storage_backend),
) -> AttachmentRead:
    content = file.file.read(get_settings().max_upload_bytes + 1)
    return attachments_service.upload(
        db,
        actor,
        backend,
        content=content,
        original_name=file.filename or "file.bin",
        content_type=file.content_type,
        lead_id=lead_id,
        customer_id=customer_id,
        deal_id=deal_id,
    )


@router.get("/lead/{lead_id}", response_model=list[AttachmentRead])
def list_lead_attachments(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[AttachmentRead]:
    return attachments_service.list_attachments(db, lead_id=lead_id)


@router.get("/customer/{customer_id}", response_model=list[AttachmentRead])
def list_customer_attachments(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[AttachmentRead]:
    return attachments_service.list_attachments(db, customer_id=customer_id)


@router.get("/deal/{deal_id}", response_model=list[AttachmentRead])
def list_deal_attachments(
    deal_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[AttachmentRead]:
    return attachments_service.list_attachments(db, deal_id=deal_id)


@router.get("/{attachment_id}/download", response_model=None)
def download_attachment(
    attachment_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    backend: StorageBackend = Depends(get_storage_backend),
) -> StreamingResponse:
    attachment, chunks = attachments_service.download(db, backend, attachment_id)
    return StreamingResponse(
        chunks,
        media_type=attachment.mime_type,
        headers={"Content-Disposition": _content_disposition(attachment.original_name)},
    )


@router.delete("/{attachment_id}", status_code=status.HTTP_200_OK)
def delete_attachment(
    attachment_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    backend: StorageBackend = Depends(get_storage_backend),
) -> dict[str, str]:
    attachments_service.delete(db, actor, backend, attachment_id)
    return {"message": "Attachment deleted successfully"}
