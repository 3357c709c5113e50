from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from salesdesk.attachments.schemas import AttachmentRead, AttachmentRecordCreate
from salesdesk.attachments.service import attachments_service
from salesdesk.core.auth import get_current_actor
from salesdesk.core.database import get_db
from salesdesk.security.context import Actor
from salesdesk.storage.backends import StorageBackend, get_storage_backend
from salesdesk.storage.schemas import DownloadUrlResponse, UploadUrlRequest, UploadUrlResponse
from salesdesk.storage.service import storage_service


router = APIRouter(prefix="/api/storage", tags=["storage"])


@router.post("/upload-url", response_model=UploadUrlResponse)
def create_upload_url(
    payload: UploadUrlRequest,
    actor: Actor = Depends(get_current_actor),
    backend: StorageBackend = Depends(get_storage_backend),
) -> UploadUrlResponse:
    return storage_service.upload_url(backend, payload.filename, payload.content_type)


@router.get("/download-url", response_model=DownloadUrlResponse)
def create_download_url(
    key: str = Query(min_length=1),
    actor: Actor = Depends(get_current_actor),
    backend: StorageBackend = Depends(get_storage_backend),
) -> DownloadUrlResponse:
    return storage_service.download_url(backend, key)


@router.post("/attachments", response_model=AttachmentRead, status_code=status.HTTP_201_CREATED)
def record_attachment(
    payload: AttachmentRecordCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    backend: StorageBackend = Depends(get_storage_backend),
) -> AttachmentRead:
    return attachments_service.record(db, actor, backend, payload)


@router.get("/attachments", response_model=list[AttachmentRead])
def list_attachments(
    lead_id: uuid.UUID | None = Query(default=None),
    customer_id: uuid.UUID | None = Query(default=None),
    deal_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[AttachmentRead]:
    return attachments_service.list_attachments(db, lead_id=lead_id, customer_id=customer_id, deal_id=deal_id)


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_200_OK)
def delete_attachment(
    attachment_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    backend: StorageBackend = Depends(get_storage_backend),
) -> dict[str, str]:
    attachments_service.delete(db, actor, backend, attachment_id)
    return {"message": "Attachment deleted successfully"}
