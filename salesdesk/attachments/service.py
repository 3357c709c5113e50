from __future__ import annotations

import logging
import mimetypes
import uuid
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from salesdesk.attachments.models import Attachment
from salesdesk.attachments.schemas import AttachmentRead, AttachmentRecordCreate
from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.core.config import get_settings
from salesdesk.notes.service import require_parents
from salesdesk.otel import get_tracer
from salesdesk.security.context import Actor
from salesdesk.security.scope import deny
from salesdesk.storage.backends import StorageBackend, StorageError, StorageObjectNotFound

logger = logging.getLogger("salesdesk.attachments")
tracer = get_tracer("salesdesk.attachments")

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(slots=True)
class AttachmentsService:
    module = "attachments"

    def upload(
        self,
        session: Session,
        actor: Actor,
        backend: StorageBackend,
        *,
        content: bytes,
        original_name: str,
        content_type: str | None,
        lead_id: uuid.UUID | None = None,
        customer_id: uuid.UUID | None = None,
        deal_id: uuid.UUID | None = None,
    ) -> AttachmentRead:
        refs = {"lead_id": lead_id, "customer_id": customer_id, "deal_id": deal_id}
        require_parents(session, refs)
        if len(content) > get_settings().max_upload_bytes:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="file too large")

        original_name = Path(original_name or "file.bin").name
        filename = f"{uuid.uuid4()}{Path(original_name).suffix}"
        key = f"attachments/{filename}"
        mime_type = content_type or mimetypes.guess_type(original_name)[0] or DEFAULT_MIME_TYPE
        with tracer.start_as_current_span("attachment.upload") as span:
            span.set_attribute("storage_backend", backend.name)
            span.set_attribute("storage_key", key)
            span.set_attribute("size", len(content))
            try:
                url = backend.save(key, content, mime_type)
            except StorageError as exc:
                raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

        attachment = Attachment(
            filename=filename,
            original_name=original_name,
            mime_type=mime_type,
            size=len(content),
            url=url,
            storage_backend=backend.name,
            storage_key=key,
            uploaded_by_id=actor.user_id,
            **refs,
        )
        return self._insert(session, actor, attachment)

    def record(self, session: Session, actor: Actor, backend: StorageBackend, payload: AttachmentRecordCreate) -> AttachmentRead:
        """Register an object that the client already uploaded through a signed url."""
        refs = {"lead_id": payload.lead_id, "customer_id": payload.customer_id, "deal_id": payload.deal_id}
        require_parents(session, refs)
        attachment = Attachment(
            filename=payload.filename,
            original_name=payload.original_name,
            mime_type=payload.mime_type,
            size=payload.size,
            url=payload.url,
            storage_backend=backend.name,
            storage_key=payload.s3_key,
            uploaded_by_id=actor.user_id,
            **refs,
        )
        return self._insert(session, actor, attachment)

    def list_attachments(
        self,
        session: Session,
        *,
        lead_id: uuid.UUID | None = None,
        customer_id: uuid.UUID | None = None,
        deal_id: uuid.UUID | None = None,
    ) -> list[AttachmentRead]:
        stmt = select(Attachment)
        if lead_id is not None:
            stmt = stmt.where(Attachment.lead_id == lead_id)
        if customer_id is not None:
            stmt = stmt.where(Attachment.customer_id == customer_id)
        if deal_id is not None:
            stmt = stmt.where(Attachment.deal_id == deal_id)
        rows = session.scalars(stmt.order_by(Attachment.created_at.desc())).all()
        return [AttachmentRead.model_validate(row) for row in rows]

    def download(
        self, session: Session, backend: StorageBackend, attachment_id: uuid.UUID
    ) -> tuple[Attachment, Iterator[bytes]]:
        attachment = self._get(session, attachment_id)
        try:
            chunks = backend.stream(attachment.storage_key)
        except StorageObjectNotFound:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="file not found")
        except StorageError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
        return attachment, chunks

    def delete(self, session: Session, actor: Actor, backend: StorageBackend, attachment_id: uuid.UUID) -> None:
        attachment = self._get(session, attachment_id)
        if attachment.uploaded_by_id != actor.user_id and actor.is_employee:
            deny("attachment", "owner", "You can only delete your own attachments")
        before = snapshot(attachment)
        try:
            backend.delete(attachment.storage_key)
        except StorageError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
        session.delete(attachment)
        audit_log_service.record(session, actor, module=self.module, action="DELETE", entity_id=attachment_id, old_values=before)
        session.commit()
        logger.info("attachment.deleted", extra={"entity_id": str(attachment_id), "storage_key": attachment.storage_key})

    def _insert(self, session: Session, actor: Actor, attachment: Attachment) -> AttachmentRead:
        session.add(attachment)
        session.flush()
        audit_log_service.record(
            session, actor, module=self.module, action="CREATE", entity_id=attachment.id, new_values=snapshot(attachment)
        )
        session.commit()
        logger.info("attachment.created", extra={"entity_id": str(attachment.id), "storage_key": attachment.storage_key})
        return AttachmentRead.model_validate(attachment)

    @staticmethod
    def _get(session: Session, attachment_id: uuid.UUID) -> Attachment:
        attachment = session.get(Attachment, attachment_id)
        if attachment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="attachment not found")
        return attachment


attachments_service = AttachmentsService()
