from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import Path

from fastapi import HTTPException, status

from salesdesk.storage.backends import StorageBackend, StorageError
from salesdesk.storage.schemas import DownloadUrlResponse, UploadUrlResponse


@dataclass(slots=True)
class StorageService:
    def upload_url(self, backend: StorageBackend, filename: str, content_type: str) -> UploadUrlResponse:
        key = f"uploads/{uuid.uuid4()}/{Path(filename).name}"
        try:
            url = backend.presign_upload(key, content_type)
        except StorageError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        return UploadUrlResponse(upload_url=url, key=key)

    def download_url(self, backend: StorageBackend, key: str) -> DownloadUrlResponse:
        try:
            url = backend.presign_download(key)
        except StorageError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        return DownloadUrlResponse(url=url)


storage_service = StorageService()
