from __future__ import annotations

import logging
from collections.abc import Iterator
from functools import lru_cache
from pathlib import Path
from typing import Any, BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from salesdesk.core.config import get_settings
from salesdesk.metrics import observe_storage_operation

logger = logging.getLogger("salesdesk.storage")

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}
CHUNK_SIZE = 64 * 1024


class StorageError(Exception):
    pass


class StorageObjectNotFound(StorageError):
    def __init__(self, key: str) -> None:
        super().__init__(f"stored object not found: {key}")
        self.key = key


def _iter_chunks(handle: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    try:
        while chunk := handle.read(chunk_size):
            yield chunk
    finally:
        handle.close()


class StorageBackend:
    name = ""

    def save(self, key: str, content: bytes, content_type: str) -> str:
        raise NotImplementedError

    def read(self, key: str) -> bytes:
        raise NotImplementedError

    def stream(self, key: str, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        """Open the object now and yield its bytes in chunks; a missing object raises before iteration."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def url_for(self, key: str) -> str:
        raise NotImplementedError

    def presign_upload(self, key: str, content_type: str) -> str:
        raise StorageError(f"signed urls are not supported by the {self.name} storage backend")

    def presign_download(self, key: str) -> str:
        raise StorageError(f"signed urls are not supported by the {self.name} storage backend")


class LocalStorageBackend(StorageBackend):
    """Stores objects under a directory on local disk, served from ``/uploads``."""

    name = "local"

    def __init__(self, root: str | Path, url_prefix: str = "/uploads") -> None:
        self.root = Path(root).resolve()
        self.url_prefix = url_prefix.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise StorageError(f"invalid storage key: {key}")
        return path

    def save(self, key: str, content: bytes, content_type: str) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        observe_storage_operation(self.name, "save")
        logger.info("storage.object_saved", extra={"storage_key": key})
        return self.url_for(key)

    def read(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise StorageObjectNotFound(key)
        observe_storage_operation(self.name, "read")
        return path.read_bytes()

    def stream(self, key: str, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        path = self._path(key)
        if not path.is_file():
            raise StorageObjectNotFound(key)
        observe_storage_operation(self.name, "stream")
        return _iter_chunks(path.open("rb"), chunk_size)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
        observe_storage_operation(self.name, "delete")
        logger.info("storage.object_deleted", extra={"storage_key": key})

    def url_for(self, key: str) -> str:
        return f"{self.url_prefix}/{key}"


class S3StorageBackend(StorageBackend):
    name = "s3"

    def __init__(
        self,
        bucket: str,
        *,
        region: str = "us-east-1",
        client: Any | None = None,
        expires_in: int = 3600,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ) -> None:
        self.bucket = bucket
        self.region = region
        self.expires_in = expires_in
        self.client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    def save(self, key: str, content: bytes, content_type: str) -> str:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=content, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"failed to store object: {key}") from exc
        observe_storage_operation(self.name, "save")
        logger.info("storage.object_saved", extra={"storage_key": key})
        return self.url_for(key)

    def _get_object(self, key: str) -> dict[str, Any]:
        try:
            return self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_CODES:
                raise StorageObjectNotFound(key) from exc
            raise StorageError(f"failed to read object: {key}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"failed to read object: {key}") from exc

    def read(self, key: str) -> bytes:
        body = self._get_object(key)["Body"]
        observe_storage_operation(self.name, "read")
        return body.read()

    def stream(self, key: str, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        body = self._get_object(key)["Body"]
        observe_storage_operation(self.name, "stream")
        return _iter_chunks(body, chunk_size)

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"failed to delete object: {key}") from exc
        observe_storage_operation(self.name, "delete")
        logger.info("storage.object_deleted", extra={"storage_key": key})

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def presign_upload(self, key: str, content_type: str) -> str:
        observe_storage_operation(self.name, "presign_upload")
        return self.client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=self.expires_in,
        )

    def presign_download(self, key: str) -> str:
        observe_storage_operation(self.name, "presign_download")
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.expires_in,
        )


@lru_cache
def get_storage_backend() -> StorageBackend:
    settings = get_settings()
    if settings.storage_backend == "s3":
        return S3StorageBackend(
            settings.aws_s3_bucket,
            region=settings.aws_region,
            expires_in=settings.s3_presign_expiry_seconds,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )
    if settings.storage_backend != "local":
        raise StorageError(f"unknown storage backend: {settings.storage_backend}")
    return LocalStorageBackend(settings.upload_dir)
