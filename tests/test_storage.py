from __future__ import annotations

import io
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError

from conftest import ClientAndActor
from salesdesk.core.config import get_settings
from salesdesk.main import app
from salesdesk.storage.backends import (
    LocalStorageBackend,
    S3StorageBackend,
    StorageError,
    StorageObjectNotFound,
    get_storage_backend,
)
from salesdesk.users.models import User


class FakeS3Client:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail_with: str | None = None

    def _maybe_fail(self, operation: str) -> None:
        if self.fail_with is not None:
            raise ClientError({"Error": {"Code": self.fail_with, "Message": "boom"}}, operation)

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, ContentType: str) -> dict[str, Any]:
        self._maybe_fail("PutObject")
        self.objects[Key] = Body
        return {}

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        self._maybe_fail("GetObject")
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[Key])}

    def delete_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        self._maybe_fail("DeleteObject")
        self.objects.pop(Key, None)
        return {}

    def generate_presigned_url(self, operation: str, *, Params: dict[str, Any], ExpiresIn: int) -> str:
        return f"https://signed.example.com/{operation}/{Params['Bucket']}/{Params['Key']}?expires={ExpiresIn}"


@pytest.fixture()
def s3_backend() -> S3StorageBackend:
    return S3StorageBackend("crm-bucket", region="ap-south-1", client=FakeS3Client(), expires_in=600)


def test_local_backend_round_trip(tmp_path: Path) -> None:
    backend = LocalStorageBackend(tmp_path)

    url = backend.save("attachments/a.txt", b"hello", "text/plain")
    assert url == "/uploads/attachments/a.txt"
    assert backend.read("attachments/a.txt") == b"hello"

    backend.delete("attachments/a.txt")
    with pytest.raises(StorageObjectNotFound):
        backend.read("attachments/a.txt")
    # Deleting a missing object is a no-op.
    backend.delete("attachments/a.txt")


def test_local_backend_rejects_keys_outside_root(tmp_path: Path) -> None:
    backend = LocalStorageBackend(tmp_path / "root")

    with pytest.raises(StorageError):
        backend.save("../escape.txt", b"x", "text/plain")


def test_s3_backend_maps_client_errors(s3_backend: S3StorageBackend) -> None:
    url = s3_backend.save("attachments/b.pdf", b"%PDF", "application/pdf")
    assert url == "https://crm-bucket.s3.ap-south-1.amazonaws.com/attachments/b.pdf"
    assert s3_backend.read("attachments/b.pdf") == b"%PDF"

    with pytest.raises(StorageObjectNotFound):
        s3_backend.read("attachments/missing.pdf")

    s3_backend.client.fail_with = "AccessDenied"
    with pytest.raises(StorageError) as exc_info:
        s3_backend.read("attachments/b.pdf")
    assert not isinstance(exc_info.value, StorageObjectNotFound)
    with pytest.raises(StorageError):
        s3_backend.save("attachments/c.pdf", b"", "application/pdf")


def test_backends_stream_objects_in_chunks(tmp_path: Path, s3_backend: S3StorageBackend) -> None:
    body = b"0123456789" * 3
    local = LocalStorageBackend(tmp_path)
    for backend in (local, s3_backend):
        backend.save("attachments/big.bin", body, "application/octet-stream")
        chunks = list(backend.stream("attachments/big.bin", chunk_size=8))
        assert [len(chunk) for chunk in chunks] == [8, 8, 8, 6]
        assert b"".join(chunks) == body

        # A missing object fails when the stream is opened, not on first iteration.
        with pytest.raises(StorageObjectNotFound):
            backend.stream("attachments/missing.bin")


def test_s3_backend_presigns_urls(s3_backend: S3StorageBackend) -> None:
    upload = s3_backend.presign_upload("uploads/x/a.png", "image/png")
    assert upload == "https://signed.example.com/put_object/crm-bucket/uploads/x/a.png?expires=600"
    download = s3_backend.presign_download("uploads/x/a.png")
    assert download.startswith("https://signed.example.com/get_object/")


def test_storage_backend_selected_from_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "files"))
    get_settings.cache_clear()
    get_storage_backend.cache_clear()
    backend = get_storage_backend()
    assert isinstance(backend, LocalStorageBackend)
    assert backend.root == (tmp_path / "files").resolve()

    monkeypatch.setenv("STORAGE_BACKEND", "ftp")
    get_settings.cache_clear()
    get_storage_backend.cache_clear()
    with pytest.raises(StorageError):
        get_storage_backend()


def test_upload_url_unsupported_on_local_backend(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user())

    response = test_client.post("/api/storage/upload-url", json={"filename": "a.png", "content_type": "image/png"})
    assert response.status_code == 400
    assert response.json()["message"] == "signed urls are not supported by the local storage backend"


def test_signed_upload_then_record_attachment(
    client: ClientAndActor,
    make_user: Callable[..., User],
    s3_backend: S3StorageBackend,
) -> None:
    test_client, set_actor = client
    set_actor(make_user())
    app.dependency_overrides[get_storage_backend] = lambda: s3_backend

    signed = test_client.post("/api/storage/upload-url", json={"filename": "../../quote.pdf", "content_type": "application/pdf"})
    assert signed.status_code == 200
    key = signed.json()["key"]
    assert key.startswith("uploads/")
    assert key.endswith("/quote.pdf")
    assert signed.json()["upload_url"].startswith("https://signed.example.com/put_object/crm-bucket/uploads/")

    download = test_client.get("/api/storage/download-url", params={"key": key})
    assert download.status_code == 200
    assert key in download.json()["url"]

    lead = test_client.post("/api/leads", json={"first_name": "S", "last_name": "Three", "email": "s3@example.com"}).json()
    recorded = test_client.post(
        "/api/storage/attachments",
        json={
            "filename": "quote.pdf",
            "original_name": "quote.pdf",
            "mime_type": "application/pdf",
            "size": 2048,
            "url": f"https://crm-bucket.s3.ap-south-1.amazonaws.com/{key}",
            "s3_key": key,
            "lead_id": lead["id"],
        },
    )
    assert recorded.status_code == 201, recorded.text
    assert recorded.json()["storage_backend"] == "s3"
    assert recorded.json()["storage_key"] == key

    listed = test_client.get("/api/storage/attachments", params={"lead_id": lead["id"]}).json()
    assert [item["id"] for item in listed] == [recorded.json()["id"]]

    s3_backend.client.objects[key] = b"%PDF"
    deleted = test_client.delete(f"/api/storage/attachments/{recorded.json()['id']}")
    assert deleted.status_code == 200
    assert key not in s3_backend.client.objects


def test_record_attachment_requires_parent(client: ClientAndActor, make_user: Callable[..., User]) -> None:
    test_client, set_actor = client
    set_actor(make_user())

    response = test_client.post(
        "/api/storage/attachments",
        json={
            "filename": "a",
            "original_name": "a",
            "mime_type": "text/plain",
            "size": 1,
            "url": "/uploads/a",
            "s3_key": "a",
        },
    )
    assert response.status_code == 422
