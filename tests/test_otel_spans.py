from __future__ import annotations

from collections.abc import Callable

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from conftest import ClientAndActor
from salesdesk.otel import setup_inmemory_otel
from salesdesk.users.models import User


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel()
    exporter.clear()
    return exporter


def test_payment_request_decision_emits_span(
    client: ClientAndActor,
    make_user: Callable[..., User],
    span_exporter: InMemorySpanExporter,
) -> None:
    test_client, set_actor = client
    manager = make_user("MANAGER")
    requester = make_user(manager=manager)

    set_actor(requester)
    request = test_client.post(
        "/api/payment-requests",
        data={"amount": "500"},
        files={"screenshot": ("proof.png", b"png", "image/png")},
    ).json()

    set_actor(manager)
    decided = test_client.patch(
        f"/api/payment-requests/{request['id']}/status",
        json={"status": "APPROVED"},
        headers={"X-Correlation-Id": "span-corr-1"},
    )
    assert decided.status_code == 200

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "payment_request.decide"]
    assert len(spans) == 1
    attributes = spans[0].attributes
    assert attributes["payment_request_id"] == request["id"]
    assert attributes["decision"] == "APPROVED"
    assert attributes["correlation_id"] == "span-corr-1"
    assert attributes["payment_id"] == decided.json()["payment_id"]


def test_attachment_upload_emits_span(
    client: ClientAndActor,
    make_user: Callable[..., User],
    span_exporter: InMemorySpanExporter,
) -> None:
    test_client, set_actor = client
    set_actor(make_user())
    lead_id = test_client.post(
        "/api/leads", json={"first_name": "Sp", "last_name": "An", "email": "span@example.com"}
    ).json()["id"]

    uploaded = test_client.post(
        "/api/attachments/upload",
        params={"lead_id": lead_id},
        files={"file": ("notes.txt", b"twelve bytes", "text/plain")},
    )
    assert uploaded.status_code == 201

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "attachment.upload"]
    assert len(spans) == 1
    attributes = spans[0].attributes
    assert attributes["storage_backend"] == "local"
    assert attributes["storage_key"] == uploaded.json()["storage_key"]
    assert attributes["size"] == 12
