from __future__ import annotations

import csv
import io
import logging
from typing import Any

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from salesdesk.leads.schemas import ImportRowError, LeadCreate, LeadImportResult
from salesdesk.leads.service import leads_service
from salesdesk.security.context import Actor
from salesdesk.security.scope import require_not_employee
from salesdesk.users.models import User

logger = logging.getLogger("salesdesk.leads.import")

REQUIRED_COLUMNS = ("first_name", "last_name", "email")
OPTIONAL_COLUMNS = (
    "salutation",
    "phone",
    "mobile",
    "company",
    "department",
    "industry",
    "gstin",
    "description",
    "status",
    "source",
    "notes",
)


def _clean(raw: str | None) -> str | None:
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(item) for item in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else str(first.get("msg", "invalid value"))


def _resolve_assignee(session: Session, cache: dict[str, Any], email: str | None) -> Any:
    if email is None:
        return None
    key = email.lower()
    if key not in cache:
        cache[key] = session.scalar(select(User.id).where(User.email == key, User.is_active.is_(True)))
    return cache[key]


def import_leads_csv(session: Session, actor: Actor, content: bytes) -> LeadImportResult:
    require_not_employee(actor, "lead", "Employees cannot import leads")
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="csv must be utf-8 encoded")

    reader = csv.DictReader(io.StringIO(text))
    headers = {name.strip() for name in reader.fieldnames or []}
    missing = [column for column in REQUIRED_COLUMNS if column not in headers]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"missing required columns: {', '.join(missing)}",
        )

    created = 0
    errors: list[ImportRowError] = []
    assignees: dict[str, Any] = {}

    for row_number, raw_row in enumerate(reader, start=2):
        row = {str(key).strip(): _clean(value) for key, value in raw_row.items() if key is not None}
        data: dict[str, Any] = {column: row.get(column) for column in REQUIRED_COLUMNS + OPTIONAL_COLUMNS}
        data = {key: value for key, value in data.items() if value is not None}
        if "status" in data:
            data["status"] = data["status"].upper()
        if "source" in data:
            data["source"] = data["source"].upper()

        assignee_email = row.get("assignee_email")
        if assignee_email is not None:
            assignee_id = _resolve_assignee(session, assignees, assignee_email)
            if assignee_id is None:
                errors.append(ImportRowError(row_number=row_number, message=f"unknown assignee: {assignee_email}"))
                continue
            data["assignee_id"] = assignee_id

        try:
            payload = LeadCreate.model_validate(data)
        except ValidationError as exc:
            errors.append(ImportRowError(row_number=row_number, message=_validation_message(exc)))
            continue

        leads_service.build_lead(session, actor, payload)
        created += 1

    session.commit()
    logger.info("lead.import_completed", extra={"status": f"{created} created, {len(errors)} failed"})
    return LeadImportResult(created=created, failed=len(errors), errors=errors)
