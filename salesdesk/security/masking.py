from __future__ import annotations

import uuid
from typing import Any

from salesdesk.metrics import observe_masked_fields
from salesdesk.security.context import Actor


MASK_PREFIX = "******"

# Fields hidden from employees on records they are not assigned to.
_MASKED_FIELDS: dict[str, tuple[str, ...]] = {
    "lead": ("mobile",),
}


def mask_value(value: str | None) -> str | None:
    if not value:
        return value
    return f"{MASK_PREFIX}{value[-4:]}"


def apply_masking(resource: str, record: dict[str, Any], actor: Actor, *, owner_id: uuid.UUID | None) -> dict[str, Any]:
    fields = _MASKED_FIELDS.get(resource, ())
    if not fields or not actor.is_employee or owner_id == actor.user_id:
        return record

    masked = 0
    for field_name in fields:
        value = record.get(field_name)
        if value:
            record[field_name] = mask_value(value)
            masked += 1
    observe_masked_fields(resource, masked)
    return record
