from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor, require_roles
from salesdesk.core.database import get_db
from salesdesk.leads.import_csv import import_leads_csv
from salesdesk.leads.schemas import (
    AssignLeadRequest,
    BulkAssignRequest,
    BulkDeleteRequest,
    BulkResult,
    LeadCreate,
    LeadImportResult,
    LeadPage,
    LeadRead,
    LeadSource,
    LeadStats,
    LeadStatus,
    LeadUpdate,
    TransferDecisionRequest,
    TransferRequestCreate,
    TransferRequestRead,
    TransferStatus,
    UpdateLeadStatusRequest,
)
from salesdesk.leads.service import leads_service
from salesdesk.security.context import MANAGER, SUPER_ADMIN, Actor


router = APIRouter(prefix="/api/leads", tags=["leads"])
transfer_requests_router = APIRouter(prefix="/api/lead-transfer-requests", tags=["leads"])


@router.post("", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    payload: LeadCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> LeadRead:
    return leads_service.create_lead(db, actor, payload)


@router.get("", response_model=LeadPage)
def list_leads(
    lead_status: LeadStatus | None = Query(default=None, alias="status"),
    source: LeadSource | None = Query(default=None),
    assignee_id: uuid.UUID | None = Query(default=None),
    exclude_assignee_id: uuid.UUID | None = Query(default=None),
    search: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> LeadPage:
    filters = {
        "status": lead_status,
        "source": source,
        "assignee_id": assignee_id,
        "exclude_assignee_id": exclude_assignee_id,
        "search": search,
    }
    return leads_service.list_leads(db, actor, filters, page=page, page_size=page_size)


@router.get("/stats", response_model=LeadStats)
def lead_stats(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> LeadStats:
    return leads_service.get_stats(db, actor)


@router.post("/bulk-assign", response_model=BulkResult)
def bulk_assign_leads(
    payload: BulkAssignRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> BulkResult:
    return leads_service.bulk_assign(db, actor, payload.lead_ids, payload.assignee_id)


@router.post("/bulk-delete", response_model=BulkResult)
def bulk_delete_leads(
    payload: BulkDeleteRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> BulkResult:
    return leads_service.bulk_delete(db, actor, payload.lead_ids)


@router.post("/bulk-import", response_model=LeadImportResult)
def bulk_import_leads(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> LeadImportResult:
    content = file.file.read()
    return import_leads_csv(db, actor, content)


@router.get("/{lead_id}", response_model=LeadRead)
def get_lead(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> LeadRead:
    return leads_service.get_lead(db, actor, lead_id)


@router.patch("/{lead_id}", response_model=LeadRead)
def update_lead(
    lead_id: uuid.UUID,
    payload: LeadUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> LeadRead:
    return leads_service.update_lead(db, actor, lead_id, payload)


@router.patch("/{lead_id}/assign", response_model=LeadRead)
def assign_lead(
    lead_id: uuid.UUID,
    payload: AssignLeadRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> LeadRead:
    return leads_service.assign_lead(db, actor, lead_id, payload.assignee_id)


@router.patch("/{lead_id}/status", response_model=LeadRead)
def update_lead_status(
    lead_id: uuid.UUID,
    payload: UpdateLeadStatusRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> LeadRead:
    return leads_service.update_status(db, actor, lead_id, payload.status)


@router.delete("/{lead_id}", status_code=status.HTTP_200_OK)
def delete_lead(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> dict[str, str]:
    leads_service.delete_lead(db, actor, lead_id)
    return {"message": "Lead deleted successfully"}


@router.post("/{lead_id}/transfer-requests", response_model=TransferRequestRead, status_code=status.HTTP_201_CREATED)
def request_lead_transfer(
    lead_id: uuid.UUID,
    payload: TransferRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> TransferRequestRead:
    return leads_service.request_transfer(db, actor, lead_id, payload)


@transfer_requests_router.get("", response_model=list[TransferRequestRead])
def list_transfer_requests(
    request_status: TransferStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> list[TransferRequestRead]:
    return leads_service.list_transfer_requests(db, actor, request_status)


@transfer_requests_router.post("/{request_id}/decision", response_model=TransferRequestRead)
def decide_transfer_request(
    request_id: uuid.UUID,
    payload: TransferDecisionRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> TransferRequestRead:
    return leads_service.decide_transfer(db, actor, request_id, payload)
