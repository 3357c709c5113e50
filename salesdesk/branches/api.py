from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from salesdesk.branches.schemas import BranchCreate, BranchRead, BranchStats, BranchUpdate
from salesdesk.branches.service import branches_service
from salesdesk.core.auth import get_current_actor, require_roles
from salesdesk.core.database import get_db
from salesdesk.security.context import SUPER_ADMIN, Actor


router = APIRouter(prefix="/api/branches", tags=["branches"])


@router.post("", response_model=BranchRead, status_code=status.HTTP_201_CREATED)
def create_branch(
    payload: BranchCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN)),
) -> BranchRead:
    return branches_service.create_branch(db, actor, payload)


@router.get("", response_model=list[BranchRead])
def list_branches(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[BranchRead]:
    return branches_service.list_branches(db, include_inactive=include_inactive)


@router.get("/{branch_id}", response_model=BranchRead)
def get_branch(
    branch_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> BranchRead:
    return branches_service.get_branch(db, branch_id)


@router.get("/{branch_id}/stats", response_model=BranchStats)
def get_branch_stats(
    branch_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> BranchStats:
    return branches_service.get_stats(db, branch_id)


@router.put("/{branch_id}", response_model=BranchRead)
def update_branch(
    branch_id: uuid.UUID,
    payload: BranchUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN)),
) -> BranchRead:
    return branches_service.update_branch(db, actor, branch_id, payload)


@router.delete("/{branch_id}", status_code=status.HTTP_200_OK)
def delete_branch(
    branch_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN)),
) -> dict[str, str]:
    branches_service.delete_branch(db, actor, branch_id)
    return {"message": "Branch deleted successfully"}
