from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.branches.models import Branch
from salesdesk.branches.schemas import BranchCounts, BranchCreate, BranchRead, BranchStats, BranchUpdate
from salesdesk.customers.models import Customer
from salesdesk.deals.models import Deal
from salesdesk.leads.models import Lead
from salesdesk.security.context import Actor
from salesdesk.users.models import User

logger = logging.getLogger("salesdesk.branches")

_COUNTED_MODELS: dict[str, Any] = {
    "users": User,
    "leads": Lead,
    "customers": Customer,
    "deals": Deal,
}


@dataclass(slots=True)
class BranchesService:
    module = "branches"

    def create_branch(self, session: Session, actor: Actor, payload: BranchCreate) -> BranchRead:
        self._ensure_unique(session, payload.name, payload.code, exclude_id=None)
        data = payload.model_dump(mode="python")
        if data.get("email") is not None:
            data["email"] = str(data["email"])
        branch = Branch(**data)
        session.add(branch)
        session.flush()
        audit_log_service.record(session, actor, module=self.module, action="CREATE", entity_id=branch.id, new_values=snapshot(branch))
        session.commit()
        session.refresh(branch)
        logger.info("branch.created", extra={"entity_id": str(branch.id)})
        return self._to_read(session, branch)

    def list_branches(self, session: Session, include_inactive: bool = False) -> list[BranchRead]:
        stmt = select(Branch)
        if not include_inactive:
            stmt = stmt.where(Branch.is_active.is_(True))
        branches = session.scalars(stmt.order_by(Branch.name.asc())).all()
        counts = self._counts_by_branch(session, [branch.id for branch in branches])
        return [self._to_read(session, branch, counts.get(branch.id, BranchCounts())) for branch in branches]

    def get_branch(self, session: Session, branch_id: uuid.UUID) -> BranchRead:
        return self._to_read(session, self._get(session, branch_id))

    def get_stats(self, session: Session, branch_id: uuid.UUID) -> BranchStats:
        branch = self._get(session, branch_id)
        counts = self._counts_by_branch(session, [branch.id]).get(branch.id, BranchCounts())
        total_value = session.scalar(
            select(func.coalesce(func.sum(Deal.value), 0)).where(Deal.branch_id == branch.id)
        )
        return BranchStats(**counts.model_dump(), total_deal_value=Decimal(str(total_value)).quantize(Decimal("0.01")))

    def update_branch(self, session: Session, actor: Actor, branch_id: uuid.UUID, payload: BranchUpdate) -> BranchRead:
        branch = self._get(session, branch_id)
        data = payload.model_dump(exclude_unset=True)
        if "name" in data or "code" in data:
            self._ensure_unique(session, data.get("name"), data.get("code"), exclude_id=branch.id)

        before = snapshot(branch)
        for key, value in data.items():
            if value is None and key in {"name", "code", "is_active"}:
                continue
            setattr(branch, key, str(value) if key == "email" and value is not None else value)

        audit_log_service.record(
            session, actor, module=self.module, action="UPDATE", entity_id=branch.id, old_values=before, new_values=snapshot(branch)
        )
        session.commit()
        session.refresh(branch)
        return self._to_read(session, branch)

    def delete_branch(self, session: Session, actor: Actor, branch_id: uuid.UUID) -> None:
        branch = self._get(session, branch_id)
        counts = self._counts_by_branch(session, [branch.id]).get(branch.id, BranchCounts())
        if any(value > 0 for value in counts.model_dump().values()):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot delete branch with linked records. Deactivate instead.",
            )
        before = snapshot(branch)
        session.delete(branch)
        audit_log_service.record(session, actor, module=self.module, action="DELETE", entity_id=branch_id, old_values=before)
        session.commit()
        logger.info("branch.deleted", extra={"entity_id": str(branch_id)})

    @staticmethod
    def _get(session: Session, branch_id: uuid.UUID) -> Branch:
        branch = session.get(Branch, branch_id)
        if branch is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="branch not found")
        return branch

    @staticmethod
    def _ensure_unique(session: Session, name: str | None, code: str | None, *, exclude_id: uuid.UUID | None) -> None:
        conditions = []
        if name:
            conditions.append(Branch.name == name)
        if code:
            conditions.append(Branch.code == code)
        if not conditions:
            return
        stmt = select(Branch.id).where(or_(*conditions))
        if exclude_id is not None:
            stmt = stmt.where(Branch.id != exclude_id)
        if session.scalar(stmt) is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Branch with this name or code already exists")

    @staticmethod
    def _counts_by_branch(session: Session, branch_ids: list[uuid.UUID]) -> dict[uuid.UUID, BranchCounts]:
        if not branch_ids:
            return {}
        counts: dict[uuid.UUID, dict[str, int]] = {branch_id: {} for branch_id in branch_ids}
        for key, model in _COUNTED_MODELS.items():
            rows = session.execute(
                select(model.branch_id, func.count()).where(model.branch_id.in_(branch_ids)).group_by(model.branch_id)
            ).all()
            for branch_id, total in rows:
                counts[branch_id][key] = int(total)
        return {branch_id: BranchCounts(**values) for branch_id, values in counts.items()}

    def _to_read(self, session: Session, branch: Branch, counts: BranchCounts | None = None) -> BranchRead:
        if counts is None:
            counts = self._counts_by_branch(session, [branch.id]).get(branch.id, BranchCounts())
        read = BranchRead.model_validate(branch)
        read.counts = counts
        return read


branches_service = BranchesService()
