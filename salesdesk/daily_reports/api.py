from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor
from salesdesk.core.database import get_db
from salesdesk.daily_reports.schemas import DailyReportCreate, DailyReportRead
from salesdesk.daily_reports.service import daily_reports_service
from salesdesk.security.context import Actor


router = APIRouter(prefix="/api/daily-reports", tags=["daily-reports"])


@router.post("", response_model=DailyReportRead, status_code=status.HTTP_201_CREATED)
def create_daily_report(
    payload: DailyReportCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> DailyReportRead:
    return daily_reports_service.create_report(db, actor, payload)


@router.get("", response_model=list[DailyReportRead])
def list_daily_reports(
    employee_id: uuid.UUID | None = Query(default=None),
    day: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[DailyReportRead]:
    return daily_reports_service.list_reports(db, actor, employee_id=employee_id, day=day)


@router.get("/{report_id}", response_model=DailyReportRead)
def get_daily_report(
    report_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> DailyReportRead:
    return daily_reports_service.get_report(db, actor, report_id)
