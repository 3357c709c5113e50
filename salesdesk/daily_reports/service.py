from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from salesdesk.audit_logs.service import audit_log_service, snapshot
from salesdesk.customers.models import Customer
from salesdesk.daily_reports.models import DailyReport
from salesdesk.daily_reports.schemas import DailyReportCreate, DailyReportRead
from salesdesk.security.context import Actor
from salesdesk.security.scope import deny


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


@dataclass(slots=True)
class DailyReportsService:
    module = "daily_reports"

    def create_report(self, session: Session, actor: Actor, payload: DailyReportCreate) -> DailyReportRead:
        customer_ids = list(dict.fromkeys(payload.payment_received_from_customer_ids))
        customers: list[Customer] = []
        if customer_ids:
            customers = list(session.scalars(select(Customer).where(Customer.id.in_(customer_ids))).all())
            if len(customers) != len(customer_ids):
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="customer not found")

        report = DailyReport(
            employee_id=actor.user_id,
            title=payload.title,
            content=payload.content,
            call_count=payload.call_count,
            avg_talk_time=payload.avg_talk_time,
            payment_received_from=customers,
        )
        session.add(report)
        session.flush()
        audit_log_service.record(session, actor, module=self.module, action="CREATE", entity_id=report.id, new_values=snapshot(report))
        session.commit()
        return self._read(session, report.id)

    def list_reports(
        self,
        session: Session,
        actor: Actor,
        *,
        employee_id: uuid.UUID | None = None,
        day: date | None = None,
    ) -> list[DailyReportRead]:
        stmt = select(DailyReport)
        visible = actor.visible_owner_ids()
        if visible is not None:
            if employee_id is not None and employee_id not in visible:
                return []
            stmt = stmt.where(DailyReport.employee_id.in_(visible))
        if employee_id is not None:
            stmt = stmt.where(DailyReport.employee_id == employee_id)
        if day is not None:
            start, end = day_bounds(day)
            stmt = stmt.where(DailyReport.created_at >= start, DailyReport.created_at < end)

        rows = session.scalars(
            stmt.options(selectinload(DailyReport.employee), selectinload(DailyReport.payment_received_from))
            .order_by(DailyReport.created_at.desc())
        ).all()
        return [DailyReportRead.model_validate(row) for row in rows]

    def get_report(self, session: Session, actor: Actor, report_id: uuid.UUID) -> DailyReportRead:
        report = session.get(DailyReport, report_id)
        if report is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="daily report not found")
        if not actor.can_see_owner(report.employee_id):
            deny("daily_report", "owner", "You do not have access to this report")
        return self._read(session, report.id)

    @staticmethod
    def _read(session: Session, report_id: uuid.UUID) -> DailyReportRead:
        report = session.scalar(
            select(DailyReport)
            .where(DailyReport.id == report_id)
            .options(selectinload(DailyReport.employee), selectinload(DailyReport.payment_received_from))
        )
        return DailyReportRead.model_validate(report)


daily_reports_service = DailyReportsService()
