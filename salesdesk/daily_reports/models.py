from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salesdesk.core.database import Base
from salesdesk.customers.models import Customer
from salesdesk.users.models import User


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


daily_report_payment_customers = Table(
    "daily_report_payment_customers",
    Base.metadata,
    Column("daily_report_id", Uuid(as_uuid=True), ForeignKey("daily_reports.id", ondelete="CASCADE"), primary_key=True),
    Column("customer_id", Uuid(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), primary_key=True),
)


class DailyReport(Base):
    __tablename__ = "daily_reports"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    call_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    avg_talk_time: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    employee: Mapped[User] = relationship("salesdesk.users.models.User")
    payment_received_from: Mapped[list[Customer]] = relationship(
        "salesdesk.customers.models.Customer",
        secondary=daily_report_payment_customers,
    )

    __table_args__ = (Index("ix_daily_reports_employee_created", "employee_id", "created_at"),)
