from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.categories import DeductibleCategory
from app.core.records import AssignmentStatus, ExpenseStatus
from app.models.base import Base, TimestampMixin, enum_values


class Expense(Base, TimestampMixin):
    __tablename__ = "expenses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account: Mapped[str] = mapped_column(String(255), primary_key=True)

    sender: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sender_domain: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ExpenseStatus] = mapped_column(
        Enum(ExpenseStatus, name="expense_status_enum", values_callable=enum_values),
        default=ExpenseStatus.PENDING,
        nullable=False,
    )
    invoice_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    invoice_amount_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Classification
    deductible: Mapped[DeductibleCategory | None] = mapped_column(
        Enum(DeductibleCategory, name="deductible_category_enum", values_callable=enum_values),
        nullable=True,
    )
    deductible_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    income_tax_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vat_recoverable: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    confidence: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # Situation and allocation tracking
    situation_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    situation_hash: Mapped[str | None] = mapped_column(String(16), nullable=True)
    income_source_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    allocation_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    assignment_status: Mapped[AssignmentStatus | None] = mapped_column(
        Enum(AssignmentStatus, name="assignment_status_enum", values_callable=enum_values),
        nullable=True,
    )
    assignment_metadata: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_classified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
