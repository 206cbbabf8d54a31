from __future__ import annotations

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.categories import DeductibleCategory
from app.models.base import Base, enum_values, utcnow


class ClassificationTrigger(str, PyEnum):
    INITIAL = "initial"
    SITUATION_CHANGE = "situation_change"
    MANUAL = "manual"
    FROM_STAGE = "from_stage"
    FORCE = "force"


class ClassificationHistory(Base):
    """One row per classification event. Rows are never updated or deleted."""

    __tablename__ = "classification_history"
    __table_args__ = (
        Index("ix_classification_history_expense", "expense_id", "account"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    expense_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account: Mapped[str] = mapped_column(String(255), nullable=False)
    classified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    situation_hash: Mapped[str | None] = mapped_column(String(16), nullable=True)
    situation_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category: Mapped[DeductibleCategory | None] = mapped_column(
        Enum(DeductibleCategory, name="history_category_enum", values_callable=enum_values),
        nullable=True,
    )
    income_tax_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vat_recoverable: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    income_source_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    allocation_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    trigger: Mapped[ClassificationTrigger] = mapped_column(
        Enum(ClassificationTrigger, name="classification_trigger_enum", values_callable=enum_values),
        nullable=False,
    )
