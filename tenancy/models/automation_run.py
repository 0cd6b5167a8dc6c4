"""Durable once-per-day marker for the daily automation run."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tenancy.models import Base, BaseModel


class AutomationRun(Base, BaseModel):
    """A landlord's batch for one civil day.

    The (landlord_id, run_date) unique constraint is the run-once gate: the
    row is inserted in the same transaction as the run's effects.
    """

    __tablename__ = "automation_runs"

    landlord_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    run_date: Mapped[date] = mapped_column(Date, nullable=False)
    reminders_sent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    penalties_applied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deposit_deducted: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        UniqueConstraint("landlord_id", "run_date", name="uq_automation_run_landlord_day"),
    )

    def __repr__(self) -> str:
        return f"<AutomationRun(landlord_id={self.landlord_id}, run_date={self.run_date})>"


__all__ = ["AutomationRun"]
