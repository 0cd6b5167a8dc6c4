"""Occupancy (lease) ORM model with deposit balance and renewal sub-state."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenancy.models import Base, BaseModel


class OccupancyStatus(str, Enum):
    """Lease lifecycle."""

    ACTIVE = "active"
    PENDING_END = "pending_end"
    ENDED = "ended"


class RenewalStatus(str, Enum):
    """Renewal sub-flow; returns to NONE once an approval is applied."""

    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Occupancy(Base, BaseModel):
    """A tenant renting a property for a contract period.

    The next rent due date is never stored: it is derived from the bill
    history. security_deposit_used only ever grows.
    """

    __tablename__ = "occupancies"

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"), nullable=False, index=True
    )
    tenant_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    status: Mapped[OccupancyStatus] = mapped_column(
        SQLEnum(OccupancyStatus, name="occupancy_status"),
        nullable=False,
        default=OccupancyStatus.ACTIVE,
    )

    # Contract period
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    contract_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(
        Date, nullable=True, comment="Actual end date once ended"
    )
    end_requested_date: Mapped[date | None] = mapped_column(
        Date, nullable=True, comment="Move-out date requested by the tenant"
    )
    end_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Money
    security_deposit: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    security_deposit_used: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    late_fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Penalty added once to each overdue rent bill",
    )
    wifi_due_day: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Renewal sub-flow
    renewal_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    renewal_status: Mapped[RenewalStatus] = mapped_column(
        SQLEnum(RenewalStatus, name="renewal_status"),
        nullable=False,
        default=RenewalStatus.NONE,
    )
    renewal_meeting_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    renewal_signing_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    listing: Mapped["Property"] = relationship("Property")  # noqa: F821
    tenant: Mapped["User"] = relationship("User", foreign_keys=[tenant_id])  # noqa: F821

    __table_args__ = (Index("idx_occupancy_landlord_status", "landlord_id", "status"),)

    @property
    def available_deposit(self) -> Decimal:
        return Decimal(self.security_deposit or 0) - Decimal(self.security_deposit_used or 0)

    @property
    def renewal_active(self) -> bool:
        return self.renewal_requested or self.renewal_status == RenewalStatus.PENDING

    def __repr__(self) -> str:
        return (
            f"<Occupancy(id={self.id}, property_id={self.property_id}, "
            f"tenant_id={self.tenant_id}, status={self.status})>"
        )


__all__ = ["Occupancy", "OccupancyStatus", "RenewalStatus"]
