"""Bill (payment request) ORM model."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenancy.models import Base, BaseModel


class BillKind(str, Enum):
    """Why a bill was issued."""

    MOVE_IN = "move_in"
    """Rent + one month advance + security deposit, due at lease start"""

    MONTHLY = "monthly"
    """Regular monthly rent (includes last-month rent settled from the deposit)"""

    RENEWAL = "renewal"
    """Rent + one month advance, due at the renewal signing date"""

    UTILITY_REMINDER = "utility_reminder"
    """Water/electricity/wifi charges"""

    EMERGENCY = "emergency"
    """Last-month shortfall the deposit could not cover"""


class BillStatus(str, Enum):
    """Payment verification state."""

    PENDING = "pending"
    PENDING_CONFIRMATION = "pending_confirmation"
    PAID = "paid"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


MONETARY_FIELDS = (
    "rent_amount",
    "water_bill",
    "electrical_bill",
    "wifi_bill",
    "other_bills",
    "security_deposit_amount",
    "advance_amount",
)


def _money() -> Mapped[Decimal]:
    return mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))


class Bill(Base, BaseModel):
    """
    An amount owed by a tenant for one purpose.

    The total is always the sum of the monetary columns; late fees are folded
    into other_bills and marked in the description so they apply only once.
    """

    __tablename__ = "bills"

    occupancy_id: Mapped[int] = mapped_column(
        ForeignKey("occupancies.id"), nullable=False, index=True
    )
    tenant_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id"), nullable=False)
    kind: Mapped[BillKind] = mapped_column(SQLEnum(BillKind, name="bill_kind"), nullable=False)

    rent_amount: Mapped[Decimal] = _money()
    water_bill: Mapped[Decimal] = _money()
    electrical_bill: Mapped[Decimal] = _money()
    wifi_bill: Mapped[Decimal] = _money()
    other_bills: Mapped[Decimal] = _money()
    security_deposit_amount: Mapped[Decimal] = _money()
    advance_amount: Mapped[Decimal] = _money()

    # Late-fee markers are appended to landlord-written text
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[BillStatus] = mapped_column(
        SQLEnum(BillStatus, name="bill_status"),
        nullable=False,
        default=BillStatus.PENDING,
    )

    # Payment submission
    proof_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    amount_paid: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    occupancy: Mapped["Occupancy"] = relationship("Occupancy")  # noqa: F821
    listing: Mapped["Property"] = relationship("Property")  # noqa: F821

    __table_args__ = (
        Index("idx_bill_landlord_status_due", "landlord_id", "status", "due_date"),
        Index("idx_bill_occupancy_status", "occupancy_id", "status"),
    )

    @property
    def total(self) -> Decimal:
        return sum((Decimal(getattr(self, name) or 0) for name in MONETARY_FIELDS), Decimal("0"))

    @property
    def is_rent_bearing(self) -> bool:
        return Decimal(self.rent_amount or 0) > 0

    def __repr__(self) -> str:
        return (
            f"<Bill(id={self.id}, occupancy_id={self.occupancy_id}, kind={self.kind}, "
            f"status={self.status}, due_date={self.due_date}, total={self.total})>"
        )


__all__ = ["Bill", "BillKind", "BillStatus", "MONETARY_FIELDS"]
