"""Viewing booking ORM model with its canonical status vocabulary."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Text, text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenancy.models import Base, BaseModel


class BookingStatus(str, Enum):
    """Stored booking states.

    "ready_to_book" and "rescheduled" are derived views, never stored.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, raw: "str | BookingStatus") -> "BookingStatus":
        """Map any spelling used by callers onto the canonical state.

        Raises:
            ValueError: If the value names no known state
        """
        if isinstance(raw, cls):
            return raw
        value = str(raw).strip().lower()
        return cls(_BOOKING_ALIASES.get(value, value))

    @property
    def is_live(self) -> bool:
        return self in LIVE_BOOKING_STATUSES


_BOOKING_ALIASES = {
    "pending_approval": "pending",
    "accepted": "approved",
    "canceled": "cancelled",
}

LIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.APPROVED})

# Stored enum labels are the member names
_LIVE_SQL = "status IN ('PENDING', 'APPROVED')"


class Booking(Base, BaseModel):
    """A tenant's request to view a property in one of the landlord's slots.

    Two partial unique indexes back the invariants that at most one live
    booking references a slot and that a tenant has at most one live
    booking across all properties.
    """

    __tablename__ = "bookings"

    tenant_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    landlord_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"), nullable=False, index=True
    )
    time_slot_id: Mapped[int] = mapped_column(ForeignKey("time_slots.id"), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    booking_date: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        comment="Appointment start (copied from the slot)",
    )

    time_slot: Mapped["TimeSlot"] = relationship("TimeSlot")  # noqa: F821
    listing: Mapped["Property"] = relationship("Property")  # noqa: F821

    __table_args__ = (
        Index(
            "uq_booking_live_slot",
            "time_slot_id",
            unique=True,
            sqlite_where=text(_LIVE_SQL),
            postgresql_where=text(_LIVE_SQL),
        ),
        Index(
            "uq_booking_live_tenant",
            "tenant_id",
            unique=True,
            sqlite_where=text(_LIVE_SQL),
            postgresql_where=text(_LIVE_SQL),
        ),
        Index("idx_booking_property_status", "property_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, tenant_id={self.tenant_id}, "
            f"property_id={self.property_id}, status={self.status})>"
        )


__all__ = ["Booking", "BookingStatus", "LIVE_BOOKING_STATUSES"]
