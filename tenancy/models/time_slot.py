"""Viewing time slot ORM model and the four fixed daily slot shapes."""

from datetime import date, datetime, time
from enum import Enum
from typing import NamedTuple

from sqlalchemy import Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from tenancy.models import Base, BaseModel


class SlotShape(str, Enum):
    """Named daily viewing windows."""

    AM1 = "AM1"
    AM2 = "AM2"
    PM1 = "PM1"
    PM2 = "PM2"


class ShapeWindow(NamedTuple):
    start: time
    end: time


SLOT_SHAPES: dict[SlotShape, ShapeWindow] = {
    SlotShape.AM1: ShapeWindow(time(8, 30), time(10, 0)),
    SlotShape.AM2: ShapeWindow(time(10, 0), time(11, 30)),
    SlotShape.PM1: ShapeWindow(time(13, 0), time(14, 30)),
    SlotShape.PM2: ShapeWindow(time(14, 30), time(16, 0)),
}


def shape_bounds(day: date, shape: SlotShape) -> tuple[datetime, datetime]:
    """Return the (start, end) local datetimes of a shape on a given day."""
    window = SLOT_SHAPES[SlotShape(shape)]
    return datetime.combine(day, window.start), datetime.combine(day, window.end)


class TimeSlot(Base, BaseModel):
    """A landlord's 90-minute availability window.

    is_booked is flipped only through a conditional update, so at most one
    booking can hold the slot at a time. Start and end are naive local
    datetimes.
    """

    __tablename__ = "time_slots"

    landlord_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        comment="Landlord offering the slot",
    )
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_booked: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Reserved by a live booking",
    )

    __table_args__ = (
        Index("idx_time_slot_landlord_start", "landlord_id", "start_time"),
        Index("idx_time_slot_booked", "is_booked"),
    )

    @property
    def shape(self) -> SlotShape | None:
        """Shape matching this slot's wall-clock window, if any."""
        for name, window in SLOT_SHAPES.items():
            if self.start_time.time() == window.start and self.end_time.time() == window.end:
                return name
        return None

    def __repr__(self) -> str:
        return (
            f"<TimeSlot(id={self.id}, landlord_id={self.landlord_id}, "
            f"start_time={self.start_time}, is_booked={self.is_booked})>"
        )


__all__ = ["SLOT_SHAPES", "ShapeWindow", "SlotShape", "TimeSlot", "shape_bounds"]
