"""Slot ledger: fixed-shape viewing availability and its exclusive reservation."""

import logging
from datetime import date, datetime
from typing import Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from tenancy.models.booking import Booking
from tenancy.models.time_slot import SlotShape, TimeSlot, shape_bounds
from tenancy.models.user import UserRole
from tenancy.services.audit_service import AuditService
from tenancy.services.auth_service import require_owner, require_user
from tenancy.services.db import unit_of_work
from tenancy.services.errors import (
    ConflictError,
    NotFoundError,
    SlotTakenError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class SlotService:
    """Service for landlord viewing slots."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create_slots(
        self,
        landlord_id: int,
        date_shapes: Iterable[tuple[date, SlotShape | str]],
        now: datetime | None = None,
    ) -> list[TimeSlot]:
        """Bulk-create slots from (day, shape) pairs.

        Pairs whose start is not in the future are skipped. Duplicates of
        existing slots are not detected.

        Returns:
            Created slots in start-time order

        Raises:
            ValidationError: Unknown shape, or nothing left to create
        """
        now = now or datetime.now()
        bounds: list[tuple[datetime, datetime]] = []
        skipped = 0
        for day, shape in date_shapes:
            try:
                start, end = shape_bounds(day, SlotShape(shape))
            except ValueError as e:
                raise ValidationError(f"Unknown slot shape: {shape}") from e
            if start <= now:
                skipped += 1
                continue
            bounds.append((start, end))

        if not bounds:
            raise ValidationError("No future slots selected")

        with unit_of_work(self.db, "create_slots"):
            require_user(self.db, landlord_id, UserRole.LANDLORD)
            slots = [
                TimeSlot(landlord_id=landlord_id, start_time=start, end_time=end, is_booked=False)
                for start, end in sorted(bounds)
            ]
            self.db.add_all(slots)
            self.db.flush()

        logger.info(
            "Landlord %s created %d slots (%d past skipped)", landlord_id, len(slots), skipped
        )
        return slots

    def get(self, slot_id: int) -> TimeSlot:
        slot = self.db.get(TimeSlot, slot_id)
        if slot is None:
            raise NotFoundError(f"Time slot {slot_id} not found")
        return slot

    def reserve(self, slot_id: int) -> None:
        """Atomically mark a slot booked.

        A single conditional UPDATE; exactly one of any number of concurrent
        callers sees rowcount 1. Runs in the caller's transaction.

        Raises:
            SlotTakenError: The slot is already booked
        """
        result = self.db.execute(
            update(TimeSlot)
            .where(TimeSlot.id == slot_id, TimeSlot.is_booked.is_(False))
            .values(is_booked=True)
        )
        if result.rowcount != 1:
            raise SlotTakenError(f"Time slot {slot_id} is already booked")

    def release(self, slot_id: int) -> None:
        """Mark a slot free again. Runs in the caller's transaction."""
        self.db.execute(
            update(TimeSlot)
            .where(TimeSlot.id == slot_id)
            .values(is_booked=False)
        )

    def list_available(self, landlord_id: int, now: datetime | None = None) -> list[TimeSlot]:
        """Unbooked future slots of a landlord, earliest first."""
        now = now or datetime.now()
        return list(
            self.db.execute(
                select(TimeSlot)
                .where(
                    TimeSlot.landlord_id == landlord_id,
                    TimeSlot.is_booked.is_(False),
                    TimeSlot.start_time > now,
                )
                .order_by(TimeSlot.start_time)
            )
            .scalars()
            .all()
        )

    def delete_slot(self, landlord_id: int, slot_id: int, now: datetime | None = None) -> None:
        """Delete an unbooked future slot owned by the landlord.

        Raises:
            ConflictError: Slot is booked or already started
        """
        now = now or datetime.now()
        with unit_of_work(self.db, "delete_slot"):
            landlord = require_user(self.db, landlord_id, UserRole.LANDLORD)
            slot = self.get(slot_id)
            require_owner(slot.landlord_id, landlord, "Time slot")
            referenced = self.db.execute(
                select(Booking.id).where(Booking.time_slot_id == slot_id).limit(1)
            ).first()
            if referenced is not None:
                raise ConflictError("A slot that was ever booked cannot be deleted")
            # Conditional delete so a concurrent reservation wins
            result = self.db.execute(
                delete(TimeSlot).where(
                    TimeSlot.id == slot_id,
                    TimeSlot.is_booked.is_(False),
                    TimeSlot.start_time > now,
                )
            )
            if result.rowcount != 1:
                raise ConflictError("Only unbooked future slots can be deleted")
            AuditService.log(self.db, "time_slot", slot_id, "delete", actor_id=landlord_id)

        logger.info("Landlord %s deleted slot %s", landlord_id, slot_id)


__all__ = ["SlotService"]
