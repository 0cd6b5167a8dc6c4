"""Booking coordinator: viewing requests against the slot ledger."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenancy.models.application import Application, ApplicationStatus
from tenancy.models.booking import LIVE_BOOKING_STATUSES, Booking, BookingStatus
from tenancy.models.occupancy import Occupancy, OccupancyStatus
from tenancy.models.property import Property
from tenancy.models.user import User, UserRole
from tenancy.services.audit_service import AuditService
from tenancy.services.auth_service import require_owner, require_user
from tenancy.services.booking_views import (
    BookingRow,
    landlord_dashboard,
    tenant_dashboard,
)
from tenancy.services.config import get_settings
from tenancy.services.db import unit_of_work
from tenancy.services.errors import (
    InvalidTransitionError,
    LimitExceededError,
    NotFoundError,
    SlotTakenError,
    ValidationError,
    WindowClosedError,
)
from tenancy.services.locale_service import format_appointment
from tenancy.services.notification_service import EventType, NotificationService
from tenancy.services.slot_service import SlotService

logger = logging.getLogger(__name__)


class BookingService:
    """Service for viewing bookings.

    Every public method is one transaction: either all of its effects
    (booking row, slot flag, audit row) commit, or none do.
    """

    def __init__(self, db_session: Session):
        self.db = db_session
        self.slots = SlotService(db_session)
        self.notifications = NotificationService(db_session)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_booking(
        self,
        tenant_id: int,
        property_id: int,
        slot_id: int | None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Booking:
        """Request a viewing of a property in one of its landlord's slots.

        Args:
            tenant_id: Requesting tenant
            property_id: Property to view
            slot_id: Chosen time slot
            notes: Optional message to the landlord
            now: Current local time (defaults to datetime.now())

        Returns:
            The pending Booking

        Raises:
            ValidationError: No slot chosen, slot not usable for this property,
                or the tenant already occupies the property
            LimitExceededError: Tenant already has a live booking
            SlotTakenError: Slot reserved by someone else
        """
        if slot_id is None:
            raise ValidationError("Please select a time slot")
        now = now or datetime.now()

        with unit_of_work(self.db, "create_booking"):
            booking = self._create(tenant_id, property_id, slot_id, notes, now)

        logger.info(
            "Booking %s created: tenant %s, property %s, slot %s",
            booking.id,
            tenant_id,
            property_id,
            slot_id,
        )
        return booking

    def approve(self, landlord_id: int, booking_id: int) -> Booking:
        """Approve a pending booking; the slot stays reserved."""
        with unit_of_work(self.db, "approve_booking"):
            booking = self._landlord_booking(landlord_id, booking_id)
            self._transition(booking, {BookingStatus.PENDING}, BookingStatus.APPROVED, landlord_id)
            self.notifications.notify(
                booking.tenant_id,
                EventType.BOOKING_APPROVED,
                actor_id=landlord_id,
                metadata={"booking_id": booking.id, "property_id": booking.property_id},
                property_title=booking.listing.title,
                booking_date=format_appointment(booking.booking_date),
            )

        logger.info("Booking %s approved by landlord %s", booking_id, landlord_id)
        return booking

    def reject(self, landlord_id: int, booking_id: int) -> Booking:
        """Reject a pending or approved booking and reopen its slot."""
        with unit_of_work(self.db, "reject_booking"):
            booking = self._landlord_booking(landlord_id, booking_id)
            self._transition(booking, LIVE_BOOKING_STATUSES, BookingStatus.REJECTED, landlord_id)
            self.slots.release(booking.time_slot_id)
            self.notifications.notify(
                booking.tenant_id,
                EventType.BOOKING_REJECTED,
                actor_id=landlord_id,
                metadata={"booking_id": booking.id, "property_id": booking.property_id},
                property_title=booking.listing.title,
                booking_date=format_appointment(booking.booking_date),
            )

        logger.info("Booking %s rejected by landlord %s", booking_id, landlord_id)
        return booking

    def cancel(self, tenant_id: int, booking_id: int, now: datetime | None = None) -> Booking:
        """Cancel a live booking outside the modification window.

        Raises:
            WindowClosedError: Appointment is too close (or past)
        """
        now = now or datetime.now()
        with unit_of_work(self.db, "cancel_booking"):
            booking = self._cancel(tenant_id, booking_id, now)

        logger.info("Booking %s cancelled by tenant %s", booking_id, tenant_id)
        return booking

    def reschedule(
        self,
        tenant_id: int,
        booking_id: int,
        new_slot_id: int | None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Booking:
        """Move a live booking to another slot of the same property.

        The old booking is cancelled and the new one created in a single
        transaction; the booking being replaced does not count against the
        tenant's limit.
        """
        if new_slot_id is None:
            raise ValidationError("Please select a time slot")
        now = now or datetime.now()

        with unit_of_work(self.db, "reschedule_booking"):
            old = self._cancel(tenant_id, booking_id, now)
            self.db.flush()
            booking = self._create(
                tenant_id,
                old.property_id,
                new_slot_id,
                notes if notes is not None else old.notes,
                now,
                replacing_id=old.id,
            )

        logger.info("Booking %s rescheduled as %s", booking_id, booking.id)
        return booking

    def complete(self, landlord_id: int, booking_id: int) -> Booking:
        """Mark an approved viewing as done; the slot stays consumed."""
        with unit_of_work(self.db, "complete_booking"):
            booking = self._landlord_booking(landlord_id, booking_id)
            self._transition(booking, {BookingStatus.APPROVED}, BookingStatus.COMPLETED, landlord_id)
            self.notifications.notify(
                booking.tenant_id,
                EventType.BOOKING_COMPLETED,
                actor_id=landlord_id,
                metadata={"booking_id": booking.id},
                property_title=booking.listing.title,
            )

        logger.info("Booking %s completed", booking_id)
        return booking

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, booking_id: int) -> Booking:
        booking = self.db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def live_booking_for(self, tenant_id: int) -> Booking | None:
        return self.db.execute(
            select(Booking).where(
                Booking.tenant_id == tenant_id,
                Booking.status.in_(LIVE_BOOKING_STATUSES),
            )
        ).scalar_one_or_none()

    def list_for_tenant(self, tenant_id: int) -> list[BookingRow]:
        """Tenant dashboard: one ranked row per property, including ready_to_book."""
        bookings = self.db.execute(
            select(Booking).where(Booking.tenant_id == tenant_id)
        ).scalars().all()
        accepted = self.db.execute(
            select(Application.property_id)
            .where(
                Application.tenant_id == tenant_id,
                Application.status == ApplicationStatus.ACCEPTED,
            )
            .order_by(Application.created_at.desc())
        ).scalars().all()
        return tenant_dashboard([_row(b) for b in bookings], accepted, tenant_id)

    def list_for_landlord(self, landlord_id: int) -> list[BookingRow]:
        """Landlord dashboard: all bookings on the landlord's properties, ranked."""
        bookings = self.db.execute(
            select(Booking).where(Booking.landlord_id == landlord_id)
        ).scalars().all()
        return landlord_dashboard([_row(b) for b in bookings])

    # ------------------------------------------------------------------
    # Internals (run inside the caller's transaction)
    # ------------------------------------------------------------------

    def _create(
        self,
        tenant_id: int,
        property_id: int,
        slot_id: int,
        notes: str | None,
        now: datetime,
        replacing_id: int | None = None,
    ) -> Booking:
        # Row lock on the tenant serializes concurrent requests by the same tenant
        tenant = require_user(self.db, tenant_id, UserRole.TENANT, lock=True)

        listing = self.db.get(Property, property_id)
        if listing is None:
            raise NotFoundError(f"Property {property_id} not found")

        occupying = self.db.execute(
            select(Occupancy.id).where(
                Occupancy.tenant_id == tenant_id,
                Occupancy.property_id == property_id,
                Occupancy.status.in_([OccupancyStatus.ACTIVE, OccupancyStatus.PENDING_END]),
            )
        ).first()
        if occupying is not None:
            raise ValidationError("You already occupy this property")

        slot = self.slots.get(slot_id)
        if slot.landlord_id != listing.landlord_id:
            raise ValidationError("This time slot is not offered for this property")
        if slot.start_time <= now:
            raise ValidationError("This time slot has already started")

        live = select(func.count(Booking.id)).where(
            Booking.tenant_id == tenant_id,
            Booking.status.in_(LIVE_BOOKING_STATUSES),
        )
        if replacing_id is not None:
            live = live.where(Booking.id != replacing_id)
        if self.db.execute(live).scalar_one() > 0:
            raise LimitExceededError(
                "You already have an active booking. Cancel it or wait for it to finish first."
            )

        self.slots.reserve(slot_id)

        booking = Booking(
            tenant_id=tenant_id,
            landlord_id=listing.landlord_id,
            property_id=property_id,
            time_slot_id=slot_id,
            status=BookingStatus.PENDING,
            notes=notes,
            booking_date=slot.start_time,
        )
        self.db.add(booking)
        try:
            self.db.flush()
        except IntegrityError as e:
            # The partial unique indexes are the last line behind the checks above
            if "time_slot_id" in str(e.orig) or "uq_booking_live_slot" in str(e.orig):
                raise SlotTakenError(f"Time slot {slot_id} is already booked") from e
            raise LimitExceededError("You already have an active booking") from e

        AuditService.log(
            self.db,
            "booking",
            booking.id,
            "create",
            actor_id=tenant_id,
            changes={"slot_id": slot_id, "replacing": replacing_id},
        )
        self.notifications.notify(
            listing.landlord_id,
            EventType.NEW_BOOKING,
            actor_id=tenant_id,
            metadata={"booking_id": booking.id, "property_id": property_id},
            tenant_name=tenant.name,
            property_title=listing.title,
            booking_date=format_appointment(slot.start_time),
        )
        return booking

    def _cancel(self, tenant_id: int, booking_id: int, now: datetime) -> Booking:
        tenant = require_user(self.db, tenant_id, UserRole.TENANT, lock=True)
        booking = self.get(booking_id)
        require_owner(booking.tenant_id, tenant, "Booking")

        if booking.status not in LIVE_BOOKING_STATUSES:
            raise InvalidTransitionError(f"Booking {booking_id} is already {booking.status.value}")

        window = timedelta(hours=get_settings().modification_window_hours)
        if not now < booking.booking_date - window:
            raise WindowClosedError(
                f"Bookings cannot be changed within {window.total_seconds() / 3600:g} hours "
                "of the appointment"
            )

        self._transition(booking, LIVE_BOOKING_STATUSES, BookingStatus.CANCELLED, tenant_id)
        self.slots.release(booking.time_slot_id)
        self.notifications.notify(
            booking.landlord_id,
            EventType.BOOKING_CANCELLED,
            actor_id=tenant_id,
            metadata={"booking_id": booking.id},
            tenant_name=tenant.name,
            property_title=booking.listing.title,
            booking_date=format_appointment(booking.booking_date),
        )
        return booking

    def _landlord_booking(self, landlord_id: int, booking_id: int) -> Booking:
        landlord = require_user(self.db, landlord_id, UserRole.LANDLORD)
        booking = self.get(booking_id)
        require_owner(booking.landlord_id, landlord, "Booking")
        return booking

    def _transition(
        self,
        booking: Booking,
        allowed: set[BookingStatus] | frozenset[BookingStatus],
        target: BookingStatus,
        actor_id: int,
    ) -> None:
        if booking.status not in allowed:
            raise InvalidTransitionError(
                f"Booking {booking.id} cannot move from {booking.status.value} to {target.value}"
            )
        previous = booking.status
        booking.status = target
        AuditService.log(
            self.db,
            "booking",
            booking.id,
            target.value,
            actor_id=actor_id,
            changes={"status": [previous.value, target.value]},
        )


def _row(booking: Booking) -> BookingRow:
    return BookingRow(
        property_id=booking.property_id,
        tenant_id=booking.tenant_id,
        status=booking.status.value,
        booking_id=booking.id,
        booking_date=booking.booking_date,
    )


def complete_viewings(db: Session, tenant_id: int, property_id: int, actor: User) -> int:
    """Mark approved bookings of a tenant for a property completed.

    Used when a lease on that property ends. Runs in the caller's transaction.
    """
    bookings = db.execute(
        select(Booking).where(
            Booking.tenant_id == tenant_id,
            Booking.property_id == property_id,
            Booking.status == BookingStatus.APPROVED,
        )
    ).scalars().all()
    for booking in bookings:
        booking.status = BookingStatus.COMPLETED
        AuditService.log(db, "booking", booking.id, "completed", actor_id=actor.id)
    return len(bookings)


__all__ = ["BookingService", "complete_viewings"]
