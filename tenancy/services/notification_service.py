"""Notification sink: one in-app notification row per event.

Delivery (push/email/SMS) reads the notifications table and is not part of
this package. A failed insert must never undo the state transition that
triggered it, so every row is written inside its own SAVEPOINT.
"""

import logging
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tenancy.models.notification import Notification
from tenancy.services.localizer import t

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Event types emitted by the tenancy subsystem."""

    NEW_BOOKING = "new_booking"
    BOOKING_APPROVED = "booking_approved"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"
    OCCUPANCY_ASSIGNED = "occupancy_assigned"
    OCCUPANCY_ENDED = "occupancy_ended"
    END_REQUEST = "end_request"
    END_REQUEST_APPROVED = "end_request_approved"
    CONTRACT_RENEWAL_REQUEST = "contract_renewal_request"
    CONTRACT_RENEWAL_APPROVED = "contract_renewal_approved"
    CONTRACT_RENEWAL_REJECTED = "contract_renewal_rejected"
    PAYMENT_SUBMITTED = "payment_submitted"
    PAYMENT_APPROVED = "payment_approved"
    PAYMENT_REJECTED = "payment_rejected"
    PAYMENT_CANCELLED = "payment_cancelled"
    PAYMENT_LATE_FEE = "payment_late_fee"
    SECURITY_DEPOSIT_DEDUCTION = "security_deposit_deduction"
    LAST_MONTH_DEPOSIT_APPLIED = "last_month_deposit_applied"
    LAST_MONTH_SHORTFALL = "last_month_shortfall"
    WATER_DUE_REMINDER = "water_due_reminder"
    ELECTRICITY_DUE_REMINDER = "electricity_due_reminder"


class NotificationService:
    """Writes notification rows into the caller's transaction."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def notify(
        self,
        recipient_id: int,
        event_type: EventType,
        actor_id: int | None = None,
        metadata: dict[str, Any] | None = None,
        at: datetime | None = None,
        **message_kwargs: Any,
    ) -> Notification | None:
        """Record one notification.

        The message text comes from the "notifications.<event_type>" entry of
        the message catalogue, formatted with message_kwargs. `at` overrides the
        creation time so scheduled runs file the row under their own civil day.

        Returns:
            The Notification, or None if the sink failed (logged, swallowed)
        """
        message = t(f"notifications.{event_type.value}", **message_kwargs)
        try:
            with self.db.begin_nested():
                notification = Notification(
                    recipient_id=recipient_id,
                    event_type=event_type.value,
                    message=message,
                    actor_id=actor_id,
                    payload=metadata,
                )
                if at is not None:
                    notification.created_at = at
                self.db.add(notification)
                self.db.flush()
        except SQLAlchemyError:
            logger.warning(
                "Notification %s for user %s was not recorded",
                event_type.value,
                recipient_id,
                exc_info=True,
            )
            return None

        logger.debug("Notified user %s: %s", recipient_id, event_type.value)
        return notification

    def sent_today(self, recipient_id: int, event_type: EventType, today: date) -> bool:
        """Check whether this event type was already recorded for the recipient on a civil day."""
        start = datetime.combine(today, time.min)
        end = start + timedelta(days=1)
        count = self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.event_type == event_type.value,
                Notification.created_at >= start,
                Notification.created_at < end,
            )
        ).scalar_one()
        return count > 0

    def list_for(self, recipient_id: int, unread_only: bool = False) -> list[Notification]:
        stmt = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        return list(self.db.execute(stmt.order_by(Notification.created_at.desc())).scalars().all())


__all__ = ["EventType", "NotificationService"]
