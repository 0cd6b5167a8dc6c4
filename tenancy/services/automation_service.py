"""Daily automation runner: utility reminders and overdue penalties.

Runs at most once per landlord per civil day. The AutomationRun marker row
is inserted in the same transaction as the run's effects, so its unique
(landlord_id, run_date) constraint both gates parallel workers and
guarantees a failed run leaves no marker behind.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenancy.models.automation_run import AutomationRun
from tenancy.models.bill import Bill, BillStatus
from tenancy.models.occupancy import Occupancy, OccupancyStatus
from tenancy.models.user import User, UserRole
from tenancy.services.audit_service import AuditService
from tenancy.services.auth_service import require_user
from tenancy.services.billing_service import LATE_FEE_MARKER
from tenancy.services.config import get_settings
from tenancy.services.db import unit_of_work
from tenancy.services.errors import AlreadyRunError, TenancyError
from tenancy.services.locale_service import format_amount, format_month_year
from tenancy.services.notification_service import EventType, NotificationService

logger = logging.getLogger(__name__)

REMINDER_DAYS = (1, 2, 3)


@dataclass
class AutomationResult:
    """Outcome of one landlord's run."""

    landlord_id: int
    run_date: date
    ran: bool = False
    skipped_reason: str | None = None
    reminders_sent: int = 0
    penalties_applied: int = 0
    deposit_deducted: Decimal = field(default_factory=lambda: Decimal("0"))

    def summary(self) -> str:
        if not self.ran:
            return f"landlord {self.landlord_id}: skipped ({self.skipped_reason})"
        return (
            f"landlord {self.landlord_id}: {self.reminders_sent} reminders, "
            f"{self.penalties_applied} late fees, {self.deposit_deducted} deducted from deposits"
        )


class AutomationService:
    """Service running the daily batch for landlords."""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.notifications = NotificationService(db_session)

    def run_for_landlord(self, landlord_id: int, now: datetime | None = None) -> AutomationResult:
        """Run today's batch for one landlord.

        Before the configured start hour nothing happens and no marker is
        written, so a later invocation the same day still runs.

        Raises:
            AlreadyRunError: The batch already ran today for this landlord
        """
        now = now or datetime.now()
        today = now.date()
        result = AutomationResult(landlord_id=landlord_id, run_date=today)

        if now.hour < get_settings().automation_start_hour:
            result.skipped_reason = "before start hour"
            logger.debug("Automation for landlord %s skipped: before start hour", landlord_id)
            return result

        with unit_of_work(self.db, "daily_automation"):
            require_user(self.db, landlord_id, UserRole.LANDLORD)
            marker = self._claim(landlord_id, today)
            result.reminders_sent = self._send_utility_reminders(landlord_id, now)
            penalties, deducted = self._apply_overdue_penalties(landlord_id, now)
            result.penalties_applied = penalties
            result.deposit_deducted = deducted

            marker.reminders_sent = result.reminders_sent
            marker.penalties_applied = result.penalties_applied
            marker.deposit_deducted = result.deposit_deducted

        result.ran = True
        logger.info("Daily automation done for %s", result.summary())
        return result

    def run_all(self, now: datetime | None = None) -> list[AutomationResult]:
        """Run the batch for every active landlord; one landlord's failure does not stop the rest."""
        now = now or datetime.now()
        landlord_ids = self.db.execute(
            select(User.id)
            .where(User.role == UserRole.LANDLORD, User.is_active.is_(True))
            .order_by(User.id)
        ).scalars().all()
        # Release the read transaction before per-landlord writes
        self.db.rollback()

        results: list[AutomationResult] = []
        for landlord_id in landlord_ids:
            try:
                results.append(self.run_for_landlord(landlord_id, now))
            except AlreadyRunError:
                logger.info("Automation already ran today for landlord %s", landlord_id)
                results.append(
                    AutomationResult(
                        landlord_id=landlord_id,
                        run_date=now.date(),
                        skipped_reason="already ran today",
                    )
                )
            except TenancyError as e:
                logger.error("Automation failed for landlord %s: %s", landlord_id, e.message)
                results.append(
                    AutomationResult(
                        landlord_id=landlord_id,
                        run_date=now.date(),
                        skipped_reason=f"failed: {e.code}",
                    )
                )
        return results

    def send_utility_reminders(self, landlord_id: int, now: datetime | None = None) -> int:
        """Emit water and electricity reminders outside the daily gate. Idempotent per day."""
        now = now or datetime.now()
        with unit_of_work(self.db, "send_utility_reminders"):
            sent = self._send_utility_reminders(landlord_id, now)
        return sent

    def apply_overdue_penalties(
        self, landlord_id: int, now: datetime | None = None
    ) -> tuple[int, Decimal]:
        """Apply late fees outside the daily gate. Each bill is penalized once."""
        now = now or datetime.now()
        with unit_of_work(self.db, "apply_overdue_penalties"):
            result = self._apply_overdue_penalties(landlord_id, now)
        return result

    # ------------------------------------------------------------------
    # Steps (run inside the caller's transaction)
    # ------------------------------------------------------------------

    def _claim(self, landlord_id: int, today: date) -> AutomationRun:
        marker = AutomationRun(landlord_id=landlord_id, run_date=today)
        try:
            with self.db.begin_nested():
                self.db.add(marker)
                self.db.flush()
        except IntegrityError as e:
            raise AlreadyRunError(
                f"Automation already ran on {today.isoformat()} for landlord {landlord_id}"
            ) from e
        return marker

    def _active_occupancies(self, landlord_id: int) -> list[Occupancy]:
        return list(
            self.db.execute(
                select(Occupancy)
                .where(
                    Occupancy.landlord_id == landlord_id,
                    Occupancy.status == OccupancyStatus.ACTIVE,
                )
                .order_by(Occupancy.id)
            )
            .scalars()
            .all()
        )

    def _send_utility_reminders(self, landlord_id: int, now: datetime) -> int:
        today = now.date()
        if today.day not in REMINDER_DAYS:
            return 0

        # 3, 2, 1 days left on the 1st, 2nd, 3rd
        days_left = REMINDER_DAYS[-1] - today.day + 1
        month_year = format_month_year(today)
        sent = 0
        for occupancy in self._active_occupancies(landlord_id):
            for event in (EventType.WATER_DUE_REMINDER, EventType.ELECTRICITY_DUE_REMINDER):
                if self.notifications.sent_today(occupancy.tenant_id, event, today):
                    continue
                notification = self.notifications.notify(
                    occupancy.tenant_id,
                    event,
                    metadata={"occupancy_id": occupancy.id, "month": today.strftime("%Y-%m")},
                    at=now,
                    month_year=month_year,
                    days_left=days_left,
                )
                if notification is not None:
                    sent += 1
        if sent:
            logger.info("Sent %d utility reminders for landlord %s", sent, landlord_id)
        return sent

    def _apply_overdue_penalties(self, landlord_id: int, now: datetime) -> tuple[int, Decimal]:
        today = now.date()
        overdue = self.db.execute(
            select(Bill)
            .where(
                Bill.landlord_id == landlord_id,
                Bill.status == BillStatus.PENDING,
                Bill.rent_amount > 0,
                Bill.due_date < today,
                or_(Bill.description.is_(None), ~Bill.description.contains(LATE_FEE_MARKER)),
            )
            .order_by(Bill.id)
        ).scalars().all()

        applied = 0
        deducted_total = Decimal("0")
        for bill in overdue:
            occupancy = self.db.execute(
                select(Occupancy)
                .where(Occupancy.id == bill.occupancy_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one()
            fee = Decimal(occupancy.late_fee or 0)
            if fee <= 0:
                continue

            bill.other_bills = Decimal(bill.other_bills or 0) + fee
            marker = f" (Includes {LATE_FEE_MARKER} {format_amount(fee)})"
            bill.description = f"{bill.description or ''}{marker}".strip()

            available = occupancy.available_deposit
            deduct = min(fee, available) if available > 0 else Decimal("0")
            if deduct > 0:
                occupancy.security_deposit_used = Decimal(occupancy.security_deposit_used) + deduct
            applied += 1
            deducted_total += deduct

            AuditService.log(
                self.db,
                "bill",
                bill.id,
                "late_fee",
                changes={"fee": str(fee), "deposit_deducted": str(deduct)},
            )
            self.notifications.notify(
                bill.tenant_id,
                EventType.PAYMENT_LATE_FEE,
                metadata={"bill_id": bill.id, "fee": str(fee)},
                at=now,
                fee=format_amount(fee),
                property_title=bill.listing.title,
                total=format_amount(bill.total),
            )
            if deduct > 0:
                self.notifications.notify(
                    bill.tenant_id,
                    EventType.SECURITY_DEPOSIT_DEDUCTION,
                    metadata={"bill_id": bill.id, "occupancy_id": occupancy.id, "amount": str(deduct)},
                    at=now,
                    amount=format_amount(deduct),
                    remaining=format_amount(occupancy.available_deposit),
                )
            logger.info(
                "Late fee %s applied to bill %s; %s taken from deposit of occupancy %s",
                fee,
                bill.id,
                deduct,
                occupancy.id,
            )

        return applied, deducted_total


__all__ = ["AutomationResult", "AutomationService"]
