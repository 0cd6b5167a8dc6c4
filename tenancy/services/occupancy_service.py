"""Lease ledger: occupancies, deposit depletion, end and renewal flows."""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.orm import Session

from tenancy.models.bill import Bill, BillKind, BillStatus
from tenancy.models.occupancy import Occupancy, OccupancyStatus, RenewalStatus
from tenancy.models.property import Property, PropertyStatus
from tenancy.models.user import UserRole
from tenancy.services.audit_service import AuditService
from tenancy.services.auth_service import require_owner, require_user
from tenancy.services.billing_service import (
    LAST_MONTH_PAID_DESCRIPTION,
    LAST_MONTH_SHORTFALL_DESCRIPTION,
    BillingService,
)
from tenancy.services.booking_service import complete_viewings
from tenancy.services.config import get_settings
from tenancy.services.db import unit_of_work
from tenancy.services.due_dates import NextDue, add_months, days_until, project_next_due
from tenancy.services.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from tenancy.services.locale_service import format_amount, format_day
from tenancy.services.localizer import t
from tenancy.services.notification_service import EventType, NotificationService

logger = logging.getLogger(__name__)

LIVE_OCCUPANCY_STATUSES = (OccupancyStatus.ACTIVE, OccupancyStatus.PENDING_END)

RENEWAL_SIGNING_DELAY = timedelta(days=3)


def days_until_contract_end(occupancy: Occupancy, today: date) -> int:
    """Whole civil days from today to the contract end (negative once past)."""
    return days_until(occupancy.contract_end_date, today)


def can_request_renewal(occupancy: Occupancy, today: date) -> bool:
    """A renewal may be requested while more than RENEWAL_MIN_DAYS remain and none is pending."""
    return (
        occupancy.status == OccupancyStatus.ACTIVE
        and days_until_contract_end(occupancy, today) > get_settings().renewal_min_days
        and not occupancy.renewal_active
    )


class OccupancyService:
    """Service for leases."""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.billing = BillingService(db_session)
        self.notifications = NotificationService(db_session)

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def create_occupancy(
        self,
        landlord_id: int,
        property_id: int,
        tenant_id: int,
        start_date: date,
        months: int,
        late_fee: Decimal = Decimal("0"),
        wifi_due_day: int | None = None,
    ) -> Occupancy:
        """Assign a tenant to a property and issue the move-in bill.

        The deposit equals the property's current rent. The move-in bill
        (rent + one month advance + deposit) is due on the start date.

        Raises:
            ValidationError: Contract shorter than the minimum, negative late
                fee or wifi due day outside 1..31
            ConflictError: Property is not available
        """
        settings = get_settings()
        if months is None or months < settings.min_contract_months:
            raise ValidationError(
                f"Contract must be at least {settings.min_contract_months} months"
            )
        late_fee = Decimal(late_fee or 0)
        if late_fee < 0:
            raise ValidationError("Late fee must not be negative")
        if wifi_due_day is not None and not 1 <= wifi_due_day <= 31:
            raise ValidationError("Wifi due day must be between 1 and 31")

        with unit_of_work(self.db, "create_occupancy"):
            landlord = require_user(self.db, landlord_id, UserRole.LANDLORD)
            tenant = require_user(self.db, tenant_id, UserRole.TENANT)
            listing = self.db.execute(
                select(Property).where(Property.id == property_id).with_for_update()
            ).scalar_one_or_none()
            if listing is None:
                raise NotFoundError(f"Property {property_id} not found")
            require_owner(listing.landlord_id, landlord, "Property")
            if listing.status != PropertyStatus.AVAILABLE:
                raise ConflictError(f"Property {property_id} is not available")

            rent = Decimal(listing.rent_amount)
            occupancy = Occupancy(
                property_id=property_id,
                tenant_id=tenant.id,
                landlord_id=landlord_id,
                status=OccupancyStatus.ACTIVE,
                start_date=start_date,
                contract_end_date=add_months(start_date, months),
                security_deposit=rent,
                security_deposit_used=Decimal("0"),
                late_fee=late_fee,
                wifi_due_day=wifi_due_day,
                renewal_requested=False,
                renewal_status=RenewalStatus.NONE,
            )
            self.db.add(occupancy)
            listing.status = PropertyStatus.OCCUPIED
            self.db.flush()

            move_in = self.billing.issue_bill(
                occupancy,
                BillKind.MOVE_IN,
                due_date=start_date,
                description=t("bills.move_in"),
                actor_id=landlord_id,
                rent_amount=rent,
                advance_amount=rent,
                security_deposit_amount=rent,
            )
            AuditService.log(
                self.db,
                "occupancy",
                occupancy.id,
                "create",
                actor_id=landlord_id,
                changes={
                    "months": months,
                    "contract_end_date": occupancy.contract_end_date.isoformat(),
                    "move_in_bill": move_in.id,
                },
            )
            self.notifications.notify(
                tenant.id,
                EventType.OCCUPANCY_ASSIGNED,
                actor_id=landlord_id,
                metadata={"occupancy_id": occupancy.id, "bill_id": move_in.id},
                property_title=listing.title,
                start_date=format_day(start_date),
                end_date=format_day(occupancy.contract_end_date),
                amount=format_amount(move_in.total),
            )

        logger.info(
            "Occupancy %s created: tenant %s in property %s until %s",
            occupancy.id,
            tenant_id,
            property_id,
            occupancy.contract_end_date,
        )
        return occupancy

    # ------------------------------------------------------------------
    # Billing cycle
    # ------------------------------------------------------------------

    def derive_next_due_date(self, occupancy_id: int) -> NextDue:
        """Project the next rent due date from this lease's bills."""
        occupancy = self.get(occupancy_id)
        bills = self.db.execute(
            select(Bill).where(Bill.occupancy_id == occupancy.id)
        ).scalars().all()
        return project_next_due(occupancy.start_date, occupancy.contract_end_date, bills)

    def apply_last_month_deposit(
        self, occupancy_id: int, today: date | None = None
    ) -> Bill | None:
        """Settle the final month's rent from the security deposit.

        Applies only inside the last-month window with no active renewal and
        no rent bill already due in the lookback window before the contract
        end, so repeated calls create at most one bill. When the deposit
        covers the rent a paid bill is created; otherwise the whole remaining
        deposit is consumed and a pending emergency bill is issued for the
        shortfall.

        Returns:
            The bill created, or None when nothing applied
        """
        today = today or date.today()
        with unit_of_work(self.db, "apply_last_month_deposit"):
            occupancy = self._lock(occupancy_id)
            bill = self._apply_last_month_deposit(occupancy, today)
        return bill

    def _apply_last_month_deposit(self, occupancy: Occupancy, today: date) -> Bill | None:
        settings = get_settings()
        if occupancy.status not in LIVE_OCCUPANCY_STATUSES:
            return None
        remaining = days_until_contract_end(occupancy, today)
        if not 0 < remaining <= settings.last_month_window_days:
            return None
        if occupancy.renewal_active:
            return None

        window_start = occupancy.contract_end_date - timedelta(
            days=settings.last_month_bill_lookback_days
        )
        existing = self.db.execute(
            select(Bill.id).where(
                Bill.occupancy_id == occupancy.id,
                Bill.status != BillStatus.CANCELLED,
                Bill.rent_amount > 0,
                Bill.due_date >= window_start,
                Bill.due_date <= occupancy.contract_end_date,
            )
        ).first()
        if existing is not None:
            return None

        rent = Decimal(occupancy.listing.rent_amount or 0)
        if rent <= 0:
            return None

        available = occupancy.available_deposit
        used_before = Decimal(occupancy.security_deposit_used)
        if available >= rent:
            occupancy.security_deposit_used = used_before + rent
            bill = self.billing.issue_bill(
                occupancy,
                BillKind.MONTHLY,
                due_date=today,
                description=LAST_MONTH_PAID_DESCRIPTION,
                status=BillStatus.PAID,
                paid_at=datetime.combine(today, datetime.min.time()),
                rent_amount=rent,
            )
            event, amount = EventType.LAST_MONTH_DEPOSIT_APPLIED, rent
        else:
            shortfall = rent - available
            occupancy.security_deposit_used = used_before + available
            bill = self.billing.issue_bill(
                occupancy,
                BillKind.EMERGENCY,
                due_date=today,
                description=LAST_MONTH_SHORTFALL_DESCRIPTION,
                rent_amount=shortfall,
            )
            event, amount = EventType.LAST_MONTH_SHORTFALL, shortfall

        AuditService.log(
            self.db,
            "occupancy",
            occupancy.id,
            "last_month_deposit",
            changes={
                "security_deposit_used": [str(used_before), str(occupancy.security_deposit_used)],
                "bill_id": bill.id,
            },
        )
        self.notifications.notify(
            occupancy.tenant_id,
            event,
            metadata={"occupancy_id": occupancy.id, "bill_id": bill.id},
            amount=format_amount(amount),
            property_title=occupancy.listing.title,
        )
        logger.info(
            "Last-month deposit logic for occupancy %s: %s bill %s, deposit used %s",
            occupancy.id,
            bill.kind.value,
            bill.id,
            occupancy.security_deposit_used,
        )
        return bill

    # ------------------------------------------------------------------
    # Ending
    # ------------------------------------------------------------------

    def request_end(
        self, tenant_id: int, occupancy_id: int, end_date: date, reason: str | None = None
    ) -> Occupancy:
        """Tenant asks to move out on end_date."""
        if end_date is None:
            raise ValidationError("An end date is required")

        with unit_of_work(self.db, "request_end"):
            tenant = require_user(self.db, tenant_id, UserRole.TENANT)
            occupancy = self._lock(occupancy_id)
            require_owner(occupancy.tenant_id, tenant, "Occupancy")
            self._require_status(occupancy, (OccupancyStatus.ACTIVE,), "request an end for")

            occupancy.status = OccupancyStatus.PENDING_END
            occupancy.end_requested_date = end_date
            occupancy.end_reason = reason
            AuditService.log(
                self.db,
                "occupancy",
                occupancy.id,
                "request_end",
                actor_id=tenant_id,
                changes={"end_date": end_date.isoformat(), "reason": reason},
            )
            self.notifications.notify(
                occupancy.landlord_id,
                EventType.END_REQUEST,
                actor_id=tenant_id,
                metadata={"occupancy_id": occupancy.id, "end_date": end_date.isoformat()},
                tenant_name=tenant.name,
                property_title=occupancy.listing.title,
                end_date=format_day(end_date),
                reason=reason or "-",
            )

        logger.info("Tenant %s requested end of occupancy %s on %s", tenant_id, occupancy_id, end_date)
        return occupancy

    def approve_end(
        self, landlord_id: int, occupancy_id: int, today: date | None = None
    ) -> Occupancy:
        """Approve a tenant's end request; the property becomes available again."""
        today = today or date.today()
        with unit_of_work(self.db, "approve_end"):
            landlord = require_user(self.db, landlord_id, UserRole.LANDLORD)
            occupancy = self._lock(occupancy_id)
            require_owner(occupancy.landlord_id, landlord, "Occupancy")
            self._require_status(occupancy, (OccupancyStatus.PENDING_END,), "approve the end of")

            end_date = occupancy.end_requested_date or today
            self._end(occupancy, end_date, landlord_id)
            completed = complete_viewings(self.db, occupancy.tenant_id, occupancy.property_id, landlord)
            self.notifications.notify(
                occupancy.tenant_id,
                EventType.END_REQUEST_APPROVED,
                actor_id=landlord_id,
                metadata={"occupancy_id": occupancy.id, "completed_bookings": completed},
                property_title=occupancy.listing.title,
                end_date=format_day(end_date),
            )

        logger.info("Landlord %s approved end of occupancy %s", landlord_id, occupancy_id)
        return occupancy

    def end_with_date(
        self, landlord_id: int, occupancy_id: int, end_date: date, reason: str
    ) -> Occupancy:
        """Landlord ends a lease on a given date."""
        if end_date is None:
            raise ValidationError("An end date is required")
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to end an occupancy")

        with unit_of_work(self.db, "end_with_date"):
            landlord = require_user(self.db, landlord_id, UserRole.LANDLORD)
            occupancy = self._lock(occupancy_id)
            require_owner(occupancy.landlord_id, landlord, "Occupancy")
            self._require_status(occupancy, LIVE_OCCUPANCY_STATUSES, "end")

            occupancy.end_reason = reason.strip()
            self._end(occupancy, end_date, landlord_id)
            self.notifications.notify(
                occupancy.tenant_id,
                EventType.OCCUPANCY_ENDED,
                actor_id=landlord_id,
                metadata={"occupancy_id": occupancy.id, "end_date": end_date.isoformat()},
                property_title=occupancy.listing.title,
                end_date=format_day(end_date),
                reason=occupancy.end_reason,
            )

        logger.info("Landlord %s ended occupancy %s on %s", landlord_id, occupancy_id, end_date)
        return occupancy

    def _end(self, occupancy: Occupancy, end_date: date, actor_id: int) -> None:
        previous = occupancy.status
        occupancy.status = OccupancyStatus.ENDED
        occupancy.end_date = end_date
        occupancy.listing.status = PropertyStatus.AVAILABLE
        AuditService.log(
            self.db,
            "occupancy",
            occupancy.id,
            "end",
            actor_id=actor_id,
            changes={"status": [previous.value, "ended"], "end_date": end_date.isoformat()},
        )

    # ------------------------------------------------------------------
    # Renewal
    # ------------------------------------------------------------------

    def request_renewal(
        self,
        tenant_id: int,
        occupancy_id: int,
        meeting_date: date | None = None,
        today: date | None = None,
    ) -> Occupancy:
        """Tenant asks to renew; allowed while enough of the contract remains."""
        today = today or date.today()
        with unit_of_work(self.db, "request_renewal"):
            tenant = require_user(self.db, tenant_id, UserRole.TENANT)
            occupancy = self._lock(occupancy_id)
            require_owner(occupancy.tenant_id, tenant, "Occupancy")
            if occupancy.renewal_active:
                raise InvalidTransitionError("A renewal request is already pending")
            if not can_request_renewal(occupancy, today):
                raise ConflictError(
                    "Renewal can only be requested more than "
                    f"{get_settings().renewal_min_days} days before the contract ends"
                )

            occupancy.renewal_requested = True
            occupancy.renewal_status = RenewalStatus.PENDING
            occupancy.renewal_meeting_date = meeting_date
            AuditService.log(
                self.db, "occupancy", occupancy.id, "request_renewal", actor_id=tenant_id
            )
            self.notifications.notify(
                occupancy.landlord_id,
                EventType.CONTRACT_RENEWAL_REQUEST,
                actor_id=tenant_id,
                metadata={"occupancy_id": occupancy.id},
                tenant_name=tenant.name,
                property_title=occupancy.listing.title,
                meeting_date=format_day(meeting_date) if meeting_date else "-",
            )

        logger.info("Tenant %s requested renewal of occupancy %s", tenant_id, occupancy_id)
        return occupancy

    def resolve_renewal(
        self,
        landlord_id: int,
        occupancy_id: int,
        approve: bool,
        new_end_date: date | None = None,
        signing_date: date | None = None,
        today: date | None = None,
    ) -> Occupancy:
        """Approve (extend + renewal bill) or reject a pending renewal request.

        Defaults: new end = current end + 1 year, signing = today + 3 days.
        The renewal bill (rent + one month advance) is due on the signing date.
        """
        today = today or date.today()
        with unit_of_work(self.db, "resolve_renewal"):
            landlord = require_user(self.db, landlord_id, UserRole.LANDLORD)
            occupancy = self._lock(occupancy_id)
            require_owner(occupancy.landlord_id, landlord, "Occupancy")
            if occupancy.renewal_status != RenewalStatus.PENDING:
                raise InvalidTransitionError("There is no pending renewal request")

            if approve:
                new_end = new_end_date or occupancy.contract_end_date + relativedelta(years=1)
                if new_end <= occupancy.contract_end_date:
                    raise ValidationError("The new contract end must be after the current one")
                signing = signing_date or today + RENEWAL_SIGNING_DELAY
                previous_end = occupancy.contract_end_date

                occupancy.contract_end_date = new_end
                occupancy.renewal_status = RenewalStatus.NONE
                occupancy.renewal_requested = False
                occupancy.renewal_signing_date = signing

                rent = Decimal(occupancy.listing.rent_amount or 0)
                bill = self.billing.issue_bill(
                    occupancy,
                    BillKind.RENEWAL,
                    due_date=signing,
                    description=t("bills.renewal"),
                    actor_id=landlord_id,
                    rent_amount=rent,
                    advance_amount=rent,
                )
                AuditService.log(
                    self.db,
                    "occupancy",
                    occupancy.id,
                    "approve_renewal",
                    actor_id=landlord_id,
                    changes={
                        "contract_end_date": [previous_end.isoformat(), new_end.isoformat()],
                        "bill_id": bill.id,
                    },
                )
                self.notifications.notify(
                    occupancy.tenant_id,
                    EventType.CONTRACT_RENEWAL_APPROVED,
                    actor_id=landlord_id,
                    metadata={"occupancy_id": occupancy.id, "bill_id": bill.id},
                    property_title=occupancy.listing.title,
                    end_date=format_day(new_end),
                    signing_date=format_day(signing),
                )
            else:
                occupancy.renewal_requested = False
                occupancy.renewal_status = RenewalStatus.REJECTED
                AuditService.log(
                    self.db, "occupancy", occupancy.id, "reject_renewal", actor_id=landlord_id
                )
                self.notifications.notify(
                    occupancy.tenant_id,
                    EventType.CONTRACT_RENEWAL_REJECTED,
                    actor_id=landlord_id,
                    metadata={"occupancy_id": occupancy.id},
                    property_title=occupancy.listing.title,
                )

        logger.info(
            "Landlord %s %s renewal of occupancy %s",
            landlord_id,
            "approved" if approve else "rejected",
            occupancy_id,
        )
        return occupancy

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, occupancy_id: int) -> Occupancy:
        occupancy = self.db.get(Occupancy, occupancy_id)
        if occupancy is None:
            raise NotFoundError(f"Occupancy {occupancy_id} not found")
        return occupancy

    def active_for_landlord(self, landlord_id: int) -> list[Occupancy]:
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

    def _lock(self, occupancy_id: int) -> Occupancy:
        """Load an occupancy under a row lock, refreshing any cached copy."""
        occupancy = self.db.execute(
            select(Occupancy)
            .where(Occupancy.id == occupancy_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if occupancy is None:
            raise NotFoundError(f"Occupancy {occupancy_id} not found")
        return occupancy

    @staticmethod
    def _require_status(
        occupancy: Occupancy, allowed: tuple[OccupancyStatus, ...], action: str
    ) -> None:
        if occupancy.status not in allowed:
            raise InvalidTransitionError(
                f"Cannot {action} occupancy {occupancy.id} while it is {occupancy.status.value}"
            )


__all__ = [
    "LIVE_OCCUPANCY_STATUSES",
    "OccupancyService",
    "can_request_renewal",
    "days_until_contract_end",
]
