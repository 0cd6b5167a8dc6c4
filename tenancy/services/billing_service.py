"""Bill issuer: billing records and their payment-verification state machine.

State machine:
    pending -> pending_confirmation -> paid
    pending_confirmation -> pending   (proof rejected, tenant resubmits)
    pending -> cancelled              (landlord, terminal)
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from tenancy.models.bill import MONETARY_FIELDS, Bill, BillKind, BillStatus
from tenancy.models.occupancy import Occupancy
from tenancy.models.tenant_balance import TenantBalance
from tenancy.models.user import UserRole
from tenancy.services.audit_service import AuditService
from tenancy.services.auth_service import require_owner, require_user
from tenancy.services.db import unit_of_work
from tenancy.services.errors import InvalidTransitionError, NotFoundError, ValidationError
from tenancy.services.locale_service import format_amount
from tenancy.services.notification_service import EventType, NotificationService

logger = logging.getLogger(__name__)

# Description markers; automation matches on these, so they are not localized
LAST_MONTH_PAID_DESCRIPTION = "Last Month Rent (Paid via Security Deposit)"
LAST_MONTH_SHORTFALL_DESCRIPTION = "Emergency: Last Month Rent Shortfall"
LATE_FEE_MARKER = "Late Fee:"

OPEN_BILL_STATUSES = (BillStatus.PENDING, BillStatus.PENDING_CONFIRMATION)


class BillingService:
    """Service for bills and tenant balances."""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.notifications = NotificationService(db_session)

    def issue_bill(
        self,
        occupancy: Occupancy,
        kind: BillKind,
        due_date: date,
        description: str | None = None,
        status: BillStatus = BillStatus.PENDING,
        paid_at: datetime | None = None,
        actor_id: int | None = None,
        **amounts: Decimal,
    ) -> Bill:
        """Create a bill for an occupancy inside the caller's transaction.

        Args:
            occupancy: Lease the bill belongs to
            kind: Trigger that issued the bill
            due_date: Civil due date
            description: Free text; carries the last-month and late-fee markers
            status: Initial status (PAID only for deposit-settled rent)
            paid_at: Settlement time for bills created already paid
            actor_id: User on whose behalf the bill is issued (None for automation)
            **amounts: Any of the monetary fields; missing ones are 0

        Raises:
            ValidationError: Unknown or negative amount
        """
        for name, value in amounts.items():
            if name not in MONETARY_FIELDS:
                raise ValidationError(f"Unknown bill amount: {name}")
            if Decimal(value) < 0:
                raise ValidationError(f"{name} must not be negative")

        bill = Bill(
            occupancy_id=occupancy.id,
            tenant_id=occupancy.tenant_id,
            landlord_id=occupancy.landlord_id,
            property_id=occupancy.property_id,
            kind=kind,
            due_date=due_date,
            description=description,
            status=status,
            paid_at=paid_at,
            **{name: Decimal(amounts.get(name, 0)) for name in MONETARY_FIELDS},
        )
        if status == BillStatus.PAID:
            bill.amount_paid = bill.total
        self.db.add(bill)
        self.db.flush()

        AuditService.log(
            self.db,
            "bill",
            bill.id,
            "create",
            actor_id=actor_id,
            changes={"kind": kind.value, "total": str(bill.total), "status": status.value},
        )
        logger.info(
            "Issued %s bill %s for occupancy %s: %s due %s (%s)",
            kind.value,
            bill.id,
            occupancy.id,
            bill.total,
            due_date,
            status.value,
        )
        return bill

    def submit_proof(
        self,
        tenant_id: int,
        bill_id: int,
        proof_url: str,
        method: str | None = None,
        amount_paid: Decimal | None = None,
    ) -> Bill:
        """Attach a payment proof to a pending bill.

        amount_paid defaults to the bill total; partial amounts are accepted as given.
        """
        if not proof_url or not proof_url.strip():
            raise ValidationError("A payment proof is required")

        with unit_of_work(self.db, "submit_proof"):
            tenant = require_user(self.db, tenant_id, UserRole.TENANT)
            bill = self.get(bill_id)
            require_owner(bill.tenant_id, tenant, "Bill")
            self._require_status(bill, BillStatus.PENDING, "submit a payment for")

            bill.proof_url = proof_url.strip()
            bill.payment_method = method
            bill.amount_paid = Decimal(amount_paid) if amount_paid is not None else bill.total
            bill.status = BillStatus.PENDING_CONFIRMATION

            AuditService.log(
                self.db,
                "bill",
                bill.id,
                "submit_proof",
                actor_id=tenant_id,
                changes={"amount_paid": str(bill.amount_paid), "method": method},
            )
            self.notifications.notify(
                bill.landlord_id,
                EventType.PAYMENT_SUBMITTED,
                actor_id=tenant_id,
                metadata={"bill_id": bill.id, "amount_paid": str(bill.amount_paid)},
                tenant_name=tenant.name,
                amount=format_amount(bill.amount_paid),
                property_title=bill.listing.title,
            )

        logger.info("Tenant %s submitted proof for bill %s", tenant_id, bill_id)
        return bill

    def verify(
        self, landlord_id: int, bill_id: int, approve: bool, now: datetime | None = None
    ) -> Bill:
        """Approve or reject a submitted payment.

        Approval marks the bill paid and moves the tenant's running balance by
        (amount_paid - total). Rejection clears the proof and returns the bill
        to pending.
        """
        now = now or datetime.now()

        with unit_of_work(self.db, "verify_payment"):
            landlord = require_user(self.db, landlord_id, UserRole.LANDLORD)
            bill = self.get(bill_id)
            require_owner(bill.landlord_id, landlord, "Bill")
            self._require_status(bill, BillStatus.PENDING_CONFIRMATION, "verify")

            if approve:
                total = bill.total
                paid = bill.amount_paid if bill.amount_paid is not None else total
                balance = self._balance_row(bill)
                old_balance = Decimal(balance.amount)
                balance.amount = old_balance + (Decimal(paid) - total)

                bill.status = BillStatus.PAID
                bill.paid_at = now
                AuditService.log(
                    self.db,
                    "bill",
                    bill.id,
                    "approve_payment",
                    actor_id=landlord_id,
                    changes={"balance": [str(old_balance), str(balance.amount)]},
                )
                self.notifications.notify(
                    bill.tenant_id,
                    EventType.PAYMENT_APPROVED,
                    actor_id=landlord_id,
                    metadata={"bill_id": bill.id, "balance": str(balance.amount)},
                    amount=format_amount(paid),
                    property_title=bill.listing.title,
                )
            else:
                bill.proof_url = None
                bill.payment_method = None
                bill.amount_paid = None
                bill.status = BillStatus.PENDING
                AuditService.log(
                    self.db, "bill", bill.id, "reject_payment", actor_id=landlord_id
                )
                self.notifications.notify(
                    bill.tenant_id,
                    EventType.PAYMENT_REJECTED,
                    actor_id=landlord_id,
                    metadata={"bill_id": bill.id},
                    property_title=bill.listing.title,
                )

        logger.info(
            "Landlord %s %s payment for bill %s",
            landlord_id,
            "approved" if approve else "rejected",
            bill_id,
        )
        return bill

    def cancel(self, landlord_id: int, bill_id: int) -> Bill:
        """Cancel a pending bill. Cancelled bills are ignored by due-date derivation."""
        with unit_of_work(self.db, "cancel_bill"):
            landlord = require_user(self.db, landlord_id, UserRole.LANDLORD)
            bill = self.get(bill_id)
            require_owner(bill.landlord_id, landlord, "Bill")
            self._require_status(bill, BillStatus.PENDING, "cancel")

            bill.status = BillStatus.CANCELLED
            AuditService.log(self.db, "bill", bill.id, "cancel", actor_id=landlord_id)
            self.notifications.notify(
                bill.tenant_id,
                EventType.PAYMENT_CANCELLED,
                actor_id=landlord_id,
                metadata={"bill_id": bill.id},
                amount=format_amount(bill.total),
                property_title=bill.listing.title,
            )

        logger.info("Bill %s cancelled by landlord %s", bill_id, landlord_id)
        return bill

    def get(self, bill_id: int) -> Bill:
        bill = self.db.get(Bill, bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        return bill

    def total(self, bill_id: int) -> Decimal:
        return self.get(bill_id).total

    def outstanding_for(self, tenant_id: int) -> Decimal:
        """Sum of the totals of the tenant's bills that are neither paid nor cancelled."""
        bills = self.db.execute(
            select(Bill).where(Bill.tenant_id == tenant_id, Bill.status.in_(OPEN_BILL_STATUSES))
        ).scalars().all()
        return sum((bill.total for bill in bills), Decimal("0"))

    def get_balance(self, tenant_id: int, occupancy_id: int) -> Decimal:
        """Running balance (credit positive) of a tenant for one occupancy."""
        amount = self.db.execute(
            select(TenantBalance.amount).where(
                TenantBalance.tenant_id == tenant_id,
                TenantBalance.occupancy_id == occupancy_id,
            )
        ).scalar_one_or_none()
        return Decimal(amount) if amount is not None else Decimal("0")

    def _balance_row(self, bill: Bill) -> TenantBalance:
        balance = self.db.execute(
            select(TenantBalance)
            .where(
                TenantBalance.tenant_id == bill.tenant_id,
                TenantBalance.occupancy_id == bill.occupancy_id,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if balance is None:
            balance = TenantBalance(
                tenant_id=bill.tenant_id,
                occupancy_id=bill.occupancy_id,
                landlord_id=bill.landlord_id,
                amount=Decimal("0"),
            )
            self.db.add(balance)
        return balance

    @staticmethod
    def _require_status(bill: Bill, status: BillStatus, action: str) -> None:
        if bill.status != status:
            raise InvalidTransitionError(
                f"Cannot {action} bill {bill.id} while it is {bill.status.value}"
            )


__all__ = [
    "BillingService",
    "LAST_MONTH_PAID_DESCRIPTION",
    "LAST_MONTH_SHORTFALL_DESCRIPTION",
    "LATE_FEE_MARKER",
    "OPEN_BILL_STATUSES",
]
