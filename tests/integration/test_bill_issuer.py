"""Integration tests for the payment-verification state machine and balances."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select

from tenancy.models import BillKind, BillStatus, Notification
from tenancy.services.billing_service import BillingService
from tenancy.services.errors import (
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

pytestmark = pytest.mark.integration


@pytest.fixture
def lease(factory):
    landlord = factory.landlord("Lara")
    tenant = factory.tenant("Alice")
    loft = factory.listing(landlord, rent=Decimal("9000"))
    occupancy = factory.occupancy(tenant, loft)
    return {"landlord": landlord, "tenant": tenant, "occupancy": occupancy}


def events_for(db_session, user_id):
    return db_session.execute(
        select(Notification.event_type).where(Notification.recipient_id == user_id)
    ).scalars().all()


class TestIssueBill:
    def test_total_is_sum_of_fields(self, db_session, lease):
        service = BillingService(db_session)
        bill = service.issue_bill(
            lease["occupancy"],
            BillKind.UTILITY_REMINDER,
            due_date=date(2025, 6, 7),
            water_bill=Decimal("350"),
            electrical_bill=Decimal("1200.50"),
            wifi_bill=Decimal("999"),
        )
        db_session.commit()

        assert service.total(bill.id) == Decimal("2549.50")
        assert bill.is_rent_bearing is False

    def test_unknown_amount_field(self, db_session, lease):
        with pytest.raises(ValidationError):
            BillingService(db_session).issue_bill(
                lease["occupancy"], BillKind.MONTHLY, date(2025, 6, 1), tip=Decimal("5")
            )


class TestPaymentVerification:
    """Tests for submit_proof, verify and cancel."""

    def test_full_payment_cycle(self, db_session, lease, factory):
        bill = factory.bill(lease["occupancy"], due_date=date(2025, 6, 1))
        service = BillingService(db_session)

        service.submit_proof(lease["tenant"].id, bill.id, "https://files/proof.jpg", method="gcash")
        assert bill.status == BillStatus.PENDING_CONFIRMATION
        assert bill.amount_paid == Decimal("9000")
        assert "payment_submitted" in events_for(db_session, lease["landlord"].id)

        paid_at = datetime(2025, 6, 2, 10, 0)
        service.verify(lease["landlord"].id, bill.id, approve=True, now=paid_at)

        assert bill.status == BillStatus.PAID
        assert bill.paid_at == paid_at
        assert service.get_balance(lease["tenant"].id, lease["occupancy"].id) == Decimal("0")
        assert "payment_approved" in events_for(db_session, lease["tenant"].id)

    def test_over_and_under_payment_move_balance(self, db_session, lease, factory):
        service = BillingService(db_session)
        first = factory.bill(lease["occupancy"], due_date=date(2025, 6, 1))
        second = factory.bill(lease["occupancy"], due_date=date(2025, 7, 1))

        service.submit_proof(lease["tenant"].id, first.id, "proof-1", amount_paid=Decimal("9500"))
        service.verify(lease["landlord"].id, first.id, approve=True)
        assert service.get_balance(lease["tenant"].id, lease["occupancy"].id) == Decimal("500")

        service.submit_proof(lease["tenant"].id, second.id, "proof-2", amount_paid=Decimal("8000"))
        service.verify(lease["landlord"].id, second.id, approve=True)
        assert service.get_balance(lease["tenant"].id, lease["occupancy"].id) == Decimal("-500")

    def test_reject_returns_to_pending(self, db_session, lease, factory):
        bill = factory.bill(lease["occupancy"], due_date=date(2025, 6, 1))
        service = BillingService(db_session)
        service.submit_proof(lease["tenant"].id, bill.id, "blurry.jpg")

        service.verify(lease["landlord"].id, bill.id, approve=False)

        assert bill.status == BillStatus.PENDING
        assert bill.proof_url is None
        assert bill.amount_paid is None
        assert "payment_rejected" in events_for(db_session, lease["tenant"].id)
        # Tenant can resubmit
        service.submit_proof(lease["tenant"].id, bill.id, "clear.jpg")
        assert bill.status == BillStatus.PENDING_CONFIRMATION

    def test_verify_requires_submitted_proof(self, db_session, lease, factory):
        bill = factory.bill(lease["occupancy"], due_date=date(2025, 6, 1))
        with pytest.raises(InvalidTransitionError):
            BillingService(db_session).verify(lease["landlord"].id, bill.id, approve=True)

    def test_proof_required(self, db_session, lease, factory):
        bill = factory.bill(lease["occupancy"], due_date=date(2025, 6, 1))
        with pytest.raises(ValidationError):
            BillingService(db_session).submit_proof(lease["tenant"].id, bill.id, "  ")

    def test_only_bill_owner_submits(self, db_session, lease, factory):
        bill = factory.bill(lease["occupancy"], due_date=date(2025, 6, 1))
        with pytest.raises(PermissionDeniedError):
            BillingService(db_session).submit_proof(factory.tenant("Bob").id, bill.id, "proof")

    def test_cancel(self, db_session, lease, factory):
        bill = factory.bill(lease["occupancy"], due_date=date(2025, 6, 1))
        service = BillingService(db_session)

        service.cancel(lease["landlord"].id, bill.id)

        assert bill.status == BillStatus.CANCELLED
        assert "payment_cancelled" in events_for(db_session, lease["tenant"].id)
        with pytest.raises(InvalidTransitionError):
            service.submit_proof(lease["tenant"].id, bill.id, "proof")
        with pytest.raises(InvalidTransitionError):
            service.cancel(lease["landlord"].id, bill.id)

    def test_unknown_bill(self, db_session, lease):
        with pytest.raises(NotFoundError):
            BillingService(db_session).cancel(lease["landlord"].id, 404)


class TestOutstanding:
    def test_outstanding_excludes_paid_and_cancelled(self, db_session, lease, factory):
        occupancy = lease["occupancy"]
        factory.bill(occupancy, due_date=date(2025, 5, 1), status=BillStatus.PAID)
        factory.bill(occupancy, due_date=date(2025, 6, 1), status=BillStatus.CANCELLED)
        factory.bill(occupancy, due_date=date(2025, 6, 1))
        factory.bill(occupancy, due_date=date(2025, 7, 1), status=BillStatus.PENDING_CONFIRMATION)

        assert BillingService(db_session).outstanding_for(lease["tenant"].id) == Decimal("18000")
