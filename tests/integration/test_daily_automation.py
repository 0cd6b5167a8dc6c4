"""Integration tests for the daily automation runner."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import Text, func, select

from tenancy.models import AutomationRun, Bill, BillStatus, Notification, Occupancy
from tenancy.services.automation_service import AutomationService
from tenancy.services.billing_service import LATE_FEE_MARKER
from tenancy.services.errors import AlreadyRunError

pytestmark = pytest.mark.integration


@pytest.fixture
def lease(factory):
    landlord = factory.landlord("Lara")
    tenant = factory.tenant("Alice")
    loft = factory.listing(landlord, rent=Decimal("9000"))
    occupancy = factory.occupancy(
        tenant,
        loft,
        contract_end_date=date(2025, 12, 1),
        security_deposit=Decimal("9000"),
        security_deposit_used=Decimal("8700"),
        late_fee=Decimal("500"),
    )
    return {"landlord": landlord, "tenant": tenant, "occupancy": occupancy}


def count_events(db_session, user_id, event_type):
    return db_session.execute(
        select(func.count(Notification.id)).where(
            Notification.recipient_id == user_id,
            Notification.event_type == event_type,
        )
    ).scalar_one()


class TestGate:
    def test_before_start_hour_does_nothing(self, db_session, lease):
        result = AutomationService(db_session).run_for_landlord(
            lease["landlord"].id, now=datetime(2025, 6, 2, 7, 59)
        )

        assert result.ran is False
        assert db_session.query(AutomationRun).count() == 0

    def test_second_run_same_day_raises(self, db_session, lease):
        service = AutomationService(db_session)
        service.run_for_landlord(lease["landlord"].id, now=datetime(2025, 6, 2, 8, 0))

        with pytest.raises(AlreadyRunError):
            service.run_for_landlord(lease["landlord"].id, now=datetime(2025, 6, 2, 18, 0))

        marker = db_session.query(AutomationRun).one()
        assert marker.run_date == date(2025, 6, 2)

    def test_next_day_runs_again(self, db_session, lease):
        service = AutomationService(db_session)
        service.run_for_landlord(lease["landlord"].id, now=datetime(2025, 6, 2, 9, 0))
        result = service.run_for_landlord(lease["landlord"].id, now=datetime(2025, 6, 3, 9, 0))

        assert result.ran is True
        assert db_session.query(AutomationRun).count() == 2


class TestReminders:
    def test_reminders_on_first_days(self, db_session, lease):
        result = AutomationService(db_session).run_for_landlord(
            lease["landlord"].id, now=datetime(2025, 6, 1, 9, 0)
        )

        tenant_id = lease["tenant"].id
        assert result.reminders_sent == 2
        assert count_events(db_session, tenant_id, "water_due_reminder") == 1
        assert count_events(db_session, tenant_id, "electricity_due_reminder") == 1
        message = db_session.execute(
            select(Notification.message).where(Notification.event_type == "water_due_reminder")
        ).scalar_one()
        assert "first week of June 2025" in message
        assert "3 days" in message

    def test_no_reminders_after_third(self, db_session, lease):
        result = AutomationService(db_session).run_for_landlord(
            lease["landlord"].id, now=datetime(2025, 6, 4, 9, 0)
        )
        assert result.ran is True
        assert result.reminders_sent == 0

    def test_standalone_reminders_idempotent_per_day(self, db_session, lease):
        service = AutomationService(db_session)
        now = datetime(2025, 6, 2, 9, 0)

        assert service.send_utility_reminders(lease["landlord"].id, now=now) == 2
        assert service.send_utility_reminders(lease["landlord"].id, now=now.replace(hour=15)) == 0
        assert count_events(db_session, lease["tenant"].id, "water_due_reminder") == 1


class TestPenalties:
    """Overdue rent gets the late fee once, with deposit auto-deduction."""

    def test_late_fee_scenario(self, db_session, lease, factory):
        bill = factory.bill(lease["occupancy"], due_date=date(2025, 6, 5))
        service = AutomationService(db_session)

        result = service.run_for_landlord(lease["landlord"].id, now=datetime(2025, 6, 10, 9, 0))

        bill = db_session.get(Bill, bill.id)
        assert result.penalties_applied == 1
        assert result.deposit_deducted == Decimal("300")
        assert bill.total == Decimal("9500")
        assert bill.other_bills == Decimal("500")
        assert bill.description.count(LATE_FEE_MARKER) == 1
        occupancy = db_session.get(Occupancy, lease["occupancy"].id)
        assert occupancy.security_deposit_used == Decimal("9000")
        tenant_id = lease["tenant"].id
        assert count_events(db_session, tenant_id, "payment_late_fee") == 1
        assert count_events(db_session, tenant_id, "security_deposit_deduction") == 1

        # Same day again: gated, and the marker keeps the scan itself from re-applying
        with pytest.raises(AlreadyRunError):
            service.run_for_landlord(lease["landlord"].id, now=datetime(2025, 6, 10, 20, 0))
        assert service.apply_overdue_penalties(
            lease["landlord"].id, now=datetime(2025, 6, 10, 20, 0)
        ) == (0, Decimal("0"))
        assert db_session.get(Bill, bill.id).total == Decimal("9500")
        assert count_events(db_session, tenant_id, "payment_late_fee") == 1

    def test_long_description_keeps_full_text_and_marker(self, db_session, lease, factory):
        assert isinstance(Bill.__table__.c.description.type, Text)
        note = "June rent, see attached breakdown. " * 17
        bill = factory.bill(lease["occupancy"], due_date=date(2025, 6, 5), description=note.strip())

        AutomationService(db_session).run_for_landlord(
            lease["landlord"].id, now=datetime(2025, 6, 10, 9, 0)
        )

        description = db_session.get(Bill, bill.id).description
        assert len(description) > 600
        assert description.startswith(note.strip())
        assert description.count(LATE_FEE_MARKER) == 1

    def test_no_deduction_when_deposit_exhausted(self, db_session, lease, factory):
        occupancy = lease["occupancy"]
        occupancy.security_deposit_used = Decimal("9000")
        db_session.commit()
        factory.bill(occupancy, due_date=date(2025, 6, 5))

        AutomationService(db_session).run_for_landlord(
            lease["landlord"].id, now=datetime(2025, 6, 10, 9, 0)
        )

        assert db_session.get(Occupancy, occupancy.id).security_deposit_used == Decimal("9000")
        assert count_events(db_session, lease["tenant"].id, "payment_late_fee") == 1
        assert count_events(db_session, lease["tenant"].id, "security_deposit_deduction") == 0

    @pytest.mark.parametrize(
        "due,status,rent",
        [
            (date(2025, 6, 10), BillStatus.PENDING, "9000"),
            (date(2025, 6, 5), BillStatus.PAID, "9000"),
            (date(2025, 6, 5), BillStatus.PENDING_CONFIRMATION, "9000"),
            (date(2025, 6, 5), BillStatus.PENDING, "0"),
        ],
    )
    def test_not_penalized(self, db_session, lease, factory, due, status, rent):
        bill = factory.bill(lease["occupancy"], due_date=due, status=status, rent=Decimal(rent))

        result = AutomationService(db_session).run_for_landlord(
            lease["landlord"].id, now=datetime(2025, 6, 10, 9, 0)
        )

        assert result.penalties_applied == 0
        assert db_session.get(Bill, bill.id).other_bills == Decimal("0")

    def test_zero_late_fee_skipped(self, db_session, lease, factory):
        occupancy = lease["occupancy"]
        occupancy.late_fee = Decimal("0")
        db_session.commit()
        factory.bill(occupancy, due_date=date(2025, 6, 5))

        result = AutomationService(db_session).run_for_landlord(
            lease["landlord"].id, now=datetime(2025, 6, 10, 9, 0)
        )
        assert result.penalties_applied == 0


class TestRunAll:
    def test_runs_every_landlord_once(self, db_session, lease, factory):
        other = factory.landlord("Other")
        service = AutomationService(db_session)
        now = datetime(2025, 6, 10, 9, 0)

        first = service.run_all(now)
        second = service.run_all(now)

        assert {r.landlord_id for r in first} == {lease["landlord"].id, other.id}
        assert all(r.ran for r in first)
        assert all(not r.ran and r.skipped_reason == "already ran today" for r in second)
        assert db_session.query(AutomationRun).count() == 2
