"""Concurrent races against a file-backed database, one session per thread."""

import threading
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from tenancy.models import (
    AutomationRun,
    Bill,
    BillKind,
    BillStatus,
    Booking,
    BookingStatus,
    Notification,
    Occupancy,
    OccupancyStatus,
    Property,
    PropertyStatus,
    TimeSlot,
    User,
    UserRole,
)
from tenancy.services.automation_service import AutomationResult, AutomationService
from tenancy.services.billing_service import LAST_MONTH_SHORTFALL_DESCRIPTION
from tenancy.services.booking_service import BookingService
from tenancy.services.errors import AlreadyRunError, LimitExceededError, SlotTakenError
from tenancy.services.occupancy_service import OccupancyService

pytestmark = pytest.mark.integration

NOW = datetime(2025, 6, 1, 9, 0)
APPOINTMENT = datetime(2025, 6, 10, 8, 30)


def run_concurrently(session_factory, calls):
    """Run each call(session) in its own thread and session, starting together."""
    barrier = threading.Barrier(len(calls))
    outcomes: list[object] = [None] * len(calls)

    def worker(index, call):
        session = session_factory()
        try:
            barrier.wait()
            outcomes[index] = call(session)
        except Exception as e:  # collected for assertions
            outcomes[index] = e
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(i, c)) for i, c in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


@pytest.fixture
def seeded(file_session_factory):
    session = file_session_factory()
    landlord = User(name="Lara", role=UserRole.LANDLORD)
    session.add(landlord)
    session.flush()
    tenants = [User(name=f"Tenant {i}", role=UserRole.TENANT) for i in range(6)]
    listings = [Property(landlord_id=landlord.id, title=f"Unit {i}", rent_amount=9000) for i in range(2)]
    slots = [
        TimeSlot(
            landlord_id=landlord.id,
            start_time=APPOINTMENT.replace(hour=8 + i),
            end_time=APPOINTMENT.replace(hour=9 + i),
        )
        for i in range(2)
    ]
    session.add_all(tenants + listings + slots)
    session.commit()
    ids = {
        "tenants": [t.id for t in tenants],
        "properties": [p.id for p in listings],
        "slots": [s.id for s in slots],
    }
    session.close()
    return ids


class TestBookingRaces:
    def test_parallel_bookings_for_one_slot(self, file_session_factory, seeded):
        """N tenants race for the same slot; exactly one wins."""
        slot_id = seeded["slots"][0]
        property_id = seeded["properties"][0]
        calls = [
            (lambda s, t=tenant_id: BookingService(s).create_booking(t, property_id, slot_id, now=NOW))
            for tenant_id in seeded["tenants"]
        ]

        outcomes = run_concurrently(file_session_factory, calls)

        winners = [o for o in outcomes if isinstance(o, Booking)]
        losers = [o for o in outcomes if isinstance(o, SlotTakenError)]
        assert len(winners) == 1
        assert len(losers) == len(calls) - 1

        session = file_session_factory()
        try:
            live = session.execute(
                select(func.count(Booking.id)).where(
                    Booking.time_slot_id == slot_id,
                    Booking.status == BookingStatus.PENDING,
                )
            ).scalar_one()
            assert live == 1
            assert session.get(TimeSlot, slot_id).is_booked is True
        finally:
            session.close()

    def test_parallel_bookings_by_one_tenant(self, file_session_factory, seeded):
        """One tenant books two properties at once; only one booking survives."""
        tenant_id = seeded["tenants"][0]
        calls = [
            (lambda s, p=p, sl=sl: BookingService(s).create_booking(tenant_id, p, sl, now=NOW))
            for p, sl in zip(seeded["properties"], seeded["slots"])
        ]

        outcomes = run_concurrently(file_session_factory, calls)

        assert sum(isinstance(o, Booking) for o in outcomes) == 1
        assert sum(isinstance(o, LimitExceededError) for o in outcomes) == 1

        session = file_session_factory()
        try:
            booked = session.execute(
                select(func.count(TimeSlot.id)).where(TimeSlot.is_booked.is_(True))
            ).scalar_one()
            assert booked == 1
        finally:
            session.close()


LEASE_END = date(2025, 7, 1)
LEASE_DAY = datetime(2025, 6, 11, 9, 0)  # 20 days before the contract ends


@pytest.fixture
def overdue_lease(file_session_factory):
    """Lease in its last month with 9000 of deposit left and an overdue rent bill."""
    session = file_session_factory()
    landlord = User(name="Lara", role=UserRole.LANDLORD)
    tenant = User(name="Alice", role=UserRole.TENANT)
    session.add_all([landlord, tenant])
    session.flush()
    listing = Property(
        landlord_id=landlord.id, title="Loft 4B", rent_amount=Decimal("9000"),
        status=PropertyStatus.OCCUPIED,
    )
    session.add(listing)
    session.flush()
    occupancy = Occupancy(
        property_id=listing.id,
        tenant_id=tenant.id,
        landlord_id=landlord.id,
        status=OccupancyStatus.ACTIVE,
        start_date=date(2025, 1, 1),
        contract_end_date=LEASE_END,
        security_deposit=Decimal("10000"),
        security_deposit_used=Decimal("1000"),
        late_fee=Decimal("500"),
    )
    session.add(occupancy)
    session.flush()
    # Due before the last-month lookback window, so it does not block the deposit logic
    overdue = Bill(
        occupancy_id=occupancy.id,
        tenant_id=tenant.id,
        landlord_id=landlord.id,
        property_id=listing.id,
        kind=BillKind.MONTHLY,
        rent_amount=Decimal("9000"),
        due_date=date(2025, 5, 1),
        status=BillStatus.PENDING,
    )
    session.add(overdue)
    session.commit()
    ids = {
        "landlord": landlord.id,
        "tenant": tenant.id,
        "occupancy": occupancy.id,
        "overdue_bill": overdue.id,
    }
    session.close()
    return ids


def _snapshot(bill):
    """Read the fields while the worker session is still open."""
    return bill.description, bill.rent_amount


class TestDepositRaces:
    def test_late_fee_and_last_month_deposit_serialize(self, file_session_factory, overdue_lease):
        """Both depletions touch one deposit; neither may overwrite the other."""
        calls = [
            lambda s: AutomationService(s).run_for_landlord(overdue_lease["landlord"], now=LEASE_DAY),
            lambda s: _snapshot(
                OccupancyService(s).apply_last_month_deposit(
                    overdue_lease["occupancy"], today=LEASE_DAY.date()
                )
            ),
        ]

        run, last_month = run_concurrently(file_session_factory, calls)

        assert isinstance(run, AutomationResult) and run.penalties_applied == 1
        description, rent = last_month
        consumed = Decimal("9000") - rent if description == LAST_MONTH_SHORTFALL_DESCRIPTION else rent
        # 9000 was available: the fee deduction and the last-month draw share it exactly
        assert run.deposit_deducted + consumed == Decimal("9000")

        session = file_session_factory()
        try:
            occupancy = session.get(Occupancy, overdue_lease["occupancy"])
            assert occupancy.security_deposit_used == Decimal("10000")
            assert session.get(Bill, overdue_lease["overdue_bill"]).other_bills == Decimal("500")
        finally:
            session.close()


class TestAutomationGateRace:
    def test_parallel_workers_run_a_landlord_once(self, file_session_factory, overdue_lease):
        landlord_id = overdue_lease["landlord"]
        calls = [
            (lambda s: AutomationService(s).run_for_landlord(landlord_id, now=LEASE_DAY))
            for _ in range(4)
        ]

        outcomes = run_concurrently(file_session_factory, calls)

        assert sum(isinstance(o, AutomationResult) and o.ran for o in outcomes) == 1
        assert sum(isinstance(o, AlreadyRunError) for o in outcomes) == 3

        session = file_session_factory()
        try:
            assert session.execute(select(func.count(AutomationRun.id))).scalar_one() == 1
            assert session.get(Bill, overdue_lease["overdue_bill"]).other_bills == Decimal("500")
            fee_notices = session.execute(
                select(func.count(Notification.id)).where(
                    Notification.recipient_id == overdue_lease["tenant"],
                    Notification.event_type == "payment_late_fee",
                )
            ).scalar_one()
            assert fee_notices == 1
            occupancy = session.get(Occupancy, overdue_lease["occupancy"])
            assert occupancy.security_deposit_used == Decimal("1500")
        finally:
            session.close()
