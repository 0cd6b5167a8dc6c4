"""Pytest configuration: in-memory database sessions and model factories."""

import os

# Set test database URL BEFORE any imports from tenancy
# This keeps the module-level engine off the developer's database file
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("LOCALE", "en_PH")

from datetime import date, datetime, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from tenancy.models import (  # noqa: E402
    Application,
    ApplicationStatus,
    Base,
    Bill,
    BillKind,
    BillStatus,
    Occupancy,
    OccupancyStatus,
    Property,
    PropertyStatus,
    TimeSlot,
    User,
    UserRole,
)
from tenancy.services import create_db_engine  # noqa: E402
from tenancy.services.config import reset_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Re-read settings for every test so monkeypatched env vars apply."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def engine():
    """In-memory SQLite engine with the full schema."""
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Create test database session."""
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """Session factory over a file-backed SQLite database, one session per thread."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


class Factory:
    """Creates committed rows directly, bypassing service validation."""

    def __init__(self, session):
        self.db = session

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, name: str = "Tenant", role: UserRole = UserRole.TENANT, is_active: bool = True):
        return self._save(User(name=name, role=role, is_active=is_active))

    def tenant(self, name: str = "Tenant"):
        return self.user(name, UserRole.TENANT)

    def landlord(self, name: str = "Landlord"):
        return self.user(name, UserRole.LANDLORD)

    def listing(
        self,
        landlord: User,
        rent: Decimal = Decimal("9000"),
        title: str = "Loft 4B",
        status: PropertyStatus = PropertyStatus.AVAILABLE,
    ):
        return self._save(
            Property(landlord_id=landlord.id, title=title, rent_amount=rent, status=status)
        )

    def slot(self, landlord: User, start: datetime, is_booked: bool = False):
        return self._save(
            TimeSlot(
                landlord_id=landlord.id,
                start_time=start,
                end_time=start + timedelta(minutes=90),
                is_booked=is_booked,
            )
        )

    def application(
        self, tenant: User, listing: Property, status: ApplicationStatus = ApplicationStatus.ACCEPTED
    ):
        return self._save(Application(tenant_id=tenant.id, property_id=listing.id, status=status))

    def occupancy(
        self,
        tenant: User,
        listing: Property,
        start_date: date = date(2025, 1, 1),
        contract_end_date: date = date(2025, 7, 1),
        security_deposit: Decimal = Decimal("9000"),
        security_deposit_used: Decimal = Decimal("0"),
        late_fee: Decimal = Decimal("0"),
        status: OccupancyStatus = OccupancyStatus.ACTIVE,
    ):
        listing.status = PropertyStatus.OCCUPIED
        return self._save(
            Occupancy(
                property_id=listing.id,
                tenant_id=tenant.id,
                landlord_id=listing.landlord_id,
                status=status,
                start_date=start_date,
                contract_end_date=contract_end_date,
                security_deposit=security_deposit,
                security_deposit_used=security_deposit_used,
                late_fee=late_fee,
            )
        )

    def bill(
        self,
        occupancy: Occupancy,
        due_date: date,
        rent: Decimal = Decimal("9000"),
        advance: Decimal = Decimal("0"),
        status: BillStatus = BillStatus.PENDING,
        kind: BillKind = BillKind.MONTHLY,
        description: str | None = None,
    ):
        return self._save(
            Bill(
                occupancy_id=occupancy.id,
                tenant_id=occupancy.tenant_id,
                landlord_id=occupancy.landlord_id,
                property_id=occupancy.property_id,
                kind=kind,
                rent_amount=rent,
                advance_amount=advance,
                due_date=due_date,
                status=status,
                description=description,
            )
        )


@pytest.fixture
def factory(db_session):
    return Factory(db_session)
