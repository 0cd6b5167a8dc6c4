"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from tenancy.models.user import User, UserRole  # noqa: E402
from tenancy.models.property import Property, PropertyStatus  # noqa: E402
from tenancy.models.application import Application, ApplicationStatus  # noqa: E402
from tenancy.models.time_slot import SLOT_SHAPES, SlotShape, TimeSlot  # noqa: E402
from tenancy.models.booking import LIVE_BOOKING_STATUSES, Booking, BookingStatus  # noqa: E402
from tenancy.models.occupancy import Occupancy, OccupancyStatus, RenewalStatus  # noqa: E402
from tenancy.models.bill import Bill, BillKind, BillStatus  # noqa: E402
from tenancy.models.tenant_balance import TenantBalance  # noqa: E402
from tenancy.models.notification import Notification  # noqa: E402
from tenancy.models.automation_run import AutomationRun  # noqa: E402
from tenancy.models.audit_log import AuditLog  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "UserRole",
    "Property",
    "PropertyStatus",
    "Application",
    "ApplicationStatus",
    "SLOT_SHAPES",
    "SlotShape",
    "TimeSlot",
    "LIVE_BOOKING_STATUSES",
    "Booking",
    "BookingStatus",
    "Occupancy",
    "OccupancyStatus",
    "RenewalStatus",
    "Bill",
    "BillKind",
    "BillStatus",
    "TenantBalance",
    "Notification",
    "AutomationRun",
    "AuditLog",
]
