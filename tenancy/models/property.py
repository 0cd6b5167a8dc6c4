"""Property ORM model: rent amount and availability flag owned by the property service."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenancy.models import Base, BaseModel


class PropertyStatus(str, Enum):
    """Listing availability."""

    AVAILABLE = "available"
    OCCUPIED = "occupied"


class Property(Base, BaseModel):
    """A rentable listing.

    rent_amount is the current monthly price; it seeds the security deposit
    and every rent-bearing bill issued by this subsystem.
    """

    __tablename__ = "properties"

    landlord_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    rent_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Monthly rent",
    )
    status: Mapped[PropertyStatus] = mapped_column(
        SQLEnum(PropertyStatus, name="property_status"),
        nullable=False,
        default=PropertyStatus.AVAILABLE,
        index=True,
    )

    landlord: Mapped["User"] = relationship("User", foreign_keys=[landlord_id])  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<Property(id={self.id}, title={self.title!r}, "
            f"rent_amount={self.rent_amount}, status={self.status})>"
        )


__all__ = ["Property", "PropertyStatus"]
