"""Rental application ORM model (read-only for this subsystem)."""

from enum import Enum

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from tenancy.models import Base, BaseModel


class ApplicationStatus(str, Enum):
    """Status of a tenant's application for a property."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Application(Base, BaseModel):
    """A tenant's application to rent a property.

    An accepted application with no live booking for the same tenant and
    property is shown to the tenant as "ready to book".
    """

    __tablename__ = "applications"

    tenant_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id"), nullable=False)
    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus, name="application_status"),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("idx_application_tenant_status", "tenant_id", "status"),)

    def __repr__(self) -> str:
        return (
            f"<Application(id={self.id}, tenant_id={self.tenant_id}, "
            f"property_id={self.property_id}, status={self.status})>"
        )


__all__ = ["Application", "ApplicationStatus"]
