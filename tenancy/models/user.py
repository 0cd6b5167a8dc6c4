"""User ORM model: the local projection of the identity/profile service."""

from enum import Enum

from sqlalchemy import Boolean, Index, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from tenancy.models import Base, BaseModel


class UserRole(str, Enum):
    """Marketplace role of a user."""

    TENANT = "tenant"
    LANDLORD = "landlord"


class User(Base, BaseModel):
    """
    A marketplace participant.

    Only the fields the tenancy subsystem gates on are kept here: the role
    decides which operations a user may perform, and is_active lets the
    profile service retire an account without deleting its history.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name used in notification messages",
    )
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role"),
        nullable=False,
        comment="tenant or landlord",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Inactive users cannot perform any operation",
    )

    __table_args__ = (Index("idx_user_role_active", "role", "is_active"),)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name={self.name!r}, role={self.role})>"


__all__ = ["User", "UserRole"]
