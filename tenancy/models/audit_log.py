"""Audit log model for tracking tenancy lifecycle events."""

from typing import Any

from sqlalchemy import JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from tenancy.models import Base, BaseModel


class AuditLog(Base, BaseModel):
    """Audit log entry for one state transition.

    Records who (actor_id) did what (action) to which entity (entity_type,
    entity_id) and an optional snapshot of the changed fields.
    """

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(index=False)
    """Entity type being audited: "booking", "occupancy", "bill", ..."""

    entity_id: Mapped[int] = mapped_column(index=False)
    """Primary key of the entity being audited."""

    action: Mapped[str] = mapped_column(index=False)
    """Action performed: "create", "approve", "cancel", ..."""

    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=False)
    """User who performed the action. None for the automation runner."""

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True, index=False)
    """Optional JSON snapshot of changed fields: {"status": "approved"}."""

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity_type={self.entity_type}, entity_id={self.entity_id}, "
            f"action={self.action}, actor_id={self.actor_id}, created_at={self.created_at})>"
        )


__all__ = ["AuditLog"]
