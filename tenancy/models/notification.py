"""In-app notification ORM model (the notification sink's inbox)."""

from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tenancy.models import Base, BaseModel


class Notification(Base, BaseModel):
    """One event delivered to one recipient.

    Push/email/SMS fan-out reads from this table; this subsystem only writes it.
    """

    __tablename__ = "notifications"

    recipient_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    """Event metadata: related entity ids, amounts."""
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_notification_recipient_type_created", "recipient_id", "event_type", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, recipient_id={self.recipient_id}, "
            f"event_type={self.event_type})>"
        )


__all__ = ["Notification"]
