"""Audit trail for booking, lease and bill transitions."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from tenancy.models.audit_log import AuditLog


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class AuditService:
    """Audit rows are added to the caller's session and commit (or roll back)
    together with the transition they describe."""

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: int | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Record one transition.

        Args:
            entity_type: "booking", "occupancy", "bill" or "time_slot"
            action: What happened, e.g. "approved" or "last_month_deposit"
            actor_id: Acting user; None when the automation runner acted
            changes: Changed fields; enums, decimals and dates are stored as strings
        """
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            changes=_jsonable(changes) if changes is not None else None,
        )
        db.add(entry)
        return entry

    @staticmethod
    def history(db: Session, entity_type: str, entity_id: int) -> list[AuditLog]:
        """All audit rows of one entity, oldest first."""
        return list(
            db.execute(
                select(AuditLog)
                .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
                .order_by(AuditLog.id)
            )
            .scalars()
            .all()
        )


__all__ = ["AuditService"]
