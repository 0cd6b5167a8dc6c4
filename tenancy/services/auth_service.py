"""Role gating against the identity/profile projection."""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from tenancy.models.user import User, UserRole
from tenancy.services.errors import NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)


def require_user(db: Session, user_id: int, role: UserRole | None = None, lock: bool = False) -> User:
    """Load an active user and check their role.

    Args:
        db: Database session
        user_id: User to resolve
        role: Required role (None accepts any role)
        lock: Take a row lock on the user (SELECT ... FOR UPDATE)

    Returns:
        The User row

    Raises:
        NotFoundError: Unknown or inactive user
        PermissionDeniedError: User has a different role
    """
    stmt = select(User).where(User.id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    user = db.execute(stmt).scalar_one_or_none()

    if user is None or not user.is_active:
        raise NotFoundError(f"User {user_id} not found")

    if role is not None and user.role != role:
        logger.info("User %s denied: requires %s, has %s", user_id, role.value, user.role.value)
        raise PermissionDeniedError(f"Only a {role.value} can do this")

    return user


def require_owner(owner_id: int, actor: User, entity: str) -> None:
    """Raise PermissionDeniedError unless actor owns the entity."""
    if owner_id != actor.id:
        raise PermissionDeniedError(f"{entity} does not belong to user {actor.id}")


__all__ = ["require_user", "require_owner"]
