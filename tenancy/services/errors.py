"""Exception taxonomy for tenancy operations.

Every error carries a stable machine-readable code so UI-tier callers can
branch on it without parsing messages:

- ValidationError: missing or invalid input; nothing was changed
- ConflictError: the request clashes with current state; retry with other input
- NotFoundError: unknown id
- PersistenceError: the backing store failed; the whole operation was rolled back
"""


class TenancyError(Exception):
    """Base exception for tenancy operations."""

    code = "tenancy_error"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class ValidationError(TenancyError):
    """Missing or invalid input."""

    code = "validation_error"


class PermissionDeniedError(ValidationError):
    """Caller has the wrong role or does not own the entity."""

    code = "permission_denied"


class NotFoundError(TenancyError):
    """Entity id does not exist."""

    code = "not_found"


class ConflictError(TenancyError):
    """Request conflicts with the current state."""

    code = "conflict"


class SlotTakenError(ConflictError):
    """The time slot is already reserved by another booking."""

    code = "slot_taken"


class LimitExceededError(ConflictError):
    """Tenant already has a live booking somewhere."""

    code = "limit_exceeded"


class WindowClosedError(ConflictError):
    """Too close to the appointment to cancel or reschedule."""

    code = "window_closed"


class AlreadyRunError(ConflictError):
    """Daily automation already ran for this landlord today."""

    code = "already_run"


class InvalidTransitionError(ConflictError):
    """Entity is not in a state that allows the requested transition."""

    code = "invalid_transition"


class PersistenceError(TenancyError):
    """Backing-store failure; the operation was rolled back."""

    code = "persistence_error"


__all__ = [
    "TenancyError",
    "ValidationError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "SlotTakenError",
    "LimitExceededError",
    "WindowClosedError",
    "AlreadyRunError",
    "InvalidTransitionError",
    "PersistenceError",
]
