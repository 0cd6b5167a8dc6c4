"""Transaction scope shared by all tenancy services."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tenancy.services.errors import PersistenceError, TenancyError

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(db: Session, operation: str) -> Iterator[Session]:
    """
    Run one service operation as a single transaction.

    Commits on success. On a domain error the session is rolled back and the
    error propagates unchanged; any SQLAlchemy failure is rolled back and
    re-raised as PersistenceError, so no partial state is ever committed.

    Args:
        db: Session the operation works in
        operation: Name used in log lines (e.g., "create_booking")

    Example:
        ```python
        with unit_of_work(self.db, "cancel_bill"):
            bill.status = BillStatus.CANCELLED
        ```
    """
    try:
        yield db
        db.commit()
    except TenancyError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("%s failed in the backing store: %s", operation, e)
        raise PersistenceError(f"{operation} failed: {e}") from e
    except Exception:
        db.rollback()
        raise


__all__ = ["unit_of_work"]
