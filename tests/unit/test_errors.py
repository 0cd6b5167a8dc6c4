"""Unit tests for the error taxonomy and the transaction scope."""

import pytest
from sqlalchemy.exc import OperationalError

from tenancy.services.db import unit_of_work
from tenancy.services.errors import (
    AlreadyRunError,
    ConflictError,
    LimitExceededError,
    PermissionDeniedError,
    PersistenceError,
    SlotTakenError,
    TenancyError,
    ValidationError,
    WindowClosedError,
)

pytestmark = pytest.mark.unit


class FakeSession:
    def __init__(self):
        self.committed = False
        self.rolled_back = False

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True


class TestTaxonomy:
    def test_conflicts_share_a_base(self):
        for cls in (SlotTakenError, LimitExceededError, WindowClosedError, AlreadyRunError):
            assert issubclass(cls, ConflictError)

    def test_permission_denied_is_validation(self):
        assert issubclass(PermissionDeniedError, ValidationError)

    def test_codes(self):
        assert SlotTakenError("x").code == "slot_taken"
        assert LimitExceededError("x").code == "limit_exceeded"
        assert TenancyError("x", code="custom").code == "custom"
        assert str(WindowClosedError("too late")) == "too late"


class TestUnitOfWork:
    """Tests for commit/rollback behaviour."""

    def test_commits_on_success(self):
        db = FakeSession()
        with unit_of_work(db, "op"):
            pass
        assert db.committed and not db.rolled_back

    def test_domain_error_rolls_back_and_propagates(self):
        db = FakeSession()
        with pytest.raises(SlotTakenError):
            with unit_of_work(db, "op"):
                raise SlotTakenError("taken")
        assert db.rolled_back and not db.committed

    def test_store_failure_becomes_persistence_error(self):
        db = FakeSession()
        with pytest.raises(PersistenceError) as exc_info:
            with unit_of_work(db, "create_booking"):
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        assert db.rolled_back
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert "create_booking" in exc_info.value.message
