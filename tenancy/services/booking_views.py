"""Dashboard projections over bookings and accepted applications.

Pure functions: no session, no clock. "ready_to_book" rows are derived from
accepted applications and are never stored.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

from tenancy.models.booking import BookingStatus

READY_TO_BOOK = "ready_to_book"

_TERMINAL = {BookingStatus.REJECTED, BookingStatus.CANCELLED}


@dataclass(frozen=True)
class BookingRow:
    """One dashboard line: a stored booking or a derived ready_to_book entry."""

    property_id: int
    tenant_id: int
    status: str
    """A BookingStatus value or READY_TO_BOOK."""
    booking_id: int | None = None
    booking_date: datetime | None = None

    @property
    def is_ready(self) -> bool:
        return self.status == READY_TO_BOOK


def _normalized(status: str) -> str:
    if status == READY_TO_BOOK:
        return status
    try:
        return BookingStatus.parse(status).value
    except ValueError:
        return status


def status_weight(row: BookingRow, has_active_elsewhere: bool = False, for_tenant: bool = True) -> int:
    """Rank weight: lower sorts first.

    pending=1, ready_to_book=2 (3 for a tenant who already has a live
    booking elsewhere), approved=4, rejected/cancelled=5, anything else=6.
    """
    status = _normalized(row.status)
    if status == BookingStatus.PENDING.value:
        return 1
    if status == READY_TO_BOOK:
        return 3 if for_tenant and has_active_elsewhere else 2
    if status == BookingStatus.APPROVED.value:
        return 4
    if status in {s.value for s in _TERMINAL}:
        return 5
    return 6


def _dedupe_score(row: BookingRow) -> int:
    status = _normalized(row.status)
    if status in (BookingStatus.PENDING.value, BookingStatus.APPROVED.value):
        return 3
    if status == READY_TO_BOOK:
        return 2
    if status in {s.value for s in _TERMINAL}:
        return 1
    return 0


def dedupe_by_property(rows: Iterable[BookingRow]) -> list[BookingRow]:
    """Keep one row per property, preferring active > ready_to_book > terminal.

    On equal priority the first row seen wins; property order follows first
    appearance.
    """
    best: dict[int, BookingRow] = {}
    for row in rows:
        current = best.get(row.property_id)
        if current is None or _dedupe_score(row) > _dedupe_score(current):
            best[row.property_id] = row
    return list(best.values())


def rank(rows: Sequence[BookingRow], for_tenant: bool = True) -> list[BookingRow]:
    """Sort rows by status weight, then booking date descending (undated last)."""
    active_by_tenant: dict[int, set[int]] = {}
    for row in rows:
        if _normalized(row.status) in (BookingStatus.PENDING.value, BookingStatus.APPROVED.value):
            active_by_tenant.setdefault(row.tenant_id, set()).add(row.property_id)

    def key(row: BookingRow):
        elsewhere = bool(active_by_tenant.get(row.tenant_id, set()) - {row.property_id})
        weight = status_weight(row, has_active_elsewhere=elsewhere, for_tenant=for_tenant)
        stamp = -row.booking_date.timestamp() if row.booking_date is not None else float("inf")
        return weight, stamp

    return sorted(rows, key=key)


def tenant_dashboard(
    bookings: Sequence[BookingRow],
    accepted_property_ids: Iterable[int],
    tenant_id: int,
) -> list[BookingRow]:
    """Build a tenant's ranked, deduplicated list.

    Accepted applications without a live booking for the same property become
    ready_to_book rows; ready rows are listed ahead of bookings (newest first)
    before deduplication.
    """
    live_properties = {
        row.property_id
        for row in bookings
        if _normalized(row.status) in (BookingStatus.PENDING.value, BookingStatus.APPROVED.value)
    }
    ready = [
        BookingRow(property_id=pid, tenant_id=tenant_id, status=READY_TO_BOOK)
        for pid in dict.fromkeys(accepted_property_ids)
        if pid not in live_properties
    ]
    dated = sorted(
        bookings,
        key=lambda r: r.booking_date.timestamp() if r.booking_date is not None else float("-inf"),
        reverse=True,
    )
    return rank(dedupe_by_property([*ready, *dated]), for_tenant=True)


def landlord_dashboard(bookings: Sequence[BookingRow]) -> list[BookingRow]:
    """Rank a landlord's bookings without deduplication."""
    return rank(bookings, for_tenant=False)


__all__ = [
    "READY_TO_BOOK",
    "BookingRow",
    "status_weight",
    "dedupe_by_property",
    "rank",
    "tenant_dashboard",
    "landlord_dashboard",
]
