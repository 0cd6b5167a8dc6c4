"""Next-rent-due projection derived from bill history.

Nothing about the billing cycle is stored on the occupancy; the next due date
is recomputed from the bills every time, so the same history always yields
the same answer.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable

from dateutil.relativedelta import relativedelta

from tenancy.models.bill import Bill, BillStatus


class DueKind(str, Enum):
    DUE = "due"
    PROCESSING = "processing"
    PAID_THROUGH_CONTRACT_END = "paid_through_contract_end"


@dataclass(frozen=True)
class NextDue:
    """Projection of the next rent payment of an occupancy."""

    kind: DueKind
    due_date: date | None = None
    """Due date when kind is DUE or PROCESSING."""
    bill_id: int | None = None
    """Open bill the answer came from, if any."""
    months_covered: int = 0
    """Months the last paid bill covered (0 when derived otherwise)."""


def months_covered(rent_amount: Decimal, advance_amount: Decimal) -> int:
    """1 month of rent plus whole months of advance; 0 when there is no rent."""
    rent = Decimal(rent_amount or 0)
    if rent <= 0:
        return 0
    return 1 + int(Decimal(advance_amount or 0) // rent)


def add_months(day: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the end of shorter months."""
    return day + relativedelta(months=months)


def days_until(target: date, today: date) -> int:
    return (target - today).days


def project_next_due(start_date: date, contract_end_date: date, bills: Iterable[Bill]) -> NextDue:
    """Derive the next rent due date of an occupancy.

    1. An open rent-bearing bill wins: its due date, or "processing" while a
       payment proof awaits confirmation.
    2. Otherwise the latest paid rent-bearing bill plus the months it covered.
    3. With no paid bill, rent is due at the start date.
    A projection that reaches the contract end reports the lease as paid
    through contract end.
    """
    rent_bills = [b for b in bills if Decimal(b.rent_amount or 0) > 0]

    open_bills = [
        b for b in rent_bills if b.status not in (BillStatus.PAID, BillStatus.CANCELLED)
    ]
    if open_bills:
        earliest = min(open_bills, key=lambda b: (b.due_date, b.id or 0))
        kind = (
            DueKind.PROCESSING
            if earliest.status == BillStatus.PENDING_CONFIRMATION
            else DueKind.DUE
        )
        return NextDue(kind=kind, due_date=earliest.due_date, bill_id=earliest.id)

    paid = [b for b in rent_bills if b.status == BillStatus.PAID]
    if not paid:
        if start_date >= contract_end_date:
            return NextDue(kind=DueKind.PAID_THROUGH_CONTRACT_END)
        return NextDue(kind=DueKind.DUE, due_date=start_date)

    last = max(paid, key=lambda b: (b.due_date, b.id or 0))
    covered = months_covered(last.rent_amount, last.advance_amount)
    next_due = add_months(last.due_date, covered)
    if next_due >= contract_end_date:
        return NextDue(kind=DueKind.PAID_THROUGH_CONTRACT_END, months_covered=covered)
    return NextDue(kind=DueKind.DUE, due_date=next_due, months_covered=covered)


__all__ = [
    "DueKind",
    "NextDue",
    "add_months",
    "days_until",
    "months_covered",
    "project_next_due",
]
