"""Pure fee-accounting rules: status derivation and document numbering."""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from app.core.enums import StudentFeeStatus

RECEIPT_PREFIX = "RCPT"
INVOICE_PREFIX = "INV"
SEQUENCE_WIDTH = 4


def derive_status(
    amount_due: Decimal,
    amount_paid: Decimal,
    due_date: Optional[date],
    today: date,
    overdue_after_partial: bool = False,
) -> StudentFeeStatus:
    """
    paid     amount_paid >= amount_due
    partial  0 < amount_paid < amount_due
    overdue  nothing paid and due_date has passed
    pending  otherwise

    With overdue_after_partial, a partial fee past its due date is overdue too.
    """
    past_due = due_date is not None and due_date < today
    if amount_paid >= amount_due:
        return StudentFeeStatus.paid
    if amount_paid > 0:
        if overdue_after_partial and past_due:
            return StudentFeeStatus.overdue
        return StudentFeeStatus.partial
    return StudentFeeStatus.overdue if past_due else StudentFeeStatus.pending


def receipt_prefix(on: date) -> str:
    return f"{RECEIPT_PREFIX}{on:%Y%m}"


def next_receipt_no(prefix: str, existing: Iterable[str]) -> str:
    """Highest numeric suffix among existing receipts with this prefix, plus one."""
    highest = 0
    for receipt_no in existing:
        if not receipt_no or not receipt_no.startswith(prefix):
            continue
        suffix = receipt_no[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:0{SEQUENCE_WIDTH}d}"


def invoice_no(student_id: int, on: date) -> str:
    return f"{INVOICE_PREFIX}{on:%Y%m}{student_id:0{SEQUENCE_WIDTH}d}"


def payment_percentage(amount_due: Decimal, amount_paid: Decimal) -> float:
    if amount_due <= 0:
        return 100.0
    return round(float(amount_paid / amount_due * 100), 2)
