"""Unit tests for fee status derivation and receipt/invoice numbering."""

from datetime import date
from decimal import Decimal

import pytest

from app.api.v1.fee_transactions.service import format_payment_mode, month_bounds, previous_month
from app.api.v1.fees.accounting import (
    derive_status,
    invoice_no,
    next_receipt_no,
    payment_percentage,
    receipt_prefix,
)
from app.core.enums import StudentFeeStatus
from app.core.exceptions import BusinessRuleError

TODAY = date(2025, 9, 15)


@pytest.mark.parametrize(
    "due, paid, due_date, expected",
    [
        ("2000", "0", None, StudentFeeStatus.pending),
        ("2000", "0", date(2025, 9, 15), StudentFeeStatus.pending),
        ("2000", "0", date(2025, 9, 14), StudentFeeStatus.overdue),
        ("2000", "500", date(2025, 9, 14), StudentFeeStatus.partial),
        ("2000", "2000", date(2025, 9, 14), StudentFeeStatus.paid),
        ("0", "0", None, StudentFeeStatus.paid),
    ],
)
def test_derive_status(due, paid, due_date, expected) -> None:
    assert derive_status(Decimal(due), Decimal(paid), due_date, TODAY) is expected


def test_partial_past_due_can_be_overdue() -> None:
    """With the stricter policy a part-paid fee past its due date is overdue."""
    status = derive_status(Decimal("2000"), Decimal("500"), date(2025, 9, 1), TODAY, overdue_after_partial=True)
    assert status is StudentFeeStatus.overdue


def test_receipt_sequence_per_month() -> None:
    prefix = receipt_prefix(TODAY)
    assert prefix == "RCPT202509"
    assert next_receipt_no(prefix, []) == "RCPT2025090001"
    assert next_receipt_no(prefix, ["RCPT2025090001", "RCPT2025090007", "RCPT2025090003"]) == "RCPT2025090008"


def test_receipt_sequence_ignores_foreign_numbers() -> None:
    existing = ["RCPT2025080042", "RCPT202509ABCD", None]
    assert next_receipt_no("RCPT202509", existing) == "RCPT2025090001"


def test_invoice_number() -> None:
    assert invoice_no(42, TODAY) == "INV2025090042"
    assert invoice_no(12345, TODAY) == "INV20250912345"


def test_payment_percentage() -> None:
    assert payment_percentage(Decimal("2000"), Decimal("500")) == 25.0
    assert payment_percentage(Decimal("3"), Decimal("1")) == 33.33
    assert payment_percentage(Decimal("0"), Decimal("0")) == 100.0


def test_month_bounds() -> None:
    assert month_bounds("2025-12") == (date(2025, 12, 1), date(2026, 1, 1))
    assert previous_month(date(2025, 1, 1)) == date(2024, 12, 1)
    with pytest.raises(BusinessRuleError):
        month_bounds("2025-00")


def test_format_payment_mode() -> None:
    assert format_payment_mode("bank_transfer") == "Bank Transfer"
    assert format_payment_mode("cash") == "Cash"
