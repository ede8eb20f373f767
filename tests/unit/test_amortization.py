"""Unit tests for weekly amortization"""

import pytest
from datetime import date, timedelta
from payroll_ledger.domain.amortization import (
    format_cents,
    generate_repayment_schedule,
    weekly_installment_cents,
)


def test_weekly_installment_rounds_up():
    """$1000.00 over 3 weeks cannot split evenly; round up to the cent"""
    assert weekly_installment_cents(100_000, 3) == 33_334


def test_weekly_installment_even_split():
    assert weekly_installment_cents(60_000, 6) == 10_000


def test_weekly_installment_rejects_zero_weeks():
    with pytest.raises(ValueError):
        weekly_installment_cents(10_000, 0)


def test_schedule_last_installment_takes_remainder():
    installments = generate_repayment_schedule(100_000, 3, date(2024, 1, 8))

    assert [i.amount_cents for i in installments] == [33_334, 33_334, 33_332]
    assert sum(i.amount_cents for i in installments) == 100_000


def test_schedule_dates_are_weekly():
    first_due = date(2024, 1, 8)
    installments = generate_repayment_schedule(40_000, 4, first_due)

    assert [i.due_date for i in installments] == [first_due + timedelta(weeks=n) for n in range(4)]


def test_schedule_stops_when_repaid_early():
    """5 cents over 10 weeks is collected in 5 one-cent installments"""
    installments = generate_repayment_schedule(5, 10, date(2024, 1, 8))

    assert len(installments) == 5
    assert all(i.amount_cents == 1 for i in installments)


def test_schedule_zero_amount():
    assert generate_repayment_schedule(0, 4, date(2024, 1, 8)) == []


@pytest.mark.parametrize(
    "cents,expected",
    [(0, "$0.00"), (5, "$0.05"), (123_456, "$1,234.56"), (-2_500, "-$25.00")],
)
def test_format_cents(cents, expected):
    assert format_cents(cents) == expected
