"""Weekly amortization of cash advances"""

from datetime import date
from typing import List
from payroll_ledger.domain.models import Installment
from payroll_ledger.utils.date_utils import add_weeks


def weekly_installment_cents(amount_cents: int, weeks: int) -> int:
    """
    Fixed weekly repayment for an advance, rounded UP to the cent.

    Rounding up guarantees the advance is recovered by the final week; the
    last installment is then smaller than the others.

    Example:
        $1000.00 over 3 weeks -> 33334 cents (not 33333)
    """
    if weeks <= 0:
        raise ValueError("weeks must be positive")
    return -(-amount_cents // weeks)


def generate_repayment_schedule(
    amount_cents: int,
    weeks: int,
    first_due: date,
) -> List[Installment]:
    """
    Generate the weekly repayment schedule for an advance.

    Requirements:
    - Every installment equals the rounded-up weekly amount
    - Final installment is capped at what is left, so the total is exact
    - Installments are one week apart starting at ``first_due``

    Example:
        $1000.00 over 3 weeks -> [$333.34, $333.34, $333.32]
    """
    if amount_cents <= 0:
        return []

    weekly = weekly_installment_cents(amount_cents, weeks)
    remaining = amount_cents
    installments = []
    for i in range(weeks):
        if remaining <= 0:
            break
        amount = min(weekly, remaining)
        installments.append(Installment(due_date=add_weeks(first_due, i), amount_cents=amount))
        remaining -= amount

    return installments


def format_cents(amount_cents: int) -> str:
    """Render cents as a dollar string, e.g. 123456 -> '$1,234.56'"""
    sign = "-" if amount_cents < 0 else ""
    dollars, cents = divmod(abs(amount_cents), 100)
    return f"{sign}${dollars:,}.{cents:02d}"
