"""Domain models - pure Python dataclasses representing ledger entities"""

import enum
from dataclasses import dataclass
from datetime import date
from typing import Optional


class AdvanceType(str, enum.Enum):
    """Kind of advance ledger entry"""

    ADVANCE = "ADVANCE"
    REPAYMENT = "REPAYMENT"
    ADJUSTMENT = "ADJUSTMENT"


class AdvanceStatus(str, enum.Enum):
    """Lifecycle status of an advance"""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    DEFAULTED = "DEFAULTED"
    FORGIVEN = "FORGIVEN"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, enum.Enum):
    """How a repayment was collected"""

    PAYROLL_DEDUCTION = "PAYROLL_DEDUCTION"
    CASH = "CASH"
    CHECK = "CHECK"
    OTHER = "OTHER"


class EscrowType(str, enum.Enum):
    """Direction of an escrow entry"""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


@dataclass(frozen=True)
class Employee:
    """Identifier and display name snapshot supplied by the employee directory"""

    id: int
    name: str


@dataclass
class AdvanceSettings:
    """Per-employee advance policy"""

    max_advance_cents: int
    weekly_repayment_limit_cents: int
    max_repayment_weeks: int
    allow_multiple_advances: bool = False
    last_modified: Optional[date] = None


@dataclass
class AdvanceEntry:
    """Advance, repayment or adjustment recorded against an employee.

    Amounts are stored as magnitudes; ``signed_effect`` gives the direction.
    ``balance_cents`` is a running balance filled on read and never persisted.
    """

    id: str
    advance_id: str
    employee_id: int
    employee_name: str
    date: date
    week_start: date
    type: AdvanceType
    amount_cents: int
    status: AdvanceStatus = AdvanceStatus.ACTIVE
    notes: str = ""

    # Advances
    weeks_to_repay: Optional[int] = None
    weekly_repayment_cents: Optional[int] = None
    first_repayment_date: Optional[date] = None
    last_repayment_date: Optional[date] = None  # final scheduled installment
    last_payment_date: Optional[date] = None  # most recent repayment received
    approved_by: Optional[str] = None

    # Repayments and adjustments
    parent_advance_id: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = None
    processed_by: Optional[str] = None

    sequence: int = 0  # insertion order, tie-breaker for same-day entries
    balance_cents: Optional[int] = None

    def signed_effect(self) -> int:
        """Effect of this entry on the employee's outstanding advance balance"""
        if self.type == AdvanceType.ADVANCE:
            return self.amount_cents
        return -self.amount_cents


@dataclass
class EscrowEntry:
    """Deposit into or withdrawal from an employee's escrow"""

    id: str
    employee_id: int
    employee_name: str
    date: date
    week_start: date
    type: EscrowType
    amount_cents: int
    notes: str = ""
    sequence: int = 0
    balance_cents: Optional[int] = None

    def signed_effect(self) -> int:
        """Effect of this entry on the escrow balance"""
        if self.type == EscrowType.DEPOSIT:
            return self.amount_cents
        return -self.amount_cents


@dataclass
class Installment:
    """Single payment in an advance repayment schedule"""

    due_date: date
    amount_cents: int
