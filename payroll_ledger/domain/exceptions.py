"""Domain-specific exceptions and validation outcomes"""

import enum
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class EmployeeLookupError(DomainException):
    """Employee directory returned an error or is unavailable"""

    pass


class PersistenceError(DomainException):
    """Ledger state could not be read from or written to the store"""

    pass


class RejectionReason(str, enum.Enum):
    """Why a ledger operation was refused. Refusals never mutate state."""

    INVALID_AMOUNT = "invalid_amount"
    BELOW_MINIMUM_ADVANCE = "below_minimum_advance"
    EXCEEDS_MAX_ADVANCE = "exceeds_max_advance"
    EXCEEDS_OUTSTANDING_LIMIT = "exceeds_outstanding_limit"
    EXCEEDS_WEEKLY_LIMIT = "exceeds_weekly_limit"
    INVALID_REPAYMENT_PERIOD = "invalid_repayment_period"
    ACTIVE_ADVANCE_EXISTS = "active_advance_exists"
    ADVANCE_NOT_FOUND = "advance_not_found"
    ADVANCE_NOT_ACTIVE = "advance_not_active"
    EMPLOYEE_MISMATCH = "employee_mismatch"
    OVERPAYMENT = "overpayment"
    HAS_REPAYMENTS = "has_repayments"
    NOTHING_DUE = "nothing_due"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    WOULD_OVERDRAW = "would_overdraw"
    INVALID_TARGET = "invalid_target"
    INVALID_SETTINGS = "invalid_settings"
    ENTRY_NOT_FOUND = "entry_not_found"
    DELETE_NOT_PERMITTED = "delete_not_permitted"


@dataclass
class LedgerResult(Generic[T]):
    """Outcome of a mutating ledger call.

    ``persisted`` is False when the change was applied in memory but the
    store write failed, so durability is not guaranteed.
    """

    success: bool
    entry: Optional[T] = None
    reason: Optional[RejectionReason] = None
    message: str = ""
    persisted: bool = True

    @classmethod
    def ok(cls, entry: Optional[T] = None, persisted: bool = True) -> "LedgerResult[T]":
        return cls(success=True, entry=entry, persisted=persisted)

    @classmethod
    def rejected(cls, reason: RejectionReason, message: str) -> "LedgerResult[T]":
        return cls(success=False, reason=reason, message=message)


@dataclass
class WeeklyProcessingResult(Generic[T]):
    """Outcome of processing every scheduled repayment for one employee-week"""

    entries: List[T] = field(default_factory=list)
    total_cents: int = 0
    skipped: List[str] = field(default_factory=list)  # advance ids not processed
    persisted: bool = True

    @property
    def processed(self) -> int:
        return len(self.entries)
