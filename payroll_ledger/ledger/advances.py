"""Cash advance ledger - advances, repayments, write-downs and weekly scheduling.

Entries are append-only. The only in-place changes are an advance's status,
its last payment date and free-text notes. Balances are always recomputed
from the entries:

    outstanding(advance) = advance.amount - repayments - adjustments

Status machine:
    ACTIVE -> COMPLETED   (repayments/adjustments retire the balance)
    COMPLETED -> ACTIVE   (the retiring credit is deleted)
    ACTIVE -> FORGIVEN    (remaining balance written off)
    ACTIVE -> CANCELLED   (only before any repayment)
    ACTIVE -> DEFAULTED   (administrator decision)
"""

import itertools
import logging
import threading
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from payroll_ledger.config import Settings
from payroll_ledger.domain.amortization import format_cents, generate_repayment_schedule, weekly_installment_cents
from payroll_ledger.domain.exceptions import LedgerResult, RejectionReason, WeeklyProcessingResult
from payroll_ledger.domain.models import (
    AdvanceEntry,
    AdvanceSettings,
    AdvanceStatus,
    AdvanceType,
    Employee,
    Installment,
    PaymentMethod,
)
from payroll_ledger.infrastructure.database.store import LedgerStore
from payroll_ledger.infrastructure.observability.logging import log_rejection
from payroll_ledger.infrastructure.observability.metrics import record_advance_amount, record_operation
from payroll_ledger.ledger.durability import load_or_default, write_through
from payroll_ledger.ledger.locks import EmployeeLocks
from payroll_ledger.ledger.settings_store import SettingsStore
from payroll_ledger.utils.date_utils import add_weeks, week_start_for

logger = logging.getLogger(__name__)

CREDIT_TYPES = (AdvanceType.REPAYMENT, AdvanceType.ADJUSTMENT)


class AdvanceLedger:
    """Append-only ledger of cash advances and their repayments.

    Usage:
        ledger = AdvanceLedger(SettingsStore())
        result = ledger.create_advance(employee, week_start, 100_000, weeks=3)
        ledger.process_weekly_repayments(employee, next_week)
        ledger.get_advance_balance(result.entry.advance_id)

    Mutations for one employee are serialized by that employee's lock.
    Validation failures come back as rejected LedgerResults and leave the
    ledger untouched.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        store: Optional[LedgerStore] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self.settings_store = settings_store
        self.store = store
        self.config = config or settings_store.config
        self._entries: Dict[str, AdvanceEntry] = {}
        self._state_lock = threading.RLock()
        self._locks = EmployeeLocks()
        self._sequence = itertools.count(1)

    def load(self) -> None:
        """Replace in-memory state with the persisted snapshot"""
        if self.store is None:
            return
        entries = load_or_default("load_advance_entries", self.store.load_advance_entries, [])
        with self._state_lock:
            self._entries = {e.id: e for e in entries}
            self._sequence = itertools.count(max((e.sequence for e in entries), default=0) + 1)
        logger.info("Loaded advance entries", extra={"count": len(entries)})

    # Settings

    def get_employee_settings(self, employee_id: int) -> AdvanceSettings:
        return self.settings_store.get_advance_settings(employee_id)

    def update_employee_settings(
        self, employee_id: int, new_settings: AdvanceSettings
    ) -> LedgerResult[AdvanceSettings]:
        """Overwrite policy; advances already granted are not re-validated"""
        with self._locks.for_employee(employee_id):
            result = self.settings_store.update_advance_settings(employee_id, new_settings)
        if not result.success:
            log_rejection(logger, "update_settings", employee_id, result.reason, result.message)
        record_operation("advance", "update_settings", result.reason)
        return result

    # Mutations

    def create_advance(
        self,
        employee: Employee,
        week_start: date,
        amount_cents: int,
        weeks: int,
        notes: str = "",
        approved_by: Optional[str] = None,
        today: Optional[date] = None,
    ) -> LedgerResult[AdvanceEntry]:
        """
        Grant a cash advance repayable in ``weeks`` weekly installments.

        The installment is rounded up to the cent and fixed for the life of
        the advance. Repayments start the week after ``week_start``.
        """
        operation = "create_advance"
        with self._locks.for_employee(employee.id):
            policy = self.settings_store.get_advance_settings(employee.id)
            max_weeks = min(policy.max_repayment_weeks, self.config.max_repayment_weeks_ceiling)

            if amount_cents <= 0:
                return self._reject(operation, employee.id, RejectionReason.INVALID_AMOUNT,
                                    "Advance amount must be positive")
            if amount_cents < self.config.min_advance_cents:
                return self._reject(
                    operation, employee.id, RejectionReason.BELOW_MINIMUM_ADVANCE,
                    f"Advance {format_cents(amount_cents)} is below the minimum "
                    f"{format_cents(self.config.min_advance_cents)}",
                )
            if amount_cents > policy.max_advance_cents:
                return self._reject(
                    operation, employee.id, RejectionReason.EXCEEDS_MAX_ADVANCE,
                    f"Advance {format_cents(amount_cents)} exceeds the maximum "
                    f"{format_cents(policy.max_advance_cents)} for {employee.name}",
                )
            if weeks < 1 or weeks > max_weeks:
                return self._reject(
                    operation, employee.id, RejectionReason.INVALID_REPAYMENT_PERIOD,
                    f"Repayment period must be between 1 and {max_weeks} weeks, got {weeks}",
                )
            if not policy.allow_multiple_advances and self.has_active_advance(employee.id):
                return self._reject(
                    operation, employee.id, RejectionReason.ACTIVE_ADVANCE_EXISTS,
                    f"{employee.name} already has an active advance",
                )

            outstanding = self.get_current_balance(employee.id)
            if outstanding + amount_cents > policy.max_advance_cents:
                return self._reject(
                    operation, employee.id, RejectionReason.EXCEEDS_OUTSTANDING_LIMIT,
                    f"Outstanding {format_cents(outstanding)} plus {format_cents(amount_cents)} "
                    f"would exceed the maximum {format_cents(policy.max_advance_cents)}",
                )

            weekly = weekly_installment_cents(amount_cents, weeks)
            if weekly > policy.weekly_repayment_limit_cents:
                return self._reject(
                    operation, employee.id, RejectionReason.EXCEEDS_WEEKLY_LIMIT,
                    f"Weekly installment {format_cents(weekly)} exceeds the weekly limit "
                    f"{format_cents(policy.weekly_repayment_limit_cents)}; choose more weeks",
                )

            first_due = add_weeks(week_start, 1)
            entry_id = f"adv_{uuid4().hex[:12]}"
            entry = AdvanceEntry(
                id=entry_id,
                advance_id=entry_id,
                employee_id=employee.id,
                employee_name=employee.name,
                date=today or date.today(),
                week_start=week_start,
                type=AdvanceType.ADVANCE,
                amount_cents=amount_cents,
                status=AdvanceStatus.ACTIVE,
                notes=notes or "",
                weeks_to_repay=weeks,
                weekly_repayment_cents=weekly,
                first_repayment_date=first_due,
                last_repayment_date=add_weeks(first_due, weeks - 1),
                approved_by=approved_by,
            )
            self._append(entry)
            persisted = self._save(operation, entry)

        record_operation("advance", operation)
        record_advance_amount(amount_cents)
        logger.info(
            "Created advance",
            extra={
                "employee_id": employee.id,
                "advance_id": entry.advance_id,
                "amount_cents": amount_cents,
                "weekly_repayment_cents": weekly,
            },
        )
        return LedgerResult.ok(replace(entry), persisted=persisted)

    def record_repayment(
        self,
        employee: Employee,
        week_start: date,
        amount_cents: int,
        advance_id: str,
        method: PaymentMethod = PaymentMethod.PAYROLL_DEDUCTION,
        reference_number: Optional[str] = None,
        notes: str = "",
        processed_by: Optional[str] = None,
        today: Optional[date] = None,
    ) -> LedgerResult[AdvanceEntry]:
        """Apply a repayment to an ACTIVE advance of the same employee.

        Repayments larger than the outstanding balance are refused, so an
        advance balance never goes negative.
        """
        operation = "record_repayment"
        with self._locks.for_employee(employee.id):
            if amount_cents <= 0:
                return self._reject(operation, employee.id, RejectionReason.INVALID_AMOUNT,
                                    "Repayment amount must be positive")
            rejection = self._check_open_advance(operation, employee, advance_id)
            if rejection:
                return rejection

            advance = self._entries[advance_id]
            outstanding = self._outstanding(advance)
            if amount_cents > outstanding:
                return self._reject(
                    operation, employee.id, RejectionReason.OVERPAYMENT,
                    f"Repayment {format_cents(amount_cents)} exceeds the outstanding balance "
                    f"{format_cents(outstanding)} of advance {advance_id}",
                )

            entry_date = today or date.today()
            entry = AdvanceEntry(
                id=f"rep_{uuid4().hex[:12]}",
                advance_id=advance.advance_id,
                parent_advance_id=advance.advance_id,
                employee_id=employee.id,
                employee_name=employee.name,
                date=entry_date,
                week_start=week_start,
                type=AdvanceType.REPAYMENT,
                amount_cents=amount_cents,
                notes=notes or "",
                payment_method=method,
                reference_number=reference_number,
                processed_by=processed_by,
            )
            completed = self._apply_credit(advance, entry, entry_date)
            persisted = self._save(operation, entry, advance)

        record_operation("advance", operation)
        logger.info(
            "Recorded repayment",
            extra={
                "employee_id": employee.id,
                "advance_id": advance_id,
                "amount_cents": amount_cents,
                "payment_method": method.value,
                "completed": completed,
            },
        )
        return LedgerResult.ok(replace(entry), persisted=persisted)

    def process_weekly_repayments(
        self,
        employee: Employee,
        week_start: date,
        processed_by: Optional[str] = None,
        today: Optional[date] = None,
    ) -> WeeklyProcessingResult[AdvanceEntry]:
        """
        Deduct this week's installment for every due ACTIVE advance.

        Each deduction is the fixed weekly installment capped at what is
        still owed, so the final week collects only the remainder. Advances
        that already have a payroll deduction for ``week_start`` are skipped.
        """
        result: WeeklyProcessingResult[AdvanceEntry] = WeeklyProcessingResult()
        reference = f"WEEK-{week_start:%m%d}"
        with self._locks.for_employee(employee.id):
            for advance in self._due_advances(employee.id, week_start):
                if self._deducted_in_week(advance.advance_id, week_start):
                    result.skipped.append(advance.advance_id)
                    continue
                amount = min(advance.weekly_repayment_cents or 0, self._outstanding(advance))
                if amount <= 0:
                    continue
                outcome = self.record_repayment(
                    employee,
                    week_start,
                    amount,
                    advance.advance_id,
                    method=PaymentMethod.PAYROLL_DEDUCTION,
                    reference_number=reference,
                    notes="Weekly payroll deduction",
                    processed_by=processed_by,
                    today=today,
                )
                if outcome.success:
                    result.entries.append(outcome.entry)
                    result.total_cents += outcome.entry.amount_cents
                    result.persisted = result.persisted and outcome.persisted
                else:
                    result.skipped.append(advance.advance_id)

        logger.info(
            "Processed weekly repayments",
            extra={
                "employee_id": employee.id,
                "week_start": week_start.isoformat(),
                "processed": result.processed,
                "total_cents": result.total_cents,
            },
        )
        return result

    def create_adjustment(
        self,
        employee: Employee,
        advance_id: str,
        amount_cents: int,
        notes: str = "",
        processed_by: Optional[str] = None,
        today: Optional[date] = None,
    ) -> LedgerResult[AdvanceEntry]:
        """Write down part of an ACTIVE advance without a cash repayment"""
        operation = "create_adjustment"
        with self._locks.for_employee(employee.id):
            if amount_cents <= 0:
                return self._reject(operation, employee.id, RejectionReason.INVALID_AMOUNT,
                                    "Adjustment amount must be positive")
            rejection = self._check_open_advance(operation, employee, advance_id)
            if rejection:
                return rejection

            advance = self._entries[advance_id]
            outstanding = self._outstanding(advance)
            if amount_cents > outstanding:
                return self._reject(
                    operation, employee.id, RejectionReason.OVERPAYMENT,
                    f"Adjustment {format_cents(amount_cents)} exceeds the outstanding balance "
                    f"{format_cents(outstanding)}",
                )

            entry = self._adjustment_entry(advance, amount_cents, notes, processed_by, today or date.today())
            self._apply_credit(advance, entry, None)
            persisted = self._save(operation, entry, advance)

        record_operation("advance", operation)
        logger.info(
            "Created adjustment",
            extra={"employee_id": employee.id, "advance_id": advance_id, "amount_cents": amount_cents},
        )
        return LedgerResult.ok(replace(entry), persisted=persisted)

    def forgive_advance(
        self,
        advance_id: str,
        reason: str = "",
        processed_by: Optional[str] = None,
        today: Optional[date] = None,
    ) -> LedgerResult[AdvanceEntry]:
        """Write off the remaining balance and mark the advance FORGIVEN"""
        operation = "forgive_advance"
        advance = self._lookup_advance(advance_id)
        if advance is None:
            return self._reject(operation, None, RejectionReason.ADVANCE_NOT_FOUND,
                                f"Advance {advance_id} not found")

        with self._locks.for_employee(advance.employee_id):
            if advance.status != AdvanceStatus.ACTIVE:
                return self._reject(operation, advance.employee_id, RejectionReason.ADVANCE_NOT_ACTIVE,
                                    f"Cannot forgive a {advance.status.value} advance")

            outstanding = self._outstanding(advance)
            if outstanding <= 0:
                return self._reject(operation, advance.employee_id, RejectionReason.NOTHING_DUE,
                                    f"Advance {advance_id} has no balance to forgive")
            entry = self._adjustment_entry(
                advance, outstanding, _status_note(AdvanceStatus.FORGIVEN, reason), processed_by, today or date.today()
            )
            with self._state_lock:
                self._entries[entry.id] = entry
                advance.status = AdvanceStatus.FORGIVEN
            persisted = self._save(operation, entry, advance)

        record_operation("advance", operation)
        logger.info(
            "Forgave advance",
            extra={"employee_id": advance.employee_id, "advance_id": advance_id, "amount_cents": outstanding},
        )
        return LedgerResult.ok(replace(entry), persisted=persisted)

    def cancel_advance(self, advance_id: str, reason: str = "") -> LedgerResult[AdvanceEntry]:
        """Cancel an ACTIVE advance that has not received any repayment"""
        operation = "cancel_advance"
        advance = self._lookup_advance(advance_id)
        if advance is None:
            return self._reject(operation, None, RejectionReason.ADVANCE_NOT_FOUND,
                                f"Advance {advance_id} not found")

        with self._locks.for_employee(advance.employee_id):
            if advance.status != AdvanceStatus.ACTIVE:
                return self._reject(operation, advance.employee_id, RejectionReason.ADVANCE_NOT_ACTIVE,
                                    f"Cannot cancel a {advance.status.value} advance")
            if self._credits(advance.advance_id) > 0:
                return self._reject(operation, advance.employee_id, RejectionReason.HAS_REPAYMENTS,
                                    f"Advance {advance_id} already has repayments")
            self._close(advance, AdvanceStatus.CANCELLED, reason)
            persisted = self._save(operation, advance)

        record_operation("advance", operation)
        logger.info("Cancelled advance", extra={"employee_id": advance.employee_id, "advance_id": advance_id})
        return LedgerResult.ok(replace(advance), persisted=persisted)

    def mark_defaulted(self, advance_id: str, reason: str = "") -> LedgerResult[AdvanceEntry]:
        """Flag an ACTIVE advance as defaulted; its balance stays outstanding"""
        operation = "mark_defaulted"
        advance = self._lookup_advance(advance_id)
        if advance is None:
            return self._reject(operation, None, RejectionReason.ADVANCE_NOT_FOUND,
                                f"Advance {advance_id} not found")

        with self._locks.for_employee(advance.employee_id):
            if advance.status != AdvanceStatus.ACTIVE:
                return self._reject(operation, advance.employee_id, RejectionReason.ADVANCE_NOT_ACTIVE,
                                    f"Cannot default a {advance.status.value} advance")
            self._close(advance, AdvanceStatus.DEFAULTED, reason)
            persisted = self._save(operation, advance)

        record_operation("advance", operation)
        logger.info("Advance defaulted", extra={"employee_id": advance.employee_id, "advance_id": advance_id})
        return LedgerResult.ok(replace(advance), persisted=persisted)

    def delete_entry(self, entry_id: str) -> LedgerResult[AdvanceEntry]:
        """
        Administrative removal of an entry.

        Live principal cannot be discarded: ADVANCE entries may only be
        deleted once CANCELLED. Deleting a repayment or adjustment that had
        completed its advance puts the advance back to ACTIVE so the weekly
        run collects the restored balance.
        """
        operation = "delete_entry"
        with self._state_lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            return self._reject(operation, None, RejectionReason.ENTRY_NOT_FOUND,
                                f"Entry {entry_id} not found")

        with self._locks.for_employee(entry.employee_id):
            if entry.type == AdvanceType.ADVANCE and entry.status != AdvanceStatus.CANCELLED:
                return self._reject(
                    operation, entry.employee_id, RejectionReason.DELETE_NOT_PERMITTED,
                    f"Advance {entry_id} is {entry.status.value}; only cancelled advances can be deleted",
                )
            with self._state_lock:
                removed = self._entries.pop(entry_id, None)
            if removed is None:
                return self._reject(operation, entry.employee_id, RejectionReason.ENTRY_NOT_FOUND,
                                    f"Entry {entry_id} not found")
            persisted = True
            if self.store is not None:
                persisted = write_through("delete_advance_entry", lambda: self.store.delete_advance_entry(entry_id))
            reopened = self._reopen_if_owing(removed)
            if reopened is not None:
                persisted = self._save(operation, reopened) and persisted

        record_operation("advance", operation)
        logger.info("Deleted advance entry", extra={"employee_id": entry.employee_id, "entry_id": entry_id})
        return LedgerResult.ok(replace(removed), persisted=persisted)

    def update_notes(self, entry_id: str, notes: str) -> LedgerResult[AdvanceEntry]:
        with self._state_lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            return self._reject("update_notes", None, RejectionReason.ENTRY_NOT_FOUND,
                                f"Entry {entry_id} not found")
        with self._locks.for_employee(entry.employee_id):
            with self._state_lock:
                entry.notes = notes
            persisted = self._save("update_notes", entry)
        return LedgerResult.ok(replace(entry), persisted=persisted)

    # Queries

    def get_entry(self, entry_id: str) -> Optional[AdvanceEntry]:
        with self._state_lock:
            entry = self._entries.get(entry_id)
            return replace(entry) if entry else None

    def get_entries_for_employee(self, employee_id: int) -> List[AdvanceEntry]:
        """Employee's entries newest first, with chronological running balances"""
        return _with_running_balances(e for e in self._snapshot() if e.employee_id == employee_id)

    def get_all_entries(self) -> List[AdvanceEntry]:
        """All entries newest first; running balances accumulate per employee"""
        return _with_running_balances(self._snapshot())

    def get_active_advances(self) -> List[AdvanceEntry]:
        advances = [
            replace(e) for e in self._snapshot()
            if e.type == AdvanceType.ADVANCE and e.status == AdvanceStatus.ACTIVE
        ]
        return sorted(advances, key=_chronological, reverse=True)

    def get_advances_for_employee(self, employee_id: int) -> List[AdvanceEntry]:
        advances = [
            replace(e) for e in self._snapshot()
            if e.employee_id == employee_id and e.type == AdvanceType.ADVANCE
        ]
        return sorted(advances, key=_chronological, reverse=True)

    def get_repayment_schedule(self, advance_id: str) -> List[Installment]:
        """Planned weekly installments of an advance; empty for unknown ids"""
        advance = self._lookup_advance(advance_id)
        if advance is None or not advance.weeks_to_repay or advance.first_repayment_date is None:
            return []
        return generate_repayment_schedule(advance.amount_cents, advance.weeks_to_repay, advance.first_repayment_date)

    def get_repayments_for_advance(self, advance_id: str) -> List[AdvanceEntry]:
        repayments = [
            replace(e) for e in self._snapshot()
            if e.parent_advance_id == advance_id and e.type == AdvanceType.REPAYMENT
        ]
        return sorted(repayments, key=_chronological)

    def has_active_advance(self, employee_id: int) -> bool:
        return self.get_active_advance_count(employee_id) > 0

    def get_active_advance_count(self, employee_id: int) -> int:
        return sum(
            1 for e in self._snapshot()
            if e.employee_id == employee_id
            and e.type == AdvanceType.ADVANCE
            and e.status == AdvanceStatus.ACTIVE
        )

    def get_advance_balance(self, advance_id: str) -> int:
        """Outstanding principal of one advance; 0 for unknown ids, never negative"""
        advance = self._lookup_advance(advance_id)
        if advance is None:
            return 0
        return self._outstanding(advance)

    def get_total_advanced(self, employee_id: int) -> int:
        return sum(
            e.amount_cents for e in self._snapshot()
            if e.employee_id == employee_id and e.type == AdvanceType.ADVANCE
        )

    def get_total_repaid(self, employee_id: int) -> int:
        """Principal credited back to the employee's advances (repayments and write-downs)"""
        return sum(
            e.amount_cents for e in self._snapshot()
            if e.employee_id == employee_id and e.type in CREDIT_TYPES
        )

    def get_total_adjusted(self, employee_id: int) -> int:
        """Share of get_total_repaid that came from adjustments rather than payments"""
        return sum(
            e.amount_cents for e in self._snapshot()
            if e.employee_id == employee_id and e.type == AdvanceType.ADJUSTMENT
        )

    def get_current_balance(self, employee_id: int) -> int:
        """Total advanced minus total repaid, regardless of advance status"""
        return sum(e.signed_effect() for e in self._snapshot() if e.employee_id == employee_id)

    def get_scheduled_repayment_for_week(self, employee_id: int, week_start: date) -> int:
        """
        Amount due from the employee's ACTIVE advances for ``week_start``.

        Each advance contributes its weekly installment capped at its
        outstanding balance, from its first repayment week onward. Whether
        the week was already processed is not considered.
        """
        return sum(
            min(advance.weekly_repayment_cents or 0, self._outstanding(advance))
            for advance in self._due_advances(employee_id, week_start)
        )

    def is_overdue(self, advance: AdvanceEntry, as_of: Optional[date] = None) -> bool:
        """ACTIVE, still owing, and past the final scheduled installment date"""
        if advance.type != AdvanceType.ADVANCE or advance.status != AdvanceStatus.ACTIVE:
            return False
        if self.get_advance_balance(advance.advance_id) <= 0:
            return False
        deadline = advance.last_repayment_date or advance.week_start
        return (as_of or date.today()) > deadline

    def get_overdue_advances(self, employee_id: Optional[int] = None, as_of: Optional[date] = None) -> List[AdvanceEntry]:
        as_of = as_of or date.today()
        return [
            advance for advance in self.get_active_advances()
            if (employee_id is None or advance.employee_id == employee_id) and self.is_overdue(advance, as_of)
        ]

    # Internals

    def _snapshot(self) -> List[AdvanceEntry]:
        with self._state_lock:
            return list(self._entries.values())

    def _lookup_advance(self, advance_id: str) -> Optional[AdvanceEntry]:
        with self._state_lock:
            entry = self._entries.get(advance_id)
        if entry is None or entry.type != AdvanceType.ADVANCE:
            return None
        return entry

    def _credits(self, advance_id: str) -> int:
        return sum(
            e.amount_cents for e in self._snapshot()
            if e.parent_advance_id == advance_id and e.type in CREDIT_TYPES
        )

    def _outstanding(self, advance: AdvanceEntry) -> int:
        return max(advance.amount_cents - self._credits(advance.advance_id), 0)

    def _due_advances(self, employee_id: int, week_start: date) -> List[AdvanceEntry]:
        due = [
            e for e in self._snapshot()
            if e.employee_id == employee_id
            and e.type == AdvanceType.ADVANCE
            and e.status == AdvanceStatus.ACTIVE
            and (e.first_repayment_date is None or week_start >= e.first_repayment_date)
        ]
        return sorted(due, key=_chronological)

    def _deducted_in_week(self, advance_id: str, week_start: date) -> bool:
        return any(
            e.parent_advance_id == advance_id
            and e.type == AdvanceType.REPAYMENT
            and e.payment_method == PaymentMethod.PAYROLL_DEDUCTION
            and e.week_start == week_start
            for e in self._snapshot()
        )

    def _check_open_advance(
        self, operation: str, employee: Employee, advance_id: str
    ) -> Optional[LedgerResult[AdvanceEntry]]:
        advance = self._lookup_advance(advance_id)
        if advance is None:
            return self._reject(operation, employee.id, RejectionReason.ADVANCE_NOT_FOUND,
                                f"Advance {advance_id} not found")
        if advance.employee_id != employee.id:
            return self._reject(operation, employee.id, RejectionReason.EMPLOYEE_MISMATCH,
                                f"Advance {advance_id} does not belong to {employee.name}")
        if advance.status != AdvanceStatus.ACTIVE:
            return self._reject(operation, employee.id, RejectionReason.ADVANCE_NOT_ACTIVE,
                                f"Cannot apply to a {advance.status.value} advance")
        return None

    def _adjustment_entry(
        self,
        advance: AdvanceEntry,
        amount_cents: int,
        notes: str,
        processed_by: Optional[str],
        entry_date: date,
    ) -> AdvanceEntry:
        return AdvanceEntry(
            id=f"adj_{uuid4().hex[:12]}",
            advance_id=advance.advance_id,
            parent_advance_id=advance.advance_id,
            employee_id=advance.employee_id,
            employee_name=advance.employee_name,
            date=entry_date,
            week_start=week_start_for(entry_date),
            type=AdvanceType.ADJUSTMENT,
            amount_cents=amount_cents,
            notes=notes or "",
            processed_by=processed_by,
            sequence=next(self._sequence),
        )

    def _append(self, entry: AdvanceEntry) -> None:
        with self._state_lock:
            entry.sequence = next(self._sequence)
            self._entries[entry.id] = entry

    def _apply_credit(self, advance: AdvanceEntry, entry: AdvanceEntry, payment_date: Optional[date]) -> bool:
        """Append a repayment/adjustment and complete the advance if retired"""
        with self._state_lock:
            if not entry.sequence:
                entry.sequence = next(self._sequence)
            self._entries[entry.id] = entry
            if payment_date is not None:
                advance.last_payment_date = payment_date
            if self._outstanding(advance) == 0:
                advance.status = AdvanceStatus.COMPLETED
                logger.info("Advance completed", extra={"advance_id": advance.advance_id})
                return True
        return False

    def _close(self, advance: AdvanceEntry, status: AdvanceStatus, reason: str) -> None:
        with self._state_lock:
            advance.status = status
            suffix = _status_note(status, reason)
            advance.notes = f"{advance.notes} | {suffix}" if advance.notes else suffix

    def _reopen_if_owing(self, removed: AdvanceEntry) -> Optional[AdvanceEntry]:
        if removed.type not in CREDIT_TYPES or removed.parent_advance_id is None:
            return None
        advance = self._lookup_advance(removed.parent_advance_id)
        if advance is None or advance.status != AdvanceStatus.COMPLETED:
            return None
        outstanding = self._outstanding(advance)
        if outstanding <= 0:
            return None
        with self._state_lock:
            advance.status = AdvanceStatus.ACTIVE
        logger.warning(
            "Completed advance reopened after entry deletion",
            extra={
                "employee_id": advance.employee_id,
                "advance_id": advance.advance_id,
                "entry_id": removed.id,
                "balance_cents": outstanding,
            },
        )
        return advance

    def _save(self, operation: str, *entries: AdvanceEntry) -> bool:
        if self.store is None:
            return True
        return write_through(operation, lambda: self.store.save_advance_entries(*entries))

    def _reject(
        self,
        operation: str,
        employee_id: Optional[int],
        reason: RejectionReason,
        message: str,
    ) -> LedgerResult[AdvanceEntry]:
        log_rejection(logger, operation, employee_id, reason, message)
        record_operation("advance", operation, reason)
        return LedgerResult.rejected(reason, message)


def _status_note(status: AdvanceStatus, reason: str) -> str:
    return f"{status.value}: {reason}" if reason else status.value


def _chronological(entry: AdvanceEntry):
    return (entry.date, entry.sequence)


def _with_running_balances(entries: Iterable[AdvanceEntry]) -> List[AdvanceEntry]:
    ordered = sorted((replace(e) for e in entries), key=_chronological)
    balances: Dict[int, int] = {}
    for entry in ordered:
        balances[entry.employee_id] = balances.get(entry.employee_id, 0) + entry.signed_effect()
        entry.balance_cents = balances[entry.employee_id]
    ordered.reverse()
    return ordered
