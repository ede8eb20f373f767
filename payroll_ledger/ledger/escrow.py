"""Escrow ledger - funds held on an employee's behalf toward a target reserve.

The balance is the sum of deposits minus withdrawals and must never go
negative at any point of the date-ordered history: a withdrawal is refused
when it exceeds the balance held on its date or any later date, and a
deposit that later withdrawals depend on cannot be deleted.

Two funding predicates, each with its own caller:
    is_escrow_fully_funded  balance >  target  (stop automatic deductions)
    has_reached_target      balance >= target  ("Fully Funded" display)
Deductions keep running at exactly the target so an employee never stalls
one cent short of it.
"""

import itertools
import logging
import threading
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from payroll_ledger.domain.amortization import format_cents
from payroll_ledger.domain.exceptions import LedgerResult, RejectionReason
from payroll_ledger.domain.models import Employee, EscrowEntry, EscrowType
from payroll_ledger.infrastructure.database.store import LedgerStore
from payroll_ledger.infrastructure.observability.logging import log_rejection
from payroll_ledger.infrastructure.observability.metrics import record_operation
from payroll_ledger.ledger.durability import load_or_default, write_through
from payroll_ledger.ledger.locks import EmployeeLocks
from payroll_ledger.ledger.settings_store import SettingsStore

logger = logging.getLogger(__name__)


class EscrowLedger:
    """Append-only ledger of escrow deposits and withdrawals.

    Usage:
        escrow = EscrowLedger(SettingsStore())
        escrow.add_deposit(employee, today, week_start, 150_000)
        escrow.add_withdrawal(employee, today, week_start, 50_000)
        escrow.get_remaining_to_target(employee.id)
    """

    def __init__(self, settings_store: SettingsStore, store: Optional[LedgerStore] = None) -> None:
        self.settings_store = settings_store
        self.store = store
        self._entries: Dict[str, EscrowEntry] = {}
        self._state_lock = threading.RLock()
        self._locks = EmployeeLocks()
        self._sequence = itertools.count(1)

    def load(self) -> None:
        if self.store is None:
            return
        entries = load_or_default("load_escrow_entries", self.store.load_escrow_entries, [])
        with self._state_lock:
            self._entries = {e.id: e for e in entries}
            self._sequence = itertools.count(max((e.sequence for e in entries), default=0) + 1)
        logger.info("Loaded escrow entries", extra={"count": len(entries)})

    # Targets

    def get_target_amount(self, employee_id: int) -> int:
        return self.settings_store.get_escrow_target(employee_id)

    def set_target_amount(self, employee_id: int, target_cents: int) -> LedgerResult[int]:
        with self._locks.for_employee(employee_id):
            result = self.settings_store.set_escrow_target(employee_id, target_cents)
        if not result.success:
            log_rejection(logger, "set_target_amount", employee_id, result.reason, result.message)
        record_operation("escrow", "set_target_amount", result.reason)
        return result

    # Mutations

    def add_deposit(
        self,
        employee: Employee,
        transaction_date: date,
        week_start: date,
        amount_cents: int,
        notes: str = "",
    ) -> LedgerResult[EscrowEntry]:
        """Deposit into escrow; there is no upper bound"""
        operation = "add_deposit"
        if amount_cents <= 0:
            return self._reject(operation, employee.id, RejectionReason.INVALID_AMOUNT,
                                "Deposit amount must be positive")

        with self._locks.for_employee(employee.id):
            entry = self._append(employee, transaction_date, week_start, EscrowType.DEPOSIT, amount_cents, notes)
            persisted = self._save(operation, entry)

        record_operation("escrow", operation)
        logger.info(
            "Added escrow deposit",
            extra={"employee_id": employee.id, "amount_cents": amount_cents, "date": transaction_date.isoformat()},
        )
        return LedgerResult.ok(replace(entry), persisted=persisted)

    def add_withdrawal(
        self,
        employee: Employee,
        transaction_date: date,
        week_start: date,
        amount_cents: int,
        notes: str = "",
    ) -> LedgerResult[EscrowEntry]:
        """Withdraw from escrow; refused when it would drive the balance negative at any point"""
        operation = "add_withdrawal"
        if amount_cents <= 0:
            return self._reject(operation, employee.id, RejectionReason.INVALID_AMOUNT,
                                "Withdrawal amount must be positive")

        with self._locks.for_employee(employee.id):
            balance = self.get_current_balance(employee.id)
            if amount_cents > balance:
                return self._reject(
                    operation, employee.id, RejectionReason.INSUFFICIENT_BALANCE,
                    f"Withdrawal {format_cents(amount_cents)} exceeds the escrow balance "
                    f"{format_cents(balance)} for {employee.name}",
                )
            # A backdated withdrawal must be covered by deposits made on or before its date
            movements = self._movements(employee.id) + [(transaction_date, float("inf"), -amount_cents)]
            if _lowest_running_balance(movements) < 0:
                return self._reject(
                    operation, employee.id, RejectionReason.INSUFFICIENT_BALANCE,
                    f"Withdrawal {format_cents(amount_cents)} dated {transaction_date.isoformat()} "
                    f"exceeds the escrow balance {employee.name} held at that point",
                )
            entry = self._append(employee, transaction_date, week_start, EscrowType.WITHDRAWAL, amount_cents, notes)
            persisted = self._save(operation, entry)

        record_operation("escrow", operation)
        logger.info(
            "Added escrow withdrawal",
            extra={"employee_id": employee.id, "amount_cents": amount_cents, "date": transaction_date.isoformat()},
        )
        return LedgerResult.ok(replace(entry), persisted=persisted)

    def delete_entry(self, entry_id: str) -> LedgerResult[EscrowEntry]:
        """Remove an entry. A deposit that later withdrawals depend on is kept."""
        with self._state_lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            return self._reject("delete_entry", None, RejectionReason.ENTRY_NOT_FOUND,
                                f"Escrow entry {entry_id} not found")

        with self._locks.for_employee(entry.employee_id):
            remaining = self._movements(entry.employee_id, exclude=entry_id)
            if entry.type == EscrowType.DEPOSIT and _lowest_running_balance(remaining) < 0:
                return self._reject(
                    "delete_entry", entry.employee_id, RejectionReason.WOULD_OVERDRAW,
                    f"Deleting deposit {entry_id} of {format_cents(entry.amount_cents)} would leave "
                    f"the escrow balance negative",
                )
            with self._state_lock:
                removed = self._entries.pop(entry_id, None)
            if removed is None:
                return self._reject("delete_entry", entry.employee_id, RejectionReason.ENTRY_NOT_FOUND,
                                    f"Escrow entry {entry_id} not found")
            persisted = True
            if self.store is not None:
                persisted = write_through("delete_escrow_entry", lambda: self.store.delete_escrow_entry(entry_id))

        record_operation("escrow", "delete_entry")
        logger.info("Deleted escrow entry", extra={"employee_id": entry.employee_id, "entry_id": entry_id})
        return LedgerResult.ok(replace(removed), persisted=persisted)

    def update_notes(self, entry_id: str, notes: str) -> LedgerResult[EscrowEntry]:
        with self._state_lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            return self._reject("update_notes", None, RejectionReason.ENTRY_NOT_FOUND,
                                f"Escrow entry {entry_id} not found")
        with self._locks.for_employee(entry.employee_id):
            with self._state_lock:
                entry.notes = notes
            persisted = self._save("update_notes", entry)
        return LedgerResult.ok(replace(entry), persisted=persisted)

    def clear_all_data(self) -> bool:
        """Drop every escrow entry (administrative/test reset). Targets are kept."""
        with self._state_lock:
            self._entries.clear()
        persisted = True
        if self.store is not None:
            persisted = write_through("clear_escrow_entries", self.store.clear_escrow_entries)
        logger.warning("Cleared all escrow data")
        return persisted

    # Queries

    def get_entry(self, entry_id: str) -> Optional[EscrowEntry]:
        with self._state_lock:
            entry = self._entries.get(entry_id)
            return replace(entry) if entry else None

    def get_entries_for_employee(self, employee_id: int) -> List[EscrowEntry]:
        """Newest first; running balances are accumulated oldest first"""
        return _with_running_balances(e for e in self._snapshot() if e.employee_id == employee_id)

    def get_all_entries(self) -> List[EscrowEntry]:
        return _with_running_balances(self._snapshot())

    def get_current_balance(self, employee_id: int) -> int:
        return sum(e.signed_effect() for e in self._snapshot() if e.employee_id == employee_id)

    def get_total_deposits(self, employee_id: int) -> int:
        return self._total(employee_id, EscrowType.DEPOSIT)

    def get_total_withdrawals(self, employee_id: int) -> int:
        return self._total(employee_id, EscrowType.WITHDRAWAL)

    def get_weekly_deposits(self, employee_id: int, week_start: date) -> int:
        return self._total(employee_id, EscrowType.DEPOSIT, week_start)

    def get_weekly_withdrawals(self, employee_id: int, week_start: date) -> int:
        return self._total(employee_id, EscrowType.WITHDRAWAL, week_start)

    def get_remaining_to_target(self, employee_id: int) -> int:
        return max(self.get_target_amount(employee_id) - self.get_current_balance(employee_id), 0)

    def is_escrow_fully_funded(self, employee_id: int) -> bool:
        """True only when the balance is strictly above target; deductions stop here"""
        return self.get_current_balance(employee_id) > self.get_target_amount(employee_id)

    def has_reached_target(self, employee_id: int) -> bool:
        """True once the balance is at or above target; used for display"""
        return self.get_current_balance(employee_id) >= self.get_target_amount(employee_id)

    # Internals

    def _snapshot(self) -> List[EscrowEntry]:
        with self._state_lock:
            return list(self._entries.values())

    def _movements(self, employee_id: int, exclude: Optional[str] = None) -> List[Tuple[date, float, int]]:
        return [
            (e.date, e.sequence, e.signed_effect()) for e in self._snapshot()
            if e.employee_id == employee_id and e.id != exclude
        ]

    def _total(self, employee_id: int, entry_type: EscrowType, week_start: Optional[date] = None) -> int:
        return sum(
            e.amount_cents for e in self._snapshot()
            if e.employee_id == employee_id
            and e.type == entry_type
            and (week_start is None or e.week_start == week_start)
        )

    def _append(
        self,
        employee: Employee,
        transaction_date: date,
        week_start: date,
        entry_type: EscrowType,
        amount_cents: int,
        notes: str,
    ) -> EscrowEntry:
        with self._state_lock:
            entry = EscrowEntry(
                id=f"esc_{uuid4().hex[:12]}",
                employee_id=employee.id,
                employee_name=employee.name,
                date=transaction_date,
                week_start=week_start,
                type=entry_type,
                amount_cents=amount_cents,
                notes=notes or "",
                sequence=next(self._sequence),
            )
            self._entries[entry.id] = entry
        return entry

    def _save(self, operation: str, entry: EscrowEntry) -> bool:
        if self.store is None:
            return True
        return write_through(operation, lambda: self.store.save_escrow_entry(entry))

    def _reject(
        self,
        operation: str,
        employee_id: Optional[int],
        reason: RejectionReason,
        message: str,
    ) -> LedgerResult[EscrowEntry]:
        log_rejection(logger, operation, employee_id, reason, message)
        record_operation("escrow", operation, reason)
        return LedgerResult.rejected(reason, message)


def _lowest_running_balance(movements: Iterable[Tuple[date, float, int]]) -> int:
    """Lowest balance reached when movements are replayed oldest first"""
    balance = lowest = 0
    for _, _, effect in sorted(movements):
        balance += effect
        lowest = min(lowest, balance)
    return lowest


def _with_running_balances(entries: Iterable[EscrowEntry]) -> List[EscrowEntry]:
    ordered = sorted((replace(e) for e in entries), key=lambda e: (e.date, e.sequence))
    balances: Dict[int, int] = {}
    for entry in ordered:
        balances[entry.employee_id] = balances.get(entry.employee_id, 0) + entry.signed_effect()
        entry.balance_cents = balances[entry.employee_id]
    ordered.reverse()
    return ordered
