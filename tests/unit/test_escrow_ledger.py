"""Unit tests for the escrow ledger"""

from datetime import date

from payroll_ledger.domain.exceptions import RejectionReason
from payroll_ledger.domain.models import EscrowType
from payroll_ledger.utils.date_utils import week_start_for

WEEK_2 = date(2024, 1, 8)


def test_deposits_and_withdrawals_move_balance(escrow_ledger, employee, week_start):
    escrow_ledger.add_deposit(employee, week_start, week_start, 150_000)
    escrow_ledger.add_withdrawal(employee, WEEK_2, WEEK_2, 50_000, notes="uniform purchase")

    assert escrow_ledger.get_current_balance(employee.id) == 100_000
    assert escrow_ledger.get_total_deposits(employee.id) == 150_000
    assert escrow_ledger.get_total_withdrawals(employee.id) == 50_000


def test_withdrawal_cannot_overdraw(escrow_ledger, employee, week_start):
    escrow_ledger.add_deposit(employee, week_start, week_start, 10_000)

    result = escrow_ledger.add_withdrawal(employee, week_start, week_start, 10_001)

    assert result.success is False
    assert result.reason == RejectionReason.INSUFFICIENT_BALANCE
    assert escrow_ledger.get_current_balance(employee.id) == 10_000


def test_withdrawal_of_entire_balance(escrow_ledger, employee, week_start):
    escrow_ledger.add_deposit(employee, week_start, week_start, 10_000)

    assert escrow_ledger.add_withdrawal(employee, week_start, week_start, 10_000).success
    assert escrow_ledger.get_current_balance(employee.id) == 0


def test_non_positive_amounts_rejected(escrow_ledger, employee, week_start):
    assert escrow_ledger.add_deposit(employee, week_start, week_start, 0).reason == RejectionReason.INVALID_AMOUNT
    assert escrow_ledger.add_withdrawal(employee, week_start, week_start, -5).reason == RejectionReason.INVALID_AMOUNT
    assert escrow_ledger.get_entries_for_employee(employee.id) == []


def test_default_and_custom_target(escrow_ledger, employee):
    assert escrow_ledger.get_target_amount(employee.id) == 300_000

    result = escrow_ledger.set_target_amount(employee.id, 150_000)

    assert result.success
    assert escrow_ledger.get_target_amount(employee.id) == 150_000
    assert escrow_ledger.set_target_amount(employee.id, 0).reason == RejectionReason.INVALID_TARGET
    assert escrow_ledger.get_target_amount(employee.id) == 150_000


def test_funding_predicates_at_exact_target(escrow_ledger, employee, week_start):
    escrow_ledger.set_target_amount(employee.id, 100_000)
    escrow_ledger.add_deposit(employee, week_start, week_start, 100_000)

    assert escrow_ledger.has_reached_target(employee.id) is True
    assert escrow_ledger.is_escrow_fully_funded(employee.id) is False
    assert escrow_ledger.get_remaining_to_target(employee.id) == 0

    escrow_ledger.add_deposit(employee, week_start, week_start, 1)
    assert escrow_ledger.is_escrow_fully_funded(employee.id) is True


def test_remaining_to_target_never_negative(escrow_ledger, employee, week_start):
    escrow_ledger.set_target_amount(employee.id, 50_000)
    escrow_ledger.add_deposit(employee, week_start, week_start, 80_000)

    assert escrow_ledger.get_remaining_to_target(employee.id) == 0


def test_weekly_totals_filter_by_week(escrow_ledger, employee, week_start):
    escrow_ledger.add_deposit(employee, week_start, week_start, 5_000)
    escrow_ledger.add_deposit(employee, WEEK_2, WEEK_2, 7_000)
    escrow_ledger.add_withdrawal(employee, WEEK_2, WEEK_2, 2_000)

    assert escrow_ledger.get_weekly_deposits(employee.id, week_start) == 5_000
    assert escrow_ledger.get_weekly_deposits(employee.id, WEEK_2) == 7_000
    assert escrow_ledger.get_weekly_withdrawals(employee.id, WEEK_2) == 2_000
    assert escrow_ledger.get_weekly_withdrawals(employee.id, week_start) == 0


def test_entries_newest_first_with_running_balance(escrow_ledger, employee, other_employee, week_start):
    escrow_ledger.add_deposit(employee, week_start, week_start, 20_000)
    escrow_ledger.add_deposit(other_employee, week_start, week_start, 99_000)
    escrow_ledger.add_withdrawal(employee, WEEK_2, WEEK_2, 5_000)

    entries = escrow_ledger.get_entries_for_employee(employee.id)

    assert [e.type for e in entries] == [EscrowType.WITHDRAWAL, EscrowType.DEPOSIT]
    assert [e.balance_cents for e in entries] == [15_000, 20_000]
    assert all(e.id.startswith("esc_") for e in entries)
    assert len(escrow_ledger.get_all_entries()) == 3


def test_delete_entry(escrow_ledger, employee, week_start):
    deposit = escrow_ledger.add_deposit(employee, week_start, week_start, 20_000).entry

    assert escrow_ledger.delete_entry(deposit.id).success
    assert escrow_ledger.get_current_balance(employee.id) == 0
    assert escrow_ledger.delete_entry(deposit.id).reason == RejectionReason.ENTRY_NOT_FOUND


def test_update_notes(escrow_ledger, employee, week_start):
    deposit = escrow_ledger.add_deposit(employee, week_start, week_start, 20_000).entry

    result = escrow_ledger.update_notes(deposit.id, "first week deduction")

    assert result.entry.notes == "first week deduction"
    assert escrow_ledger.get_entry(deposit.id).notes == "first week deduction"


def test_clear_all_data_keeps_targets(escrow_ledger, employee, week_start):
    escrow_ledger.set_target_amount(employee.id, 75_000)
    escrow_ledger.add_deposit(employee, week_start, week_start, 20_000)

    assert escrow_ledger.clear_all_data() is True
    assert escrow_ledger.get_all_entries() == []
    assert escrow_ledger.get_target_amount(employee.id) == 75_000


def test_failed_withdrawal_leaves_balance(escrow_ledger, employee, week_start):
    escrow_ledger.add_deposit(employee, week_start, week_start, 150_000)
    escrow_ledger.add_deposit(employee, WEEK_2, WEEK_2, 200_000)
    assert escrow_ledger.add_withdrawal(employee, WEEK_2, WEEK_2, 300_000).entry.amount_cents == 300_000

    refused = escrow_ledger.add_withdrawal(employee, WEEK_2, WEEK_2, 60_000)

    assert refused.reason == RejectionReason.INSUFFICIENT_BALANCE
    assert escrow_ledger.get_current_balance(employee.id) == 50_000


def test_backdated_withdrawal_needs_funds_on_its_date(escrow_ledger, employee):
    escrow_ledger.add_deposit(employee, date(2024, 1, 10), date(2024, 1, 8), 100_000)

    refused = escrow_ledger.add_withdrawal(employee, date(2024, 1, 2), week_start_for(date(2024, 1, 2)), 100_000)

    assert refused.reason == RejectionReason.INSUFFICIENT_BALANCE
    assert [e.balance_cents for e in escrow_ledger.get_entries_for_employee(employee.id)] == [100_000]


def test_backdated_withdrawal_cannot_starve_later_withdrawals(escrow_ledger, employee, week_start):
    escrow_ledger.add_deposit(employee, week_start, week_start, 50_000)
    escrow_ledger.add_withdrawal(employee, date(2024, 1, 3), week_start, 40_000)
    escrow_ledger.add_deposit(employee, WEEK_2, WEEK_2, 30_000)

    # 50000 - 20000 leaves 30000, too little for the 40000 already taken on Jan 3
    refused = escrow_ledger.add_withdrawal(employee, date(2024, 1, 2), week_start, 20_000)
    accepted = escrow_ledger.add_withdrawal(employee, date(2024, 1, 2), week_start, 10_000)

    assert refused.reason == RejectionReason.INSUFFICIENT_BALANCE
    assert accepted.success
    running = [e.balance_cents for e in escrow_ledger.get_entries_for_employee(employee.id)]
    assert running == [30_000, 0, 40_000, 50_000]
    assert min(running) >= 0


def test_deposit_backing_a_withdrawal_cannot_be_deleted(escrow_ledger, employee, week_start):
    deposit = escrow_ledger.add_deposit(employee, week_start, week_start, 100_000).entry
    escrow_ledger.add_withdrawal(employee, WEEK_2, WEEK_2, 80_000)

    result = escrow_ledger.delete_entry(deposit.id)

    assert result.reason == RejectionReason.WOULD_OVERDRAW
    assert escrow_ledger.get_entry(deposit.id) is not None
    assert escrow_ledger.get_current_balance(employee.id) == 20_000


def test_surplus_deposit_and_withdrawals_can_be_deleted(escrow_ledger, employee, week_start):
    first = escrow_ledger.add_deposit(employee, week_start, week_start, 100_000).entry
    spare = escrow_ledger.add_deposit(employee, week_start, week_start, 30_000).entry
    withdrawal = escrow_ledger.add_withdrawal(employee, WEEK_2, WEEK_2, 80_000).entry

    assert escrow_ledger.delete_entry(spare.id).success
    assert escrow_ledger.delete_entry(withdrawal.id).success
    assert escrow_ledger.delete_entry(first.id).success
    assert escrow_ledger.get_current_balance(employee.id) == 0


def test_running_balances_follow_date_not_insertion(escrow_ledger, employee, week_start):
    escrow_ledger.add_deposit(employee, WEEK_2, WEEK_2, 10_000)
    escrow_ledger.add_deposit(employee, week_start, week_start, 5_000)

    entries = escrow_ledger.get_entries_for_employee(employee.id)

    assert [e.date for e in entries] == [WEEK_2, week_start]
    assert [e.balance_cents for e in entries] == [15_000, 5_000]
