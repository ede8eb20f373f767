"""Unit tests for per-employee advance policy"""

import pytest
from dataclasses import replace
from datetime import date

from payroll_ledger.domain.exceptions import RejectionReason
from payroll_ledger.domain.models import AdvanceSettings, AdvanceStatus


@pytest.fixture
def policy() -> AdvanceSettings:
    return AdvanceSettings(
        max_advance_cents=100_000,
        weekly_repayment_limit_cents=25_000,
        max_repayment_weeks=10,
    )


def test_defaults_come_from_config(settings_store):
    defaults = settings_store.get_advance_settings(101)

    assert defaults.max_advance_cents == 300_000
    assert defaults.weekly_repayment_limit_cents == 50_000
    assert defaults.max_repayment_weeks == 26
    assert defaults.allow_multiple_advances is False
    assert settings_store.has_custom_settings(101) is False


def test_update_stamps_last_modified(settings_store, policy):
    result = settings_store.update_advance_settings(101, policy, today=date(2024, 3, 4))

    assert result.success
    assert result.entry.last_modified == date(2024, 3, 4)
    assert settings_store.get_advance_settings(101).max_advance_cents == 100_000
    assert settings_store.has_custom_settings(101) is True
    assert settings_store.has_custom_settings(202) is False


def test_returned_settings_are_copies(settings_store, policy):
    settings_store.update_advance_settings(101, policy)

    copy = settings_store.get_advance_settings(101)
    copy.max_advance_cents = 1

    assert settings_store.get_advance_settings(101).max_advance_cents == 100_000


@pytest.mark.parametrize(
    "changes",
    [
        {"max_advance_cents": 0},
        {"weekly_repayment_limit_cents": -1},
        {"max_repayment_weeks": 0},
        {"max_repayment_weeks": True},
    ],
)
def test_invalid_settings_rejected(settings_store, policy, changes):
    result = settings_store.update_advance_settings(101, replace(policy, **changes))

    assert result.reason == RejectionReason.INVALID_SETTINGS
    assert settings_store.has_custom_settings(101) is False


def test_policy_applies_to_new_advances_only(advance_ledger, employee, week_start, policy):
    granted = advance_ledger.create_advance(employee, week_start, 200_000, 8).entry

    advance_ledger.update_employee_settings(employee.id, replace(policy, allow_multiple_advances=True))

    assert advance_ledger.get_entry(granted.id).status == AdvanceStatus.ACTIVE
    assert advance_ledger.get_advance_balance(granted.id) == 200_000
    result = advance_ledger.create_advance(employee, week_start, 150_000, 8)
    assert result.reason == RejectionReason.EXCEEDS_MAX_ADVANCE


def test_repayment_weeks_capped_by_ceiling(advance_ledger, employee, week_start):
    advance_ledger.update_employee_settings(
        employee.id,
        AdvanceSettings(max_advance_cents=300_000, weekly_repayment_limit_cents=50_000, max_repayment_weeks=60),
    )

    over = advance_ledger.create_advance(employee, week_start, 300_000, 53)
    at_ceiling = advance_ledger.create_advance(employee, week_start, 300_000, 52)

    assert over.reason == RejectionReason.INVALID_REPAYMENT_PERIOD
    assert at_ceiling.success
    assert at_ceiling.entry.weekly_repayment_cents == 5_770


def test_escrow_target_validation(settings_store):
    assert settings_store.get_escrow_target(101) == 300_000
    assert settings_store.set_escrow_target(101, -1).reason == RejectionReason.INVALID_TARGET
    assert settings_store.set_escrow_target(101, 120_000).entry == 120_000
    assert settings_store.get_escrow_target(101) == 120_000
