"""Unit tests for the SQLAlchemy-backed ledger snapshot"""

import pytest
from datetime import date
from unittest.mock import MagicMock
from prometheus_client import REGISTRY

from payroll_ledger.container import build_container
from payroll_ledger.domain.exceptions import PersistenceError
from payroll_ledger.domain.models import AdvanceSettings, AdvanceStatus, AdvanceType, PaymentMethod
from payroll_ledger.infrastructure.database.session import build_engine, create_session_factory
from payroll_ledger.infrastructure.database.store import LedgerStore
from payroll_ledger.ledger.advances import AdvanceLedger
from payroll_ledger.ledger.escrow import EscrowLedger
from payroll_ledger.ledger.settings_store import SettingsStore

WEEK_2 = date(2024, 1, 8)


def failures(operation: str) -> float:
    value = REGISTRY.get_sample_value("ledger_persistence_failures_total", {"operation": operation})
    return value or 0.0


def restart(container, db_config):
    container.close()
    reopened = build_container(db_config)
    reopened.load()
    return reopened


def test_state_survives_restart(container, db_config, employee, week_start):
    advance = container.advances.create_advance(employee, week_start, 100_000, 3, notes="rent", today=week_start).entry
    container.advances.record_repayment(
        employee, WEEK_2, 33_334, advance.advance_id, method=PaymentMethod.CHECK, reference_number="CHK-77", today=WEEK_2
    )
    container.settings_store.update_advance_settings(
        employee.id,
        AdvanceSettings(max_advance_cents=200_000, weekly_repayment_limit_cents=40_000, max_repayment_weeks=12),
        today=week_start,
    )
    container.escrow.set_target_amount(employee.id, 80_000)
    container.escrow.add_deposit(employee, week_start, week_start, 25_000)

    reopened = restart(container, db_config)
    try:
        stored = reopened.advances.get_entry(advance.id)
        assert stored.notes == "rent"
        assert stored.weekly_repayment_cents == 33_334
        assert stored.last_payment_date == WEEK_2
        assert reopened.advances.get_advance_balance(advance.advance_id) == 66_666

        repayment = reopened.advances.get_repayments_for_advance(advance.advance_id)[0]
        assert repayment.payment_method == PaymentMethod.CHECK
        assert repayment.reference_number == "CHK-77"

        policy = reopened.settings_store.get_advance_settings(employee.id)
        assert policy.max_advance_cents == 200_000
        assert policy.last_modified == week_start

        assert reopened.escrow.get_target_amount(employee.id) == 80_000
        assert reopened.escrow.get_current_balance(employee.id) == 25_000
    finally:
        reopened.close()


def test_status_changes_and_deletes_are_persisted(container, db_config, employee, week_start):
    advance = container.advances.create_advance(employee, week_start, 50_000, 2).entry
    container.advances.cancel_advance(advance.advance_id, reason="duplicate")
    deposit = container.escrow.add_deposit(employee, week_start, week_start, 5_000).entry
    container.escrow.delete_entry(deposit.id)

    reopened = restart(container, db_config)
    try:
        assert reopened.advances.get_entry(advance.id).status == AdvanceStatus.CANCELLED
        assert reopened.advances.delete_entry(advance.id).success
    finally:
        reopened.close()

    reopened = build_container(db_config)
    reopened.load()
    try:
        assert reopened.advances.get_all_entries() == []
        assert reopened.escrow.get_all_entries() == []
    finally:
        reopened.close()


def test_insertion_order_continues_after_restart(container, db_config, employee, week_start):
    advance = container.advances.create_advance(employee, week_start, 100_000, 3, today=week_start).entry
    container.advances.record_repayment(employee, week_start, 10_000, advance.advance_id, today=week_start)

    reopened = restart(container, db_config)
    try:
        reopened.advances.record_repayment(employee, week_start, 20_000, advance.advance_id, today=week_start)
        entries = reopened.advances.get_entries_for_employee(employee.id)

        # Same-day entries keep their recording order across restarts
        assert [e.amount_cents for e in entries] == [20_000, 10_000, 100_000]
        assert [e.balance_cents for e in entries] == [70_000, 90_000, 100_000]
    finally:
        reopened.close()


def test_forgive_writes_adjustment_and_status_together(container, db_config, employee, week_start):
    advance = container.advances.create_advance(employee, week_start, 60_000, 3).entry
    container.advances.forgive_advance(advance.advance_id, reason="hardship")

    reopened = restart(container, db_config)
    try:
        entries = reopened.advances.get_entries_for_employee(employee.id)
        assert {e.type for e in entries} == {AdvanceType.ADVANCE, AdvanceType.ADJUSTMENT}
        assert reopened.advances.get_entry(advance.id).status == AdvanceStatus.FORGIVEN
        assert reopened.advances.get_current_balance(employee.id) == 0
    finally:
        reopened.close()


def test_database_errors_surface_as_persistence_error(tmp_path):
    # Tables never created
    engine = build_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    store = LedgerStore(engine, create_session_factory(engine))

    with pytest.raises(PersistenceError):
        store.load_advance_entries()
    store.close()


def test_unreadable_store_starts_empty(settings_store):
    store = MagicMock(spec=LedgerStore)
    store.load_advance_entries.side_effect = PersistenceError("disk gone")
    store.load_escrow_entries.side_effect = PersistenceError("disk gone")
    before = failures("load_advance_entries")

    advances = AdvanceLedger(settings_store, store)
    escrow = EscrowLedger(settings_store, store)
    advances.load()
    escrow.load()

    assert advances.get_all_entries() == []
    assert escrow.get_all_entries() == []
    assert failures("load_advance_entries") == before + 1


def test_failed_write_keeps_change_in_memory(settings_store, employee, week_start):
    store = MagicMock(spec=LedgerStore)
    store.save_advance_entries.side_effect = PersistenceError("database is locked")
    before = failures("create_advance")
    ledger = AdvanceLedger(settings_store, store)

    result = ledger.create_advance(employee, week_start, 50_000, 2)

    assert result.success is True
    assert result.persisted is False
    assert ledger.get_current_balance(employee.id) == 50_000
    assert failures("create_advance") == before + 1


def test_weekly_processing_reports_durability(settings_store, employee, week_start):
    store = MagicMock(spec=LedgerStore)
    ledger = AdvanceLedger(settings_store, store)
    advance = ledger.create_advance(employee, week_start, 50_000, 2).entry
    store.save_advance_entries.side_effect = PersistenceError("database is locked")

    result = ledger.process_weekly_repayments(employee, WEEK_2)

    assert result.processed == 1
    assert result.persisted is False
    assert ledger.get_advance_balance(advance.advance_id) == 25_000


def test_failed_settings_write_reported(config):
    store = MagicMock(spec=LedgerStore)
    store.save_escrow_target.side_effect = PersistenceError("read-only database")
    settings_store = SettingsStore(config, store)

    result = settings_store.set_escrow_target(101, 90_000)

    assert result.success and result.persisted is False
    assert settings_store.get_escrow_target(101) == 90_000


def test_container_without_store_is_in_memory(config, employee, week_start):
    ledgers = build_container(config, persistent=False)
    ledgers.load()

    assert ledgers.store is None
    assert ledgers.advances.create_advance(employee, week_start, 50_000, 2).persisted is True
    ledgers.close()
