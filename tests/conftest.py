"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Generator
from fastapi.testclient import TestClient

from payroll_ledger.api.main import create_app
from payroll_ledger.config import Settings
from payroll_ledger.container import LedgerContainer, build_container
from payroll_ledger.domain.models import Employee
from payroll_ledger.ledger.advances import AdvanceLedger
from payroll_ledger.ledger.escrow import EscrowLedger
from payroll_ledger.ledger.settings_store import SettingsStore

# Monday; the first repayment week of an advance granted now is 2024-01-08
WEEK_1 = date(2024, 1, 1)


@pytest.fixture
def config() -> Settings:
    """Defaults pinned so a local .env cannot change test expectations"""
    return Settings(
        database_url="sqlite://",
        default_max_advance_cents=300_000,
        min_advance_cents=5_000,
        default_weekly_repayment_limit_cents=50_000,
        default_max_repayment_weeks=26,
        max_repayment_weeks_ceiling=52,
        default_escrow_target_cents=300_000,
    )


@pytest.fixture
def employee() -> Employee:
    return Employee(id=101, name="Jordan Lee")


@pytest.fixture
def other_employee() -> Employee:
    return Employee(id=202, name="Sam Rivera")


@pytest.fixture
def week_start() -> date:
    return WEEK_1


@pytest.fixture
def settings_store(config: Settings) -> SettingsStore:
    return SettingsStore(config)


@pytest.fixture
def advance_ledger(settings_store: SettingsStore) -> AdvanceLedger:
    """In-memory advance ledger (no store)"""
    return AdvanceLedger(settings_store)


@pytest.fixture
def escrow_ledger(settings_store: SettingsStore) -> EscrowLedger:
    """In-memory escrow ledger (no store)"""
    return EscrowLedger(settings_store)


@pytest.fixture
def db_config(config: Settings, tmp_path) -> Settings:
    """Same defaults, backed by a SQLite file that survives container restarts"""
    return config.model_copy(update={"database_url": f"sqlite:///{tmp_path / 'ledger.db'}"})


@pytest.fixture
def container(db_config: Settings) -> Generator[LedgerContainer, None, None]:
    ledgers = build_container(db_config)
    ledgers.load()
    try:
        yield ledgers
    finally:
        ledgers.close()


@pytest.fixture
def client(db_config: Settings) -> Generator[TestClient, None, None]:
    """FastAPI test client; the lifespan loads a container on a temporary database"""
    app = create_app(build_container(db_config))
    with TestClient(app) as test_client:
        yield test_client
