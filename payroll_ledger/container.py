"""Composition root - builds the ledgers and owns their lifecycle"""

import logging
from dataclasses import dataclass
from typing import Optional

from payroll_ledger.config import Settings, settings as app_settings
from payroll_ledger.domain.exceptions import PersistenceError
from payroll_ledger.infrastructure.database.session import build_engine, create_session_factory
from payroll_ledger.infrastructure.database.store import LedgerStore
from payroll_ledger.infrastructure.observability.metrics import persistence_failure_counter
from payroll_ledger.ledger.advances import AdvanceLedger
from payroll_ledger.ledger.escrow import EscrowLedger
from payroll_ledger.ledger.settings_store import SettingsStore

logger = logging.getLogger(__name__)


@dataclass
class LedgerContainer:
    """Process-wide ledger state, created once at startup"""

    config: Settings
    store: Optional[LedgerStore]
    settings_store: SettingsStore
    advances: AdvanceLedger
    escrow: EscrowLedger

    def load(self) -> None:
        """Create the schema if needed and read the persisted snapshot.

        An unreadable store is logged and the ledgers start empty.
        """
        if self.store is not None:
            try:
                self.store.initialize()
            except PersistenceError as e:
                persistence_failure_counter.labels(operation="initialize").inc()
                logger.error("Ledger store initialization failed", extra={"error": str(e)})
        self.settings_store.load()
        self.advances.load()
        self.escrow.load()

    def close(self) -> None:
        """Release database connections. Every write is already committed."""
        if self.store is not None:
            self.store.close()


def build_container(config: Settings | None = None, persistent: bool = True) -> LedgerContainer:
    """Wire settings store, ledgers and (optionally) the database store"""
    config = config or app_settings
    store = None
    if persistent:
        engine = build_engine(config.database_url)
        store = LedgerStore(engine, create_session_factory(engine))

    settings_store = SettingsStore(config, store)
    return LedgerContainer(
        config=config,
        store=store,
        settings_store=settings_store,
        advances=AdvanceLedger(settings_store, store, config),
        escrow=EscrowLedger(settings_store, store),
    )
