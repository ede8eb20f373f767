"""Durable snapshot of ledger state backed by SQLAlchemy.

Each public write runs in its own transaction, so a crash mid-write leaves
either the old or the new row set, never a half-written snapshot.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from payroll_ledger.domain.exceptions import PersistenceError
from payroll_ledger.domain.models import AdvanceEntry, AdvanceSettings, EscrowEntry
from payroll_ledger.infrastructure.database.models import Base, SCHEMA_VERSION
from payroll_ledger.infrastructure.database.repositories import (
    AdvanceEntryRepository,
    AdvanceSettingsRepository,
    EscrowEntryRepository,
    EscrowTargetRepository,
    MetadataRepository,
)

logger = logging.getLogger(__name__)


class LedgerStore:
    """Persistence adapter for advance and escrow ledgers"""

    def __init__(self, engine: Engine, session_factory: sessionmaker):
        self.engine = engine
        self.session_factory = session_factory

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit on success, roll back and raise PersistenceError on database errors"""
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Ledger store error: {e}") from e
        finally:
            db.close()

    def initialize(self) -> None:
        """Create tables and stamp the schema version"""
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not create ledger schema: {e}") from e

        with self.transaction() as db:
            meta = MetadataRepository(db)
            stored = meta.get("schema_version")
            if stored is None:
                meta.set("schema_version", SCHEMA_VERSION)
            elif stored != SCHEMA_VERSION:
                logger.warning(
                    "Ledger schema version mismatch",
                    extra={"stored_version": stored, "expected_version": SCHEMA_VERSION},
                )

    def close(self) -> None:
        self.engine.dispose()

    # Advances

    def load_advance_entries(self) -> List[AdvanceEntry]:
        with self.transaction() as db:
            return AdvanceEntryRepository(db).list_all()

    def save_advance_entries(self, *entries: AdvanceEntry) -> None:
        with self.transaction() as db:
            repo = AdvanceEntryRepository(db)
            for entry in entries:
                repo.upsert(entry)

    def delete_advance_entry(self, entry_id: str) -> None:
        with self.transaction() as db:
            AdvanceEntryRepository(db).delete(entry_id)

    def load_advance_settings(self) -> Dict[int, AdvanceSettings]:
        with self.transaction() as db:
            return AdvanceSettingsRepository(db).list_all()

    def save_advance_settings(self, employee_id: int, settings: AdvanceSettings) -> None:
        with self.transaction() as db:
            AdvanceSettingsRepository(db).upsert(employee_id, settings)

    # Escrow

    def load_escrow_entries(self) -> List[EscrowEntry]:
        with self.transaction() as db:
            return EscrowEntryRepository(db).list_all()

    def save_escrow_entry(self, entry: EscrowEntry) -> None:
        with self.transaction() as db:
            EscrowEntryRepository(db).upsert(entry)

    def delete_escrow_entry(self, entry_id: str) -> None:
        with self.transaction() as db:
            EscrowEntryRepository(db).delete(entry_id)

    def clear_escrow_entries(self) -> None:
        with self.transaction() as db:
            EscrowEntryRepository(db).delete_all()

    def load_escrow_targets(self) -> Dict[int, int]:
        with self.transaction() as db:
            return EscrowTargetRepository(db).list_all()

    def save_escrow_target(self, employee_id: int, target_cents: int) -> None:
        with self.transaction() as db:
            EscrowTargetRepository(db).upsert(employee_id, target_cents)
