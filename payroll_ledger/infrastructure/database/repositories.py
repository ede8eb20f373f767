"""Data access layer for ledger entities"""

from typing import Dict, List
from sqlalchemy.orm import Session
from payroll_ledger.infrastructure.database.models import (
    AdvanceEntryRecord,
    AdvanceSettingsRecord,
    EscrowEntryRecord,
    EscrowTargetRecord,
    LedgerMetadata,
)
from payroll_ledger.domain.models import (
    AdvanceEntry,
    AdvanceSettings,
    AdvanceStatus,
    AdvanceType,
    EscrowEntry,
    EscrowType,
    PaymentMethod,
)


class AdvanceEntryRepository:
    """Repository for advance ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> List[AdvanceEntry]:
        """Fetch every advance entry in insertion order"""
        rows = self.db.query(AdvanceEntryRecord).order_by(AdvanceEntryRecord.sequence).all()
        return [_advance_to_domain(row) for row in rows]

    def upsert(self, entry: AdvanceEntry) -> None:
        """Insert a new entry or overwrite the stored copy (status, notes, last payment)"""
        self.db.merge(
            AdvanceEntryRecord(
                id=entry.id,
                advance_id=entry.advance_id,
                parent_advance_id=entry.parent_advance_id,
                employee_id=entry.employee_id,
                employee_name=entry.employee_name,
                entry_date=entry.date,
                week_start=entry.week_start,
                entry_type=entry.type.value,
                amount_cents=entry.amount_cents,
                status=entry.status.value,
                notes=entry.notes,
                weeks_to_repay=entry.weeks_to_repay,
                weekly_repayment_cents=entry.weekly_repayment_cents,
                first_repayment_date=entry.first_repayment_date,
                last_repayment_date=entry.last_repayment_date,
                last_payment_date=entry.last_payment_date,
                approved_by=entry.approved_by,
                payment_method=entry.payment_method.value if entry.payment_method else None,
                reference_number=entry.reference_number,
                processed_by=entry.processed_by,
                sequence=entry.sequence,
            )
        )

    def delete(self, entry_id: str) -> None:
        self.db.query(AdvanceEntryRecord).filter(AdvanceEntryRecord.id == entry_id).delete()


class AdvanceSettingsRepository:
    """Repository for per-employee advance policy"""

    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> Dict[int, AdvanceSettings]:
        return {
            row.employee_id: AdvanceSettings(
                max_advance_cents=row.max_advance_cents,
                weekly_repayment_limit_cents=row.weekly_repayment_limit_cents,
                max_repayment_weeks=row.max_repayment_weeks,
                allow_multiple_advances=row.allow_multiple_advances,
                last_modified=row.last_modified,
            )
            for row in self.db.query(AdvanceSettingsRecord).all()
        }

    def upsert(self, employee_id: int, settings: AdvanceSettings) -> None:
        self.db.merge(
            AdvanceSettingsRecord(
                employee_id=employee_id,
                max_advance_cents=settings.max_advance_cents,
                weekly_repayment_limit_cents=settings.weekly_repayment_limit_cents,
                max_repayment_weeks=settings.max_repayment_weeks,
                allow_multiple_advances=settings.allow_multiple_advances,
                last_modified=settings.last_modified,
            )
        )


class EscrowEntryRepository:
    """Repository for escrow deposits and withdrawals"""

    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> List[EscrowEntry]:
        rows = self.db.query(EscrowEntryRecord).order_by(EscrowEntryRecord.sequence).all()
        return [
            EscrowEntry(
                id=row.id,
                employee_id=row.employee_id,
                employee_name=row.employee_name,
                date=row.entry_date,
                week_start=row.week_start,
                type=EscrowType(row.entry_type),
                amount_cents=row.amount_cents,
                notes=row.notes or "",
                sequence=row.sequence,
            )
            for row in rows
        ]

    def upsert(self, entry: EscrowEntry) -> None:
        self.db.merge(
            EscrowEntryRecord(
                id=entry.id,
                employee_id=entry.employee_id,
                employee_name=entry.employee_name,
                entry_date=entry.date,
                week_start=entry.week_start,
                entry_type=entry.type.value,
                amount_cents=entry.amount_cents,
                notes=entry.notes,
                sequence=entry.sequence,
            )
        )

    def delete(self, entry_id: str) -> None:
        self.db.query(EscrowEntryRecord).filter(EscrowEntryRecord.id == entry_id).delete()

    def delete_all(self) -> None:
        self.db.query(EscrowEntryRecord).delete()


class EscrowTargetRepository:
    """Repository for per-employee escrow targets"""

    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> Dict[int, int]:
        return {row.employee_id: row.target_cents for row in self.db.query(EscrowTargetRecord).all()}

    def upsert(self, employee_id: int, target_cents: int) -> None:
        self.db.merge(EscrowTargetRecord(employee_id=employee_id, target_cents=target_cents))


class MetadataRepository:
    """Repository for snapshot metadata"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> str | None:
        row = self.db.query(LedgerMetadata).filter(LedgerMetadata.key == key).first()
        return row.value if row else None

    def set(self, key: str, value: str) -> None:
        self.db.merge(LedgerMetadata(key=key, value=value))


def _advance_to_domain(row: AdvanceEntryRecord) -> AdvanceEntry:
    return AdvanceEntry(
        id=row.id,
        advance_id=row.advance_id,
        parent_advance_id=row.parent_advance_id,
        employee_id=row.employee_id,
        employee_name=row.employee_name,
        date=row.entry_date,
        week_start=row.week_start,
        type=AdvanceType(row.entry_type),
        amount_cents=row.amount_cents,
        status=AdvanceStatus(row.status),
        notes=row.notes or "",
        weeks_to_repay=row.weeks_to_repay,
        weekly_repayment_cents=row.weekly_repayment_cents,
        first_repayment_date=row.first_repayment_date,
        last_repayment_date=row.last_repayment_date,
        last_payment_date=row.last_payment_date,
        approved_by=row.approved_by,
        payment_method=PaymentMethod(row.payment_method) if row.payment_method else None,
        reference_number=row.reference_number,
        processed_by=row.processed_by,
        sequence=row.sequence,
    )
