"""SQLAlchemy ORM models for the persisted ledger snapshot"""

from sqlalchemy import Column, String, BigInteger, Boolean, Date, DateTime, Integer, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

SCHEMA_VERSION = "1"


class AdvanceEntryRecord(Base):
    """Advance, repayment or adjustment row"""

    __tablename__ = "advance_entry"

    id = Column(String(64), primary_key=True)
    advance_id = Column(String(64), nullable=False, index=True)
    parent_advance_id = Column(String(64), nullable=True, index=True)
    employee_id = Column(Integer, nullable=False, index=True)
    employee_name = Column(Text, nullable=False)
    entry_date = Column(Date, nullable=False)
    week_start = Column(Date, nullable=False)
    entry_type = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="ACTIVE")
    notes = Column(Text, nullable=False, default="")
    weeks_to_repay = Column(Integer, nullable=True)
    weekly_repayment_cents = Column(BigInteger, nullable=True)
    first_repayment_date = Column(Date, nullable=True)
    last_repayment_date = Column(Date, nullable=True)
    last_payment_date = Column(Date, nullable=True)
    approved_by = Column(Text, nullable=True)
    payment_method = Column(Text, nullable=True)
    reference_number = Column(Text, nullable=True)
    processed_by = Column(Text, nullable=True)
    sequence = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AdvanceSettingsRecord(Base):
    """Advance policy override for one employee"""

    __tablename__ = "advance_settings"

    employee_id = Column(Integer, primary_key=True)
    max_advance_cents = Column(BigInteger, nullable=False)
    weekly_repayment_limit_cents = Column(BigInteger, nullable=False)
    max_repayment_weeks = Column(Integer, nullable=False)
    allow_multiple_advances = Column(Boolean, nullable=False, default=False)
    last_modified = Column(Date, nullable=True)


class EscrowEntryRecord(Base):
    """Escrow deposit or withdrawal row"""

    __tablename__ = "escrow_entry"

    id = Column(String(64), primary_key=True)
    employee_id = Column(Integer, nullable=False, index=True)
    employee_name = Column(Text, nullable=False)
    entry_date = Column(Date, nullable=False)
    week_start = Column(Date, nullable=False, index=True)
    entry_type = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    notes = Column(Text, nullable=False, default="")
    sequence = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class EscrowTargetRecord(Base):
    """Escrow target override for one employee"""

    __tablename__ = "escrow_target"

    employee_id = Column(Integer, primary_key=True)
    target_cents = Column(BigInteger, nullable=False)


class LedgerMetadata(Base):
    """Key/value facts about the stored snapshot (schema version)"""

    __tablename__ = "ledger_metadata"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
