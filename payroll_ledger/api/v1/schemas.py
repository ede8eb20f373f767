"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional

from payroll_ledger.domain.models import (
    AdvanceEntry,
    AdvanceSettings,
    AdvanceStatus,
    AdvanceType,
    EscrowEntry,
    EscrowType,
    PaymentMethod,
)


class RejectionDetail(BaseModel):
    """Why a ledger operation was refused"""

    reason: str
    message: str


class RejectionResponse(BaseModel):
    """Body of a 404/422 response for a refused ledger operation"""

    detail: RejectionDetail


REJECTION_RESPONSES = {
    404: {"model": RejectionResponse, "description": "Advance or entry not found"},
    422: {"model": RejectionResponse, "description": "Refused by ledger rules"},
}


# Advances

class CreateAdvanceRequest(BaseModel):
    """Request body for POST /v1/advances"""

    employee_id: int = Field(..., description="Employee identifier")
    employee_name: Optional[str] = Field(None, description="Display name; looked up when omitted")
    week_start: date = Field(..., description="Payroll week the advance is granted in")
    amount_cents: int = Field(..., gt=0, description="Advance amount in cents")
    weeks: int = Field(..., ge=1, description="Number of weekly installments")
    notes: str = ""
    approved_by: Optional[str] = None


class RepaymentRequest(BaseModel):
    """Request body for POST /v1/advances/{advance_id}/repayments"""

    employee_id: int
    employee_name: Optional[str] = None
    week_start: date
    amount_cents: int = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.PAYROLL_DEDUCTION
    reference_number: Optional[str] = None
    notes: str = ""
    processed_by: Optional[str] = None


class AdjustmentRequest(BaseModel):
    """Request body for POST /v1/advances/{advance_id}/adjustments"""

    employee_id: int
    employee_name: Optional[str] = None
    amount_cents: int = Field(..., gt=0)
    notes: str = ""
    processed_by: Optional[str] = None


class StatusChangeRequest(BaseModel):
    """Request body for forgive / cancel / default"""

    reason: str = ""
    processed_by: Optional[str] = None


class ProcessWeeklyRequest(BaseModel):
    """Request body for POST /v1/employees/{employee_id}/advances/process-weekly"""

    week_start: date
    employee_name: Optional[str] = None
    processed_by: Optional[str] = None


class NotesUpdateRequest(BaseModel):
    notes: str


class AdvanceEntrySchema(BaseModel):
    """Single advance, repayment or adjustment"""

    id: str
    advance_id: str
    parent_advance_id: Optional[str] = None
    employee_id: int
    employee_name: str
    transaction_date: date
    week_start: date
    type: AdvanceType
    amount_cents: int
    status: AdvanceStatus
    notes: str = ""
    weeks_to_repay: Optional[int] = None
    weekly_repayment_cents: Optional[int] = None
    first_repayment_date: Optional[date] = None
    last_repayment_date: Optional[date] = None
    last_payment_date: Optional[date] = None
    approved_by: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = None
    processed_by: Optional[str] = None
    balance_cents: Optional[int] = None

    @classmethod
    def from_entry(cls, entry: AdvanceEntry) -> "AdvanceEntrySchema":
        return cls(
            id=entry.id,
            advance_id=entry.advance_id,
            parent_advance_id=entry.parent_advance_id,
            employee_id=entry.employee_id,
            employee_name=entry.employee_name,
            transaction_date=entry.date,
            week_start=entry.week_start,
            type=entry.type,
            amount_cents=entry.amount_cents,
            status=entry.status,
            notes=entry.notes,
            weeks_to_repay=entry.weeks_to_repay,
            weekly_repayment_cents=entry.weekly_repayment_cents,
            first_repayment_date=entry.first_repayment_date,
            last_repayment_date=entry.last_repayment_date,
            last_payment_date=entry.last_payment_date,
            approved_by=entry.approved_by,
            payment_method=entry.payment_method,
            reference_number=entry.reference_number,
            processed_by=entry.processed_by,
            balance_cents=entry.balance_cents,
        )


class AdvanceMutationResponse(BaseModel):
    """Response for any call that creates or changes an advance entry"""

    entry: AdvanceEntrySchema
    persisted: bool = True


class AdvanceEntriesResponse(BaseModel):
    """Response for GET /v1/employees/{employee_id}/advances/entries and /advances"""

    employee_id: int
    entries: List[AdvanceEntrySchema]


class InstallmentSchema(BaseModel):
    due_date: date
    amount_cents: int


class AdvanceBalanceResponse(BaseModel):
    """Response for GET /v1/advances/{advance_id}/balance"""

    advance_id: str
    status: AdvanceStatus
    amount_cents: int
    balance_cents: int
    weekly_repayment_cents: Optional[int] = None
    overdue: bool
    schedule: List[InstallmentSchema] = []


class AdvanceSummaryResponse(BaseModel):
    """Response for GET /v1/employees/{employee_id}/advances/summary"""

    employee_id: int
    total_advanced_cents: int
    total_repaid_cents: int
    total_adjusted_cents: int
    current_balance_cents: int
    active_advances: int
    repayment_progress: float
    scheduled_repayment_cents: Optional[int] = None
    overdue_advance_ids: List[str]


class WeeklyProcessingResponse(BaseModel):
    """Response for POST /v1/employees/{employee_id}/advances/process-weekly"""

    employee_id: int
    week_start: date
    processed: int
    total_cents: int
    entries: List[AdvanceEntrySchema]
    skipped_advance_ids: List[str]
    persisted: bool = True


class AdvanceSettingsSchema(BaseModel):
    """Advance policy for one employee"""

    max_advance_cents: int = Field(..., gt=0)
    weekly_repayment_limit_cents: int = Field(..., gt=0)
    max_repayment_weeks: int = Field(..., ge=1)
    allow_multiple_advances: bool = False

    def to_settings(self) -> AdvanceSettings:
        return AdvanceSettings(
            max_advance_cents=self.max_advance_cents,
            weekly_repayment_limit_cents=self.weekly_repayment_limit_cents,
            max_repayment_weeks=self.max_repayment_weeks,
            allow_multiple_advances=self.allow_multiple_advances,
        )


class AdvanceSettingsResponse(AdvanceSettingsSchema):
    employee_id: int
    last_modified: Optional[date] = None
    is_default: bool = False
    persisted: bool = True

    @classmethod
    def from_settings(
        cls,
        employee_id: int,
        policy: AdvanceSettings,
        is_default: bool = False,
        persisted: bool = True,
    ) -> "AdvanceSettingsResponse":
        return cls(
            employee_id=employee_id,
            max_advance_cents=policy.max_advance_cents,
            weekly_repayment_limit_cents=policy.weekly_repayment_limit_cents,
            max_repayment_weeks=policy.max_repayment_weeks,
            allow_multiple_advances=policy.allow_multiple_advances,
            last_modified=policy.last_modified,
            is_default=is_default,
            persisted=persisted,
        )


# Escrow

class EscrowTransactionRequest(BaseModel):
    """Request body for escrow deposits and withdrawals"""

    employee_name: Optional[str] = None
    transaction_date: Optional[date] = Field(None, description="Defaults to today")
    week_start: date
    amount_cents: int = Field(..., gt=0)
    notes: str = ""


class EscrowEntrySchema(BaseModel):
    """Single escrow deposit or withdrawal"""

    id: str
    employee_id: int
    employee_name: str
    transaction_date: date
    week_start: date
    type: EscrowType
    amount_cents: int
    notes: str = ""
    balance_cents: Optional[int] = None

    @classmethod
    def from_entry(cls, entry: EscrowEntry) -> "EscrowEntrySchema":
        return cls(
            id=entry.id,
            employee_id=entry.employee_id,
            employee_name=entry.employee_name,
            transaction_date=entry.date,
            week_start=entry.week_start,
            type=entry.type,
            amount_cents=entry.amount_cents,
            notes=entry.notes,
            balance_cents=entry.balance_cents,
        )


class EscrowMutationResponse(BaseModel):
    entry: EscrowEntrySchema
    persisted: bool = True


class EscrowEntriesResponse(BaseModel):
    employee_id: int
    entries: List[EscrowEntrySchema]


class EscrowSummaryResponse(BaseModel):
    """Response for GET /v1/employees/{employee_id}/escrow"""

    employee_id: int
    balance_cents: int
    total_deposits_cents: int
    total_withdrawals_cents: int
    target_cents: int
    remaining_to_target_cents: int
    fully_funded: bool
    reached_target: bool
    weekly_deposits_cents: Optional[int] = None
    weekly_withdrawals_cents: Optional[int] = None


class EscrowTargetRequest(BaseModel):
    target_cents: int = Field(..., gt=0)


class EscrowTargetResponse(BaseModel):
    employee_id: int
    target_cents: int
    persisted: bool = True


class DeleteResponse(BaseModel):
    deleted_id: str
    persisted: bool = True
