"""Cash advance endpoints - grant, repay, write down and report"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from payroll_ledger.api.dependencies import (
    get_advance_ledger,
    get_employee_directory,
    get_request_id,
    raise_for_rejection,
    resolve_employee,
)
from payroll_ledger.api.v1.schemas import (
    REJECTION_RESPONSES,
    AdjustmentRequest,
    AdvanceBalanceResponse,
    AdvanceEntriesResponse,
    AdvanceEntrySchema,
    AdvanceMutationResponse,
    AdvanceSummaryResponse,
    CreateAdvanceRequest,
    DeleteResponse,
    InstallmentSchema,
    NotesUpdateRequest,
    ProcessWeeklyRequest,
    RejectionDetail,
    RepaymentRequest,
    StatusChangeRequest,
    WeeklyProcessingResponse,
)
from payroll_ledger.domain.exceptions import LedgerResult, RejectionReason
from payroll_ledger.domain.models import AdvanceEntry, AdvanceType
from payroll_ledger.infrastructure.clients.employees import EmployeeDirectoryClient
from payroll_ledger.ledger.advances import AdvanceLedger

router = APIRouter(responses=REJECTION_RESPONSES)


def _mutation_response(result: LedgerResult[AdvanceEntry]) -> AdvanceMutationResponse:
    raise_for_rejection(result)
    return AdvanceMutationResponse(entry=AdvanceEntrySchema.from_entry(result.entry), persisted=result.persisted)


@router.post("/advances", response_model=AdvanceMutationResponse, status_code=201)
async def create_advance(
    request_body: CreateAdvanceRequest,
    request: Request,
    ledger: AdvanceLedger = Depends(get_advance_ledger),
    directory: EmployeeDirectoryClient = Depends(get_employee_directory),
):
    """
    Grant a cash advance.

    Flow:
    1. Resolve the employee's display name (directory lookup if omitted)
    2. Validate against the employee's advance policy
    3. Append the ADVANCE entry with its fixed weekly installment
    """
    employee = await resolve_employee(
        request_body.employee_id, request_body.employee_name, directory, get_request_id(request)
    )
    result = ledger.create_advance(
        employee,
        request_body.week_start,
        request_body.amount_cents,
        request_body.weeks,
        notes=request_body.notes,
        approved_by=request_body.approved_by,
    )
    return _mutation_response(result)


@router.post("/advances/{advance_id}/repayments", response_model=AdvanceMutationResponse, status_code=201)
async def record_repayment(
    advance_id: str,
    request_body: RepaymentRequest,
    request: Request,
    ledger: AdvanceLedger = Depends(get_advance_ledger),
    directory: EmployeeDirectoryClient = Depends(get_employee_directory),
):
    employee = await resolve_employee(
        request_body.employee_id, request_body.employee_name, directory, get_request_id(request)
    )
    result = ledger.record_repayment(
        employee,
        request_body.week_start,
        request_body.amount_cents,
        advance_id,
        method=request_body.payment_method,
        reference_number=request_body.reference_number,
        notes=request_body.notes,
        processed_by=request_body.processed_by,
    )
    return _mutation_response(result)


@router.post("/advances/{advance_id}/adjustments", response_model=AdvanceMutationResponse, status_code=201)
async def create_adjustment(
    advance_id: str,
    request_body: AdjustmentRequest,
    request: Request,
    ledger: AdvanceLedger = Depends(get_advance_ledger),
    directory: EmployeeDirectoryClient = Depends(get_employee_directory),
):
    employee = await resolve_employee(
        request_body.employee_id, request_body.employee_name, directory, get_request_id(request)
    )
    result = ledger.create_adjustment(
        employee,
        advance_id,
        request_body.amount_cents,
        notes=request_body.notes,
        processed_by=request_body.processed_by,
    )
    return _mutation_response(result)


@router.post("/advances/{advance_id}/forgive", response_model=AdvanceMutationResponse)
def forgive_advance(
    advance_id: str,
    request_body: StatusChangeRequest,
    ledger: AdvanceLedger = Depends(get_advance_ledger),
):
    """Write off the remaining balance; returns the ADJUSTMENT entry"""
    result = ledger.forgive_advance(advance_id, reason=request_body.reason, processed_by=request_body.processed_by)
    return _mutation_response(result)


@router.post("/advances/{advance_id}/cancel", response_model=AdvanceMutationResponse)
def cancel_advance(
    advance_id: str,
    request_body: StatusChangeRequest,
    ledger: AdvanceLedger = Depends(get_advance_ledger),
):
    return _mutation_response(ledger.cancel_advance(advance_id, reason=request_body.reason))


@router.post("/advances/{advance_id}/default", response_model=AdvanceMutationResponse)
def mark_defaulted(
    advance_id: str,
    request_body: StatusChangeRequest,
    ledger: AdvanceLedger = Depends(get_advance_ledger),
):
    return _mutation_response(ledger.mark_defaulted(advance_id, reason=request_body.reason))


@router.get("/advances/{advance_id}/balance", response_model=AdvanceBalanceResponse)
def get_advance_balance(
    advance_id: str,
    as_of: Optional[date] = Query(None, description="Date for the overdue check (defaults to today)"),
    ledger: AdvanceLedger = Depends(get_advance_ledger),
):
    advance = ledger.get_entry(advance_id)
    if advance is None or advance.type != AdvanceType.ADVANCE:
        raise HTTPException(
            status_code=404,
            detail=RejectionDetail(
                reason=RejectionReason.ADVANCE_NOT_FOUND.value, message=f"Advance {advance_id} not found"
            ).model_dump(),
        )

    return AdvanceBalanceResponse(
        advance_id=advance.advance_id,
        status=advance.status,
        amount_cents=advance.amount_cents,
        balance_cents=ledger.get_advance_balance(advance_id),
        weekly_repayment_cents=advance.weekly_repayment_cents,
        overdue=ledger.is_overdue(advance, as_of),
        schedule=[
            InstallmentSchema(due_date=i.due_date, amount_cents=i.amount_cents)
            for i in ledger.get_repayment_schedule(advance_id)
        ],
    )


@router.patch("/advances/entries/{entry_id}/notes", response_model=AdvanceMutationResponse)
def update_notes(
    entry_id: str,
    request_body: NotesUpdateRequest,
    ledger: AdvanceLedger = Depends(get_advance_ledger),
):
    return _mutation_response(ledger.update_notes(entry_id, request_body.notes))


@router.delete("/advances/entries/{entry_id}", response_model=DeleteResponse)
def delete_entry(entry_id: str, ledger: AdvanceLedger = Depends(get_advance_ledger)):
    """Remove a repayment, adjustment or cancelled advance"""
    result = ledger.delete_entry(entry_id)
    raise_for_rejection(result)
    return DeleteResponse(deleted_id=entry_id, persisted=result.persisted)


@router.post("/employees/{employee_id}/advances/process-weekly", response_model=WeeklyProcessingResponse)
async def process_weekly_repayments(
    employee_id: int,
    request_body: ProcessWeeklyRequest,
    request: Request,
    ledger: AdvanceLedger = Depends(get_advance_ledger),
    directory: EmployeeDirectoryClient = Depends(get_employee_directory),
):
    """
    Run this week's payroll deductions for every due advance.

    Safe to call twice for the same week: already-deducted advances are
    reported in skipped_advance_ids.
    """
    employee = await resolve_employee(employee_id, request_body.employee_name, directory, get_request_id(request))
    result = ledger.process_weekly_repayments(employee, request_body.week_start, processed_by=request_body.processed_by)
    return WeeklyProcessingResponse(
        employee_id=employee_id,
        week_start=request_body.week_start,
        processed=result.processed,
        total_cents=result.total_cents,
        entries=[AdvanceEntrySchema.from_entry(e) for e in result.entries],
        skipped_advance_ids=result.skipped,
        persisted=result.persisted,
    )


@router.get("/employees/{employee_id}/advances/summary", response_model=AdvanceSummaryResponse)
def get_advance_summary(
    employee_id: int,
    week_start: Optional[date] = Query(None, description="Include the repayment scheduled for this week"),
    as_of: Optional[date] = Query(None, description="Date for the overdue check (defaults to today)"),
    ledger: AdvanceLedger = Depends(get_advance_ledger),
):
    """
    Employee's advance position.

    repayment_progress is repaid / advanced (0.0 when nothing was advanced).
    """
    total_advanced = ledger.get_total_advanced(employee_id)
    total_repaid = ledger.get_total_repaid(employee_id)
    scheduled = ledger.get_scheduled_repayment_for_week(employee_id, week_start) if week_start else None

    return AdvanceSummaryResponse(
        employee_id=employee_id,
        total_advanced_cents=total_advanced,
        total_repaid_cents=total_repaid,
        total_adjusted_cents=ledger.get_total_adjusted(employee_id),
        current_balance_cents=ledger.get_current_balance(employee_id),
        active_advances=ledger.get_active_advance_count(employee_id),
        repayment_progress=round(total_repaid / total_advanced, 4) if total_advanced else 0.0,
        scheduled_repayment_cents=scheduled,
        overdue_advance_ids=[a.advance_id for a in ledger.get_overdue_advances(employee_id, as_of)],
    )


@router.get("/employees/{employee_id}/advances", response_model=AdvanceEntriesResponse)
def get_employee_advances(employee_id: int, ledger: AdvanceLedger = Depends(get_advance_ledger)):
    """ADVANCE entries only, newest first, whatever their status"""
    return AdvanceEntriesResponse(
        employee_id=employee_id,
        entries=[AdvanceEntrySchema.from_entry(a) for a in ledger.get_advances_for_employee(employee_id)],
    )

@router.get("/employees/{employee_id}/advances/entries", response_model=AdvanceEntriesResponse)
def get_advance_entries(employee_id: int, ledger: AdvanceLedger = Depends(get_advance_ledger)):
    """Newest first, each carrying the employee's running balance after it"""
    entries = ledger.get_entries_for_employee(employee_id)
    return AdvanceEntriesResponse(
        employee_id=employee_id,
        entries=[AdvanceEntrySchema.from_entry(e) for e in entries],
    )
