"""Escrow endpoints - deposits, withdrawals and target tracking"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request

from payroll_ledger.api.dependencies import (
    get_employee_directory,
    get_escrow_ledger,
    get_request_id,
    raise_for_rejection,
    resolve_employee,
)
from payroll_ledger.api.v1.schemas import (
    REJECTION_RESPONSES,
    DeleteResponse,
    EscrowEntriesResponse,
    EscrowEntrySchema,
    EscrowMutationResponse,
    EscrowSummaryResponse,
    EscrowTargetRequest,
    EscrowTargetResponse,
    EscrowTransactionRequest,
    NotesUpdateRequest,
)
from payroll_ledger.infrastructure.clients.employees import EmployeeDirectoryClient
from payroll_ledger.ledger.escrow import EscrowLedger

router = APIRouter(responses=REJECTION_RESPONSES)


@router.post("/employees/{employee_id}/escrow/deposits", response_model=EscrowMutationResponse, status_code=201)
async def add_deposit(
    employee_id: int,
    request_body: EscrowTransactionRequest,
    request: Request,
    escrow: EscrowLedger = Depends(get_escrow_ledger),
    directory: EmployeeDirectoryClient = Depends(get_employee_directory),
):
    employee = await resolve_employee(employee_id, request_body.employee_name, directory, get_request_id(request))
    result = escrow.add_deposit(
        employee,
        request_body.transaction_date or date.today(),
        request_body.week_start,
        request_body.amount_cents,
        notes=request_body.notes,
    )
    raise_for_rejection(result)
    return EscrowMutationResponse(entry=EscrowEntrySchema.from_entry(result.entry), persisted=result.persisted)


@router.post("/employees/{employee_id}/escrow/withdrawals", response_model=EscrowMutationResponse, status_code=201)
async def add_withdrawal(
    employee_id: int,
    request_body: EscrowTransactionRequest,
    request: Request,
    escrow: EscrowLedger = Depends(get_escrow_ledger),
    directory: EmployeeDirectoryClient = Depends(get_employee_directory),
):
    """Withdraw from escrow; 422 insufficient_balance if it would go negative"""
    employee = await resolve_employee(employee_id, request_body.employee_name, directory, get_request_id(request))
    result = escrow.add_withdrawal(
        employee,
        request_body.transaction_date or date.today(),
        request_body.week_start,
        request_body.amount_cents,
        notes=request_body.notes,
    )
    raise_for_rejection(result)
    return EscrowMutationResponse(entry=EscrowEntrySchema.from_entry(result.entry), persisted=result.persisted)


@router.get("/employees/{employee_id}/escrow", response_model=EscrowSummaryResponse)
def get_escrow_summary(
    employee_id: int,
    week_start: Optional[date] = Query(None, description="Include deposits/withdrawals for this week"),
    escrow: EscrowLedger = Depends(get_escrow_ledger),
):
    return EscrowSummaryResponse(
        employee_id=employee_id,
        balance_cents=escrow.get_current_balance(employee_id),
        total_deposits_cents=escrow.get_total_deposits(employee_id),
        total_withdrawals_cents=escrow.get_total_withdrawals(employee_id),
        target_cents=escrow.get_target_amount(employee_id),
        remaining_to_target_cents=escrow.get_remaining_to_target(employee_id),
        fully_funded=escrow.is_escrow_fully_funded(employee_id),
        reached_target=escrow.has_reached_target(employee_id),
        weekly_deposits_cents=escrow.get_weekly_deposits(employee_id, week_start) if week_start else None,
        weekly_withdrawals_cents=escrow.get_weekly_withdrawals(employee_id, week_start) if week_start else None,
    )


@router.get("/employees/{employee_id}/escrow/entries", response_model=EscrowEntriesResponse)
def get_escrow_entries(employee_id: int, escrow: EscrowLedger = Depends(get_escrow_ledger)):
    entries = escrow.get_entries_for_employee(employee_id)
    return EscrowEntriesResponse(
        employee_id=employee_id,
        entries=[EscrowEntrySchema.from_entry(e) for e in entries],
    )


@router.get("/employees/{employee_id}/escrow/target", response_model=EscrowTargetResponse)
def get_escrow_target(employee_id: int, escrow: EscrowLedger = Depends(get_escrow_ledger)):
    return EscrowTargetResponse(employee_id=employee_id, target_cents=escrow.get_target_amount(employee_id))


@router.put("/employees/{employee_id}/escrow/target", response_model=EscrowTargetResponse)
def set_escrow_target(
    employee_id: int,
    request_body: EscrowTargetRequest,
    escrow: EscrowLedger = Depends(get_escrow_ledger),
):
    result = escrow.set_target_amount(employee_id, request_body.target_cents)
    raise_for_rejection(result)
    return EscrowTargetResponse(employee_id=employee_id, target_cents=result.entry, persisted=result.persisted)


@router.patch("/escrow/entries/{entry_id}/notes", response_model=EscrowMutationResponse)
def update_notes(
    entry_id: str,
    request_body: NotesUpdateRequest,
    escrow: EscrowLedger = Depends(get_escrow_ledger),
):
    result = escrow.update_notes(entry_id, request_body.notes)
    raise_for_rejection(result)
    return EscrowMutationResponse(entry=EscrowEntrySchema.from_entry(result.entry), persisted=result.persisted)


@router.delete("/escrow/entries/{entry_id}", response_model=DeleteResponse)
def delete_entry(entry_id: str, escrow: EscrowLedger = Depends(get_escrow_ledger)):
    result = escrow.delete_entry(entry_id)
    raise_for_rejection(result)
    return DeleteResponse(deleted_id=entry_id, persisted=result.persisted)
