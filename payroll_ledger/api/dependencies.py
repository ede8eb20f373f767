"""Dependency injection for FastAPI endpoints"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, Request

from payroll_ledger.api.v1.schemas import RejectionDetail
from payroll_ledger.container import LedgerContainer
from payroll_ledger.domain.exceptions import EmployeeLookupError, LedgerResult, RejectionReason
from payroll_ledger.domain.models import Employee
from payroll_ledger.infrastructure.clients.employees import EmployeeDirectoryClient
from payroll_ledger.ledger.advances import AdvanceLedger
from payroll_ledger.ledger.escrow import EscrowLedger

logger = logging.getLogger(__name__)

NOT_FOUND_REASONS = {RejectionReason.ADVANCE_NOT_FOUND, RejectionReason.ENTRY_NOT_FOUND}


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_container(request: Request) -> LedgerContainer:
    """Ledger state built by the application lifespan"""
    return request.app.state.ledgers


def get_advance_ledger(container: LedgerContainer = Depends(get_container)) -> AdvanceLedger:
    return container.advances


def get_escrow_ledger(container: LedgerContainer = Depends(get_container)) -> EscrowLedger:
    return container.escrow


def get_employee_directory() -> EmployeeDirectoryClient:
    """Provide employee directory client instance"""
    return EmployeeDirectoryClient()


async def resolve_employee(
    employee_id: int,
    employee_name: Optional[str],
    directory: EmployeeDirectoryClient,
    request_id: str,
) -> Employee:
    """Use the caller-supplied name, or look it up in the employee directory"""
    if employee_name:
        return Employee(id=employee_id, name=employee_name)
    try:
        return await directory.get_employee(employee_id)
    except EmployeeLookupError as e:
        logger.error(f"Employee directory error: {e}", extra={"request_id": request_id, "employee_id": employee_id})
        raise HTTPException(status_code=503, detail="Employee directory unavailable")


def raise_for_rejection(result: LedgerResult) -> None:
    """Translate a refused ledger operation into a 404 or 422 response"""
    if result.success:
        return
    status_code = 404 if result.reason in NOT_FOUND_REASONS else 422
    raise HTTPException(
        status_code=status_code,
        detail=RejectionDetail(reason=result.reason.value, message=result.message).model_dump(),
    )
