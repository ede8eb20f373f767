"""GET/PUT /v1/employees/{employee_id}/advance-settings"""

from fastapi import APIRouter, Depends

from payroll_ledger.api.dependencies import get_advance_ledger, raise_for_rejection
from payroll_ledger.api.v1.schemas import AdvanceSettingsResponse, AdvanceSettingsSchema
from payroll_ledger.ledger.advances import AdvanceLedger

router = APIRouter()


@router.get("/employees/{employee_id}/advance-settings", response_model=AdvanceSettingsResponse)
def get_advance_settings(employee_id: int, ledger: AdvanceLedger = Depends(get_advance_ledger)):
    """Employee's advance policy; is_default is true when none was ever stored"""
    return AdvanceSettingsResponse.from_settings(
        employee_id,
        ledger.get_employee_settings(employee_id),
        is_default=not ledger.settings_store.has_custom_settings(employee_id),
    )


@router.put("/employees/{employee_id}/advance-settings", response_model=AdvanceSettingsResponse)
def update_advance_settings(
    employee_id: int,
    request_body: AdvanceSettingsSchema,
    ledger: AdvanceLedger = Depends(get_advance_ledger),
):
    """Replace the policy. Advances already granted keep their terms."""
    result = ledger.update_employee_settings(employee_id, request_body.to_settings())
    raise_for_rejection(result)
    return AdvanceSettingsResponse.from_settings(employee_id, result.entry, persisted=result.persisted)
