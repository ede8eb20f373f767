"""Employee directory HTTP client for resolving display names"""

import httpx
from payroll_ledger.domain.models import Employee
from payroll_ledger.domain.exceptions import EmployeeLookupError
from payroll_ledger.config import settings


class EmployeeDirectoryClient:
    """Client for the external employee directory"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.employee_directory_url
        self.timeout = timeout or settings.http_timeout_seconds

    async def get_employee(self, employee_id: int) -> Employee:
        """
        Fetch the current display name for an employee.

        The ledger snapshots the name on each entry, so later renames never
        rewrite history.

        Raises:
            EmployeeLookupError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(f"{self.base_url}/employees/{employee_id}")
                response.raise_for_status()
                data = response.json()
                return Employee(id=int(data["id"]), name=str(data["name"]))

            except httpx.TimeoutException as e:
                raise EmployeeLookupError(f"Employee directory timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise EmployeeLookupError(f"Employee directory error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise EmployeeLookupError(f"Employee directory unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise EmployeeLookupError(f"Invalid employee data from directory: {e}") from e
