"""Per-employee locking for ledger mutations"""

import threading
from typing import Dict


class EmployeeLocks:
    """Hands out one re-entrant lock per employee.

    Holding an employee's lock makes validate-then-append sequences atomic
    for that employee, e.g. two concurrent advance requests cannot both pass
    the "no active advance" check.
    """

    def __init__(self) -> None:
        self._locks: Dict[int, threading.RLock] = {}
        self._guard = threading.Lock()

    def for_employee(self, employee_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(employee_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[employee_id] = lock
            return lock
