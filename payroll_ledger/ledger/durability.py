"""Write-through of in-memory ledger mutations to the store"""

import logging
from typing import Callable

from payroll_ledger.domain.exceptions import PersistenceError
from payroll_ledger.infrastructure.observability.metrics import persistence_failure_counter

logger = logging.getLogger(__name__)


def write_through(operation: str, write: Callable[[], None]) -> bool:
    """
    Run a store write for a mutation that has already been applied in memory.

    A failed write is logged and counted but not raised: the in-memory state
    stays authoritative until restart, and the caller is told the change is
    not durable.

    Returns:
        True when the write committed, False otherwise
    """
    try:
        write()
    except PersistenceError as e:
        persistence_failure_counter.labels(operation=operation).inc()
        logger.error(
            "Ledger write failed; change is held in memory only",
            extra={"operation": operation, "error": str(e)},
        )
        return False
    return True


def load_or_default(operation: str, load: Callable[[], object], default: object) -> object:
    """Read persisted state, starting from ``default`` if the store is unreadable"""
    try:
        return load()
    except PersistenceError as e:
        persistence_failure_counter.labels(operation=operation).inc()
        logger.error(
            "Ledger load failed; starting from empty state",
            extra={"operation": operation, "error": str(e)},
        )
        return default
