"""Per-employee advance policy and escrow targets"""

import logging
import threading
from dataclasses import replace
from datetime import date
from typing import Dict, Optional

from payroll_ledger.config import Settings, settings as app_settings
from payroll_ledger.domain.exceptions import LedgerResult, RejectionReason
from payroll_ledger.domain.models import AdvanceSettings
from payroll_ledger.infrastructure.database.store import LedgerStore
from payroll_ledger.ledger.durability import load_or_default, write_through

logger = logging.getLogger(__name__)


class SettingsStore:
    """Maps employee id to advance policy and escrow target, defaulting on miss.

    Only basic sanity checks happen here (positive amounts, positive week
    count); the advance ledger applies the policy when advances are created.
    """

    def __init__(self, config: Settings | None = None, store: Optional[LedgerStore] = None):
        self.config = config or app_settings
        self.store = store
        self._advance_settings: Dict[int, AdvanceSettings] = {}
        self._escrow_targets: Dict[int, int] = {}
        self._lock = threading.Lock()

    def load(self) -> None:
        if self.store is None:
            return
        advance_settings = load_or_default("load_advance_settings", self.store.load_advance_settings, {})
        targets = load_or_default("load_escrow_targets", self.store.load_escrow_targets, {})
        with self._lock:
            self._advance_settings = dict(advance_settings)
            self._escrow_targets = dict(targets)
        logger.info(
            "Loaded ledger settings",
            extra={"advance_settings": len(advance_settings), "escrow_targets": len(targets)},
        )

    # Advance policy

    def default_advance_settings(self) -> AdvanceSettings:
        return AdvanceSettings(
            max_advance_cents=self.config.default_max_advance_cents,
            weekly_repayment_limit_cents=self.config.default_weekly_repayment_limit_cents,
            max_repayment_weeks=self.config.default_max_repayment_weeks,
            allow_multiple_advances=False,
        )

    def get_advance_settings(self, employee_id: int) -> AdvanceSettings:
        """Return a copy of the employee's policy, or the defaults if none is stored"""
        with self._lock:
            stored = self._advance_settings.get(employee_id)
        return replace(stored) if stored else self.default_advance_settings()

    def has_custom_settings(self, employee_id: int) -> bool:
        with self._lock:
            return employee_id in self._advance_settings

    def update_advance_settings(
        self,
        employee_id: int,
        new_settings: AdvanceSettings,
        today: date | None = None,
    ) -> LedgerResult[AdvanceSettings]:
        """Overwrite the employee's policy. Existing advances are not re-validated."""
        problem = _settings_problem(new_settings)
        if problem:
            return LedgerResult.rejected(RejectionReason.INVALID_SETTINGS, problem)

        stored = replace(new_settings, last_modified=today or date.today())
        with self._lock:
            self._advance_settings[employee_id] = stored

        persisted = True
        if self.store is not None:
            persisted = write_through(
                "save_advance_settings",
                lambda: self.store.save_advance_settings(employee_id, stored),
            )
        logger.info("Updated advance settings", extra={"employee_id": employee_id})
        return LedgerResult.ok(replace(stored), persisted=persisted)

    # Escrow targets

    def get_escrow_target(self, employee_id: int) -> int:
        with self._lock:
            return self._escrow_targets.get(employee_id, self.config.default_escrow_target_cents)

    def set_escrow_target(self, employee_id: int, target_cents: int) -> LedgerResult[int]:
        if target_cents <= 0:
            return LedgerResult.rejected(RejectionReason.INVALID_TARGET, "Escrow target must be positive")

        with self._lock:
            self._escrow_targets[employee_id] = target_cents

        persisted = True
        if self.store is not None:
            persisted = write_through(
                "save_escrow_target",
                lambda: self.store.save_escrow_target(employee_id, target_cents),
            )
        logger.info("Set escrow target", extra={"employee_id": employee_id, "target_cents": target_cents})
        return LedgerResult.ok(target_cents, persisted=persisted)


def _settings_problem(candidate: AdvanceSettings) -> str | None:
    if candidate.max_advance_cents <= 0:
        return "Maximum advance must be positive"
    if candidate.weekly_repayment_limit_cents <= 0:
        return "Weekly repayment limit must be positive"
    if isinstance(candidate.max_repayment_weeks, bool) or not isinstance(candidate.max_repayment_weeks, int):
        return "Maximum repayment weeks must be a whole number"
    if candidate.max_repayment_weeks <= 0:
        return "Maximum repayment weeks must be positive"
    return None
