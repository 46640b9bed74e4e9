"""Leave accrual service — roster-wide recalculation and balance backfill.

Business logic:
  - Recalculate every employee's balances for the current cycle and persist
    the roster in one batch, only when something actually changed
  - Monthly accrual entry point for the scheduled job
  - Per-employee computed state for the API (read-only)
  - Backfill default balances for employees imported without them
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from backend.common.constants import Collection, SUPPORTED_LEAVE_TYPES
from backend.common.exceptions import NotFoundException
from backend.documents.cache import DocumentCache
from backend.leave.calculator import build_holiday_set, compute_leave_state
from backend.leave.dates import current_leave_cycle
from backend.leave.schemas import (
    BackfillSummary,
    EmployeeRecord,
    LeaveApplicationRecord,
    LeaveBalances,
    LeaveStateOut,
    RecalculationSummary,
)

logger = logging.getLogger(__name__)

BALANCES_FIELD = "leaveBalances"

# Stamped on every run; excluded when deciding whether a write is needed
_RUN_STAMP_FIELD = "lastAccrualRun"


def _comparable(balances: Any) -> Any:
    if not isinstance(balances, Mapping):
        return balances
    return {key: value for key, value in balances.items() if key != _RUN_STAMP_FIELD}


def balances_changed(previous: Any, current: Mapping[str, Any]) -> bool:
    """True when the stored balances differ from a freshly computed set."""
    return _comparable(previous) != _comparable(current)


# ═════════════════════════════════════════════════════════════════════
# LeaveAccrualService
# ═════════════════════════════════════════════════════════════════════


class LeaveAccrualService:
    """Async accrual operations over the cached document store."""

    def __init__(self, cache: DocumentCache) -> None:
        self._cache = cache

    # ─────────────────────────────────────────────────────────────────
    # Recalculation
    # ─────────────────────────────────────────────────────────────────

    async def recalculate_all(
        self,
        as_of: Optional[datetime] = None,
    ) -> RecalculationSummary:
        """Recompute balances for the whole roster.

        Writes the roster back in a single transaction when at least one
        employee's balances changed; otherwise performs no write. Storage
        failures propagate and leave the stored roster untouched.
        """

        as_of = as_of or datetime.now()
        cycle = current_leave_cycle(as_of)
        snapshot = await self._cache.get()

        applications = [
            LeaveApplicationRecord.model_validate(app)
            for app in snapshot.applications
            if isinstance(app, Mapping)
        ]
        holidays = build_holiday_set(snapshot.holidays)

        roster: list[dict[str, Any]] = []
        updated = 0
        for raw in snapshot.employees:
            if not isinstance(raw, Mapping):
                continue
            state = compute_leave_state(
                raw, applications, holidays, as_of=as_of, cycle_range=cycle,
            )
            balances = state.balances.to_document()
            if balances_changed(raw.get(BALANCES_FIELD), balances):
                updated += 1
            roster.append({**raw, BALANCES_FIELD: balances})

        if updated:
            await self._cache.write(Collection.employees.value, roster)
            logger.info(
                "Leave balances updated for %d of %d employees (cycle %s)",
                updated, len(roster), cycle.year_label,
            )
        else:
            logger.info(
                "Leave balances unchanged for %d employees (cycle %s)",
                len(roster), cycle.year_label,
            )

        return RecalculationSummary(
            processed_count=len(roster),
            updated_count=updated,
            cycle_start=cycle.cycle_start,
            cycle_end=cycle.cycle_end,
            as_of=as_of,
        )

    async def accrue_monthly(self, now: Optional[datetime] = None) -> RecalculationSummary:
        """Entry point for the first-of-month accrual job."""
        return await self.recalculate_all(now)

    # ─────────────────────────────────────────────────────────────────
    # Single employee
    # ─────────────────────────────────────────────────────────────────

    async def get_employee_leave_state(
        self,
        employee_id: str,
        as_of: Optional[datetime] = None,
    ) -> LeaveStateOut:
        """Compute (without persisting) one employee's current balances."""

        snapshot = await self._cache.get()
        employee = next(
            (
                emp for emp in snapshot.employees
                if isinstance(emp, Mapping)
                and emp.get("id") is not None
                and str(emp.get("id")) == str(employee_id)
            ),
            None,
        )
        if employee is None:
            raise NotFoundException("Employee", employee_id)

        return compute_leave_state(
            employee, snapshot.applications, snapshot.holidays, as_of=as_of,
        )

    # ─────────────────────────────────────────────────────────────────
    # Migration
    # ─────────────────────────────────────────────────────────────────

    async def backfill_leave_balances(self) -> BackfillSummary:
        """Give every employee without a usable ``leaveBalances`` the defaults."""

        snapshot = await self._cache.get(force=True)
        roster: list[dict[str, Any]] = []
        updated = 0

        for raw in snapshot.employees:
            if not isinstance(raw, Mapping):
                continue
            record = EmployeeRecord.model_validate(raw)
            if record.leave_balances is not None and all(
                isinstance(record.leave_balances.get(t), Mapping)
                for t in SUPPORTED_LEAVE_TYPES
            ):
                roster.append(dict(raw))
                continue
            merged = LeaveBalances().to_document()
            for leave_type in SUPPORTED_LEAVE_TYPES:
                existing = (record.leave_balances or {}).get(leave_type)
                if isinstance(existing, Mapping):
                    merged[leave_type] = dict(existing)
            for key in ("cycleStart", "cycleEnd", "lastAccrualRun"):
                if record.leave_balances and key in record.leave_balances:
                    merged[key] = record.leave_balances[key]
            roster.append({**raw, BALANCES_FIELD: merged})
            updated += 1

        if updated:
            await self._cache.write(Collection.employees.value, roster)

        logger.info(
            "Processed %d employees; backfilled leave balances for %d",
            len(roster), updated,
        )
        return BackfillSummary(total_employees=len(roster), updated_count=updated)
