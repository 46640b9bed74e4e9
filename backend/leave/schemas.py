"""Leave Pydantic v2 schemas — storage records and API responses.

Naming conventions:
  - *Record   → documents read from the store, validated at the boundary
  - *Out      → response bodies (read)
  - everything serialises with the camelCase keys the documents use
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from backend.common.constants import DEFAULT_ENTITLEMENTS, LeaveStatus
from backend.leave.dates import LeaveCycle, parse_flexible_date, resolve_date_field

# ── Legacy employment-date columns, most specific first ─────────────

INTERNSHIP_START_KEYS = (
    "internshipStartDate",
    "Start Date - Internship or Probation",
)
FULL_TIME_START_KEYS = (
    "fullTimeStartDate",
    "startDate",
    "start_date",
    "Start Date - Full Time",
)
INTERNSHIP_END_KEYS = (
    "internshipEndDate",
    "End Date - Internship or Probation",
)
FULL_TIME_END_KEYS = (
    "fullTimeEndDate",
    "endDate",
    "end_date",
    "End Date - Full Time",
)

EMPLOYMENT_DATE_FIELDS: dict[str, tuple[str, ...]] = {
    "internshipStartDate": INTERNSHIP_START_KEYS,
    "fullTimeStartDate": FULL_TIME_START_KEYS,
    "internshipEndDate": INTERNSHIP_END_KEYS,
    "fullTimeEndDate": FULL_TIME_END_KEYS,
}


def _finite_or_none(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    return numeric if math.isfinite(numeric) else None


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ═════════════════════════════════════════════════════════════════════
# Storage records
# ═════════════════════════════════════════════════════════════════════


class EmployeeRecord(_CamelModel):
    """Employee document as the leave engine sees it.

    Employment dates are resolved from their legacy column names before
    field validation, so ``startDate`` or ``Start Date - Full Time`` land in
    ``full_time_start_date``. Unparseable values become ``None``.
    """

    id: Any = None
    internship_start_date: Optional[datetime] = None
    full_time_start_date: Optional[datetime] = None
    internship_end_date: Optional[datetime] = None
    full_time_end_date: Optional[datetime] = None
    annual_leave_entitlement: Optional[float] = None
    casual_leave_entitlement: Optional[float] = None
    medical_leave_entitlement: Optional[float] = None
    leave_balances: Optional[dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def resolve_legacy_dates(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        resolved = dict(data)
        for alias, keys in EMPLOYMENT_DATE_FIELDS.items():
            resolved[alias] = resolve_date_field(data, keys)
        return resolved

    @field_validator(
        "annual_leave_entitlement",
        "casual_leave_entitlement",
        "medical_leave_entitlement",
        mode="before",
    )
    @classmethod
    def coerce_entitlement(cls, v: Any) -> Optional[float]:
        return _finite_or_none(v)

    @field_validator("leave_balances", mode="before")
    @classmethod
    def drop_malformed_balances(cls, v: Any) -> Optional[dict[str, Any]]:
        return dict(v) if isinstance(v, Mapping) else None

    def entitlement_for(self, leave_type: str) -> float:
        """Yearly allocation: explicit override, stored allocation, default."""
        override = getattr(self, f"{leave_type}_leave_entitlement", None)
        if override is not None:
            return override
        stored = (self.leave_balances or {}).get(leave_type)
        if isinstance(stored, Mapping):
            allocation = _finite_or_none(stored.get("yearlyAllocation"))
            if allocation is not None:
                return allocation
        return float(DEFAULT_ENTITLEMENTS.get(leave_type, 0))


class LeaveApplicationRecord(_CamelModel):
    """Leave application document; malformed dates become ``None``."""

    employee_id: Any = None
    type: str = ""
    status: str = ""
    from_date: Optional[datetime] = Field(None, alias="from")
    to_date: Optional[datetime] = Field(None, alias="to")
    half_day: bool = False

    @field_validator("type", "status", mode="before")
    @classmethod
    def lower_text(cls, v: Any) -> str:
        return str(v or "").strip().lower()

    @field_validator("from_date", "to_date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> Optional[datetime]:
        return parse_flexible_date(v)

    @field_validator("half_day", mode="before")
    @classmethod
    def truthy(cls, v: Any) -> bool:
        return bool(v)

    @property
    def is_approved(self) -> bool:
        return self.status == LeaveStatus.approved.value

    def belongs_to(self, employee_id: Any) -> bool:
        if self.employee_id is None or employee_id is None:
            return False
        return str(self.employee_id) == str(employee_id)


class HolidayRecord(BaseModel):
    """Holiday entry — either a bare ``YYYY-MM-DD`` string or ``{date: ...}``."""

    holiday_date: Optional[date] = Field(None, alias="date")
    name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def wrap_plain_string(cls, data: Any) -> Any:
        if isinstance(data, (str, date)):
            return {"date": data}
        return data

    @field_validator("holiday_date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> Optional[date]:
        parsed = parse_flexible_date(v)
        return parsed.date() if parsed else None

    @field_validator("name", mode="before")
    @classmethod
    def stringify_name(cls, v: Any) -> Optional[str]:
        return str(v) if v is not None else None


# ═════════════════════════════════════════════════════════════════════
# Leave balances (persisted on the employee document)
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceEntry(_CamelModel):
    """Balance for one leave type."""

    balance: float = 0.0
    yearly_allocation: float = 0.0
    monthly_accrual: float = 0.0
    accrued: float = 0.0
    taken: float = 0.0

    @classmethod
    def default_for(cls, leave_type: str) -> "LeaveBalanceEntry":
        allocation = float(DEFAULT_ENTITLEMENTS.get(leave_type, 0))
        return cls(yearly_allocation=allocation, monthly_accrual=allocation / 12)


class LeaveBalances(_CamelModel):
    """All leave-type balances plus the cycle they were computed for."""

    annual: LeaveBalanceEntry = Field(
        default_factory=lambda: LeaveBalanceEntry.default_for("annual")
    )
    casual: LeaveBalanceEntry = Field(
        default_factory=lambda: LeaveBalanceEntry.default_for("casual")
    )
    medical: LeaveBalanceEntry = Field(
        default_factory=lambda: LeaveBalanceEntry.default_for("medical")
    )
    cycle_start: Optional[datetime] = None
    cycle_end: Optional[datetime] = None
    last_accrual_run: Optional[datetime] = None

    def to_document(self) -> dict[str, Any]:
        """JSON-ready camelCase dict as stored under ``leaveBalances``."""
        return self.model_dump(by_alias=True, mode="json")


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class LeaveCycleOut(_CamelModel):
    """Leave cycle boundaries."""

    cycle_start: datetime
    cycle_end: datetime
    year_label: str

    @classmethod
    def from_cycle(cls, cycle: LeaveCycle) -> "LeaveCycleOut":
        return cls(
            cycle_start=cycle.cycle_start,
            cycle_end=cycle.cycle_end,
            year_label=cycle.year_label,
        )


class LeaveStateOut(_CamelModel):
    """Result of one balance computation."""

    employee_id: Any = None
    balances: LeaveBalances
    accrued: dict[str, float]
    taken: dict[str, float]
    months_accrued: list[datetime] = Field(default_factory=list)
    cycle_range: LeaveCycleOut


class RecalculationSummary(_CamelModel):
    """Outcome of a roster-wide recalculation run."""

    processed_count: int
    updated_count: int
    cycle_start: datetime
    cycle_end: datetime
    as_of: datetime


class BackfillSummary(_CamelModel):
    """Outcome of the leave-balance backfill migration."""

    total_employees: int
    updated_count: int
