"""Leave balance calculator — pure, deterministic, no I/O.

For one employee and one leave cycle:

  accrued = entitlement / 12 for every month of the employment window that
            has been reached by ``as_of``, rounded to 0.1 and capped at the
            entitlement
  taken   = working days (Mon–Fri, not a holiday) of approved applications
            inside [cycle start, min(cycle end, as_of)]; a half-day counts
            0.5 when its date is a working day inside that range
  balance = accrued − taken, rounded to 0.1

Bad data never raises: unreadable dates contribute nothing.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Union

from backend.common.constants import SUPPORTED_LEAVE_TYPES, WEEKEND_DAYS
from backend.leave.dates import (
    EmploymentWindow,
    LeaveCycle,
    current_leave_cycle,
    effective_employment_window,
    enumerate_accrual_months,
    iter_days,
    round_one_decimal,
    start_of_day,
)
from backend.leave.schemas import (
    EmployeeRecord,
    HolidayRecord,
    LeaveApplicationRecord,
    LeaveBalanceEntry,
    LeaveBalances,
    LeaveCycleOut,
    LeaveStateOut,
)

EmployeeInput = Union[EmployeeRecord, Mapping[str, Any]]
ApplicationInput = Union[LeaveApplicationRecord, Mapping[str, Any]]
HolidayInput = Union[HolidayRecord, Mapping[str, Any], str, date]


# ═════════════════════════════════════════════════════════════════════
# Input normalisation
# ═════════════════════════════════════════════════════════════════════


def _as_employee(employee: EmployeeInput) -> EmployeeRecord:
    if isinstance(employee, EmployeeRecord):
        return employee
    return EmployeeRecord.model_validate(employee or {})


def _as_applications(
    applications: Optional[Iterable[ApplicationInput]],
) -> list[LeaveApplicationRecord]:
    records: list[LeaveApplicationRecord] = []
    for app in applications or []:
        if isinstance(app, LeaveApplicationRecord):
            records.append(app)
        elif isinstance(app, Mapping):
            records.append(LeaveApplicationRecord.model_validate(app))
    return records


def build_holiday_set(holidays: Optional[Iterable[HolidayInput]]) -> set[date]:
    """Collect holiday dates from strings, ``{date: ...}`` dicts or records."""
    dates: set[date] = set()
    for entry in holidays or []:
        if isinstance(entry, HolidayRecord):
            record = entry
        elif isinstance(entry, (str, date, Mapping)):
            record = HolidayRecord.model_validate(entry)
        else:
            continue
        if record.holiday_date is not None:
            dates.add(record.holiday_date)
    return dates


def is_working_day(day: datetime, holidays: set[date]) -> bool:
    return day.weekday() not in WEEKEND_DAYS and day.date() not in holidays


# ═════════════════════════════════════════════════════════════════════
# Employment window & accrual
# ═════════════════════════════════════════════════════════════════════


def employment_window(
    employee: EmployeeInput,
    cycle: LeaveCycle,
) -> Optional[EmploymentWindow]:
    """Employment span clipped to ``cycle``.

    Start: internship start, else full-time start, else cycle start.
    End: full-time end, else internship end when there is no full-time
    start, else cycle end.
    """

    record = _as_employee(employee)
    start = record.internship_start_date or record.full_time_start_date
    end = record.full_time_end_date
    if end is None and record.full_time_start_date is None:
        end = record.internship_end_date
    return effective_employment_window(start, end, cycle)


def calculate_accrued(
    employee: EmployeeInput,
    cycle: LeaveCycle,
    as_of: datetime,
) -> tuple[dict[str, float], list[datetime]]:
    """Accrued days per leave type (rounded, not yet capped) and the months counted."""

    record = _as_employee(employee)
    window = employment_window(record, cycle)
    months = enumerate_accrual_months(window, as_of)

    accrued = {
        leave_type: round_one_decimal(record.entitlement_for(leave_type) / 12 * len(months))
        for leave_type in SUPPORTED_LEAVE_TYPES
    }
    return accrued, months


# ═════════════════════════════════════════════════════════════════════
# Leave taken
# ═════════════════════════════════════════════════════════════════════


def count_leave_days(
    application: LeaveApplicationRecord,
    range_start: datetime,
    range_end: datetime,
    holidays: set[date],
) -> float:
    """Working days of ``application`` within [range_start, range_end]."""

    if application.from_date is None or application.to_date is None:
        return 0.0

    start = start_of_day(application.from_date)
    end = start_of_day(application.to_date)
    capped_start = max(start, range_start)
    capped_end = min(end, range_end)
    if capped_end < capped_start:
        return 0.0

    if application.half_day:
        # Only the first day matters, and only when it is inside the range
        if capped_start != start:
            return 0.0
        return 0.5 if is_working_day(start, holidays) else 0.0

    return float(sum(1 for day in iter_days(capped_start, capped_end) if is_working_day(day, holidays)))


def calculate_taken(
    employee_id: Any,
    applications: Iterable[ApplicationInput],
    cycle: LeaveCycle,
    as_of: datetime,
    holidays: Iterable[HolidayInput] = (),
) -> dict[str, float]:
    """Approved leave days per type consumed in the cycle up to ``as_of``."""

    totals = {leave_type: 0.0 for leave_type in SUPPORTED_LEAVE_TYPES}
    start_boundary = start_of_day(cycle.cycle_start)
    end_boundary = start_of_day(min(cycle.cycle_end, start_of_day(as_of)))
    holiday_set = holidays if isinstance(holidays, set) else build_holiday_set(holidays)

    for app in _as_applications(applications):
        if not app.belongs_to(employee_id) or not app.is_approved:
            continue
        if app.type not in totals:
            continue
        if app.from_date is None or app.to_date is None:
            continue
        if start_of_day(app.to_date) < start_boundary or start_of_day(app.from_date) > end_boundary:
            continue

        days = count_leave_days(app, start_boundary, end_boundary, holiday_set)
        totals[app.type] = round_one_decimal(totals[app.type] + days)

    return totals


# ═════════════════════════════════════════════════════════════════════
# Public entry point
# ═════════════════════════════════════════════════════════════════════


def compute_leave_state(
    employee: EmployeeInput,
    applications: Optional[Iterable[ApplicationInput]] = None,
    holidays: Optional[Iterable[HolidayInput]] = None,
    *,
    as_of: Optional[datetime] = None,
    cycle_range: Optional[LeaveCycle] = None,
) -> LeaveStateOut:
    """Compute accrued / taken / balance for every leave type.

    Same inputs always give the same result; nothing is mutated.
    """

    as_of = as_of or datetime.now()
    cycle = cycle_range or current_leave_cycle(as_of)
    record = _as_employee(employee)

    accrued, months = calculate_accrued(record, cycle, as_of)
    taken = calculate_taken(record.id, applications or [], cycle, as_of, build_holiday_set(holidays))

    entries: dict[str, LeaveBalanceEntry] = {}
    for leave_type in SUPPORTED_LEAVE_TYPES:
        entitlement = record.entitlement_for(leave_type)
        capped = round_one_decimal(min(accrued[leave_type], entitlement))
        taken_days = round_one_decimal(taken[leave_type])
        entries[leave_type] = LeaveBalanceEntry(
            balance=round_one_decimal(capped - taken_days),
            yearly_allocation=entitlement,
            monthly_accrual=entitlement / 12,
            accrued=capped,
            taken=taken_days,
        )

    balances = LeaveBalances(
        **entries,
        cycle_start=cycle.cycle_start,
        cycle_end=cycle.cycle_end,
        last_accrual_run=as_of,
    )
    return LeaveStateOut(
        employee_id=record.id,
        balances=balances,
        accrued=accrued,
        taken=taken,
        months_accrued=months,
        cycle_range=LeaveCycleOut.from_cycle(cycle),
    )
