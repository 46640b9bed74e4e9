"""Leave balance calculator tests — accrual, leave taken, windows, edge cases.

All scenarios use the 2024-07-01 → 2025-06-30 cycle.
Calendar reference: 2024-10-01 is a Tuesday, 2024-10-05 a Saturday,
2024-12-23 a Monday, 2024-07-01 a Monday.
"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from backend.leave.calculator import (
    build_holiday_set,
    calculate_taken,
    compute_leave_state,
    count_leave_days,
    employment_window,
)
from backend.leave.dates import current_leave_cycle
from backend.leave.schemas import EmployeeRecord, LeaveApplicationRecord
from tests.conftest import CYCLE_END, _make_application, _make_employee

CYCLE = current_leave_cycle(datetime(2024, 7, 1))


def _state(employee, applications=(), holidays=(), as_of=CYCLE_END):
    return compute_leave_state(employee, list(applications), list(holidays), as_of=as_of)


# ═════════════════════════════════════════════════════════════════════
# Accrual
# ═════════════════════════════════════════════════════════════════════


class TestAccrual:

    def test_full_cycle_accrues_full_default_entitlement(self):
        state = _state(_make_employee())
        balances = state.balances
        assert (balances.annual.accrued, balances.annual.balance) == (10.0, 10.0)
        assert (balances.casual.accrued, balances.casual.balance) == (5.0, 5.0)
        assert (balances.medical.accrued, balances.medical.balance) == (14.0, 14.0)
        assert len(state.months_accrued) == 12

    def test_three_full_months_from_cycle_start(self):
        employee = _make_employee(fullTimeStartDate="2024-07-01", annualLeaveEntitlement=12)
        state = _state(employee, as_of=datetime(2024, 9, 30))
        assert state.balances.annual.accrued == 3.0
        assert state.balances.annual.yearly_allocation == 12
        assert state.balances.annual.monthly_accrual == 1.0

    def test_hired_six_months_before_as_of(self):
        employee = _make_employee(fullTimeStartDate="2025-01-01")
        state = _state(employee, as_of=datetime(2025, 6, 30))
        annual = state.balances.annual
        assert (annual.accrued, annual.taken, annual.balance) == (5.0, 0.0, 5.0)

    def test_internship_start_takes_precedence(self):
        employee = _make_employee(
            internshipStartDate="2024-08-01",
            fullTimeStartDate="2024-11-01",
        )
        state = _state(employee, as_of=datetime(2024, 12, 31))
        assert state.months_accrued[0] == datetime(2024, 8, 1)
        assert len(state.months_accrued) == 5
        assert state.balances.annual.accrued == 4.2

    def test_mid_cycle_hire_accrues_from_start_month(self):
        employee = _make_employee(fullTimeStartDate="2024-10-20")
        state = _state(employee, as_of=datetime(2024, 11, 30))
        assert state.months_accrued == [datetime(2024, 10, 1), datetime(2024, 11, 1)]

    def test_zero_entitlement_override_accrues_nothing(self):
        state = _state(_make_employee(casualLeaveEntitlement=0))
        assert state.balances.casual.accrued == 0.0
        assert state.balances.casual.yearly_allocation == 0.0
        assert state.balances.annual.accrued == 10.0

    def test_numeric_string_override(self):
        state = _state(_make_employee(annualLeaveEntitlement="12"))
        assert state.balances.annual.accrued == 12.0

    def test_non_numeric_override_falls_back_to_default(self):
        state = _state(_make_employee(annualLeaveEntitlement="lots"))
        assert state.balances.annual.yearly_allocation == 10.0

    def test_stored_allocation_used_when_no_override(self):
        employee = _make_employee(
            leaveBalances={"medical": {"balance": 3, "yearlyAllocation": 12}},
        )
        assert _state(employee).balances.medical.accrued == 12.0

    def test_accrued_capped_at_entitlement(self):
        employee = _make_employee(annualLeaveEntitlement=7)
        assert _state(employee).balances.annual.accrued == 7.0

    def test_employment_ended_before_cycle_is_all_zero(self):
        employee = _make_employee(fullTimeStartDate="2022-01-01", fullTimeEndDate="2024-05-31")
        apps = [_make_application(start="2024-10-01")]
        state = _state(employee, apps)
        for entry in (state.balances.annual, state.balances.casual, state.balances.medical):
            assert entry.accrued == 0.0
        assert state.months_accrued == []
        assert state.accrued == {"annual": 0.0, "casual": 0.0, "medical": 0.0}

    def test_internship_end_applies_without_full_time_start(self):
        employee = _make_employee(internshipStartDate="2024-07-01", internshipEndDate="2024-09-15")
        state = _state(employee)
        assert len(state.months_accrued) == 3

    def test_internship_end_ignored_once_full_time(self):
        employee = _make_employee(
            internshipStartDate="2024-07-01",
            internshipEndDate="2024-09-15",
            fullTimeStartDate="2024-09-16",
        )
        assert len(_state(employee).months_accrued) == 12

    def test_garbage_dates_fall_back_to_cycle_bounds(self):
        employee = _make_employee(
            internshipStartDate="sometime soon",
            fullTimeEndDate="current",
        )
        state = _state(employee)
        assert len(state.months_accrued) == 12
        assert state.balances.annual.accrued == 10.0

    def test_open_ended_end_date_beyond_year_range(self):
        employee = _make_employee(fullTimeEndDate="9999-12-31T23:00:00-05:00")
        state = _state(employee)
        assert len(state.months_accrued) == 12
        assert state.balances.annual.accrued == 10.0

    def test_legacy_column_names(self):
        employee = _make_employee(**{"Start Date - Full Time": "1-Jan-25", "End Date - Full Time": "Present"})
        state = _state(employee, as_of=datetime(2025, 3, 31))
        assert state.months_accrued[0] == datetime(2025, 1, 1)
        assert len(state.months_accrued) == 3

    def test_employment_window_helper(self):
        record = EmployeeRecord.model_validate(_make_employee(startDate="15-Aug-24"))
        window = employment_window(record, CYCLE)
        assert window.effective_start == datetime(2024, 8, 15)
        assert window.effective_end == datetime(2025, 6, 30)


# ═════════════════════════════════════════════════════════════════════
# Leave taken
# ═════════════════════════════════════════════════════════════════════


class TestLeaveTaken:

    def test_weekday_half_day_counts_half(self):
        apps = [_make_application(start="2024-10-02", half_day=True)]
        assert _state(_make_employee(), apps).balances.annual.taken == 0.5

    def test_saturday_half_day_counts_nothing(self):
        apps = [_make_application(start="2024-10-05", half_day=True)]
        assert _state(_make_employee(), apps).balances.annual.taken == 0.0

    def test_holiday_half_day_counts_nothing(self):
        apps = [_make_application(start="2024-12-25", half_day=True)]
        state = _state(_make_employee(), apps, holidays=["2024-12-25"])
        assert state.balances.annual.taken == 0.0

    def test_holiday_inside_range_excluded(self):
        apps = [_make_application(start="2024-12-23", end="2024-12-27")]
        state = _state(_make_employee(), apps, holidays=[{"date": "2024-12-25", "name": "Christmas"}])
        assert state.balances.annual.taken == 4.0

    def test_weekends_excluded(self):
        # Thursday → next Tuesday: Thu, Fri, Mon, Tue
        apps = [_make_application(start="2024-10-03", end="2024-10-08")]
        assert _state(_make_employee(), apps).balances.annual.taken == 4.0

    def test_medical_example(self):
        apps = [_make_application(leave_type="medical", start="2024-10-01", end="2024-10-03")]
        medical = _state(_make_employee(), apps).balances.medical
        assert (medical.accrued, medical.taken, medical.balance) == (14.0, 3.0, 11.0)

    def test_clipped_at_cycle_start(self):
        # 2024-06-27 (Thu) → 2024-07-02 (Tue): only Mon 1st and Tue 2nd are in-cycle
        apps = [_make_application(start="2024-06-27", end="2024-07-02")]
        assert _state(_make_employee(), apps).balances.annual.taken == 2.0

    def test_clipped_at_as_of(self):
        apps = [_make_application(start="2024-10-01", end="2024-10-04")]
        state = _state(_make_employee(), apps, as_of=datetime(2024, 10, 2, 15))
        assert state.balances.annual.taken == 2.0

    def test_future_application_ignored(self):
        apps = [_make_application(start="2024-11-04", end="2024-11-05")]
        state = _state(_make_employee(), apps, as_of=datetime(2024, 10, 31))
        assert state.balances.annual.taken == 0.0

    def test_half_day_before_cycle_ignored(self):
        apps = [_make_application(start="2024-06-28", end="2024-07-01", half_day=True)]
        assert _state(_make_employee(), apps).balances.annual.taken == 0.0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"status": "pending"},
            {"status": "rejected"},
            {"employee_id": "emp-2"},
            {"leave_type": "recruitment"},
            {"leave_type": "sabbatical"},
            {"start": "not a date"},
            {"start": "2024-10-10", "end": "2024-10-01"},
        ],
    )
    def test_applications_that_do_not_count(self, overrides):
        apps = [_make_application(**overrides)]
        state = _state(_make_employee(), apps)
        assert state.taken == {"annual": 0.0, "casual": 0.0, "medical": 0.0}

    def test_status_and_type_case_insensitive(self):
        apps = [{"employeeId": "emp-1", "type": "Casual", "status": "APPROVED", "from": "2024-10-01", "to": "2024-10-01"}]
        assert _state(_make_employee(), apps).balances.casual.taken == 1.0

    def test_numeric_employee_id_matches_string(self):
        apps = [_make_application(employee_id="17")]
        state = _state(_make_employee(employee_id=17), apps)
        assert state.balances.annual.taken == 1.0

    def test_negative_balance_allowed(self):
        apps = [_make_application(start="2024-07-01", end="2024-07-12")]
        state = _state(_make_employee(), apps, as_of=datetime(2024, 7, 31))
        annual = state.balances.annual
        assert annual.accrued == 0.8
        assert annual.taken == 10.0
        assert annual.balance == -9.2

    def test_calculate_taken_per_type(self):
        apps = [
            _make_application(leave_type="annual", start="2024-10-01"),
            _make_application(leave_type="casual", start="2024-10-02", half_day=True),
            _make_application(leave_type="medical", start="2024-10-07", end="2024-10-08"),
        ]
        totals = calculate_taken("emp-1", apps, CYCLE, CYCLE_END)
        assert totals == {"annual": 1.0, "casual": 0.5, "medical": 2.0}

    def test_count_leave_days_missing_dates(self):
        app = LeaveApplicationRecord.model_validate({"type": "annual", "from": None, "to": "2024-10-01"})
        assert count_leave_days(app, datetime(2024, 7, 1), datetime(2025, 6, 30), set()) == 0.0

    def test_build_holiday_set_mixed_inputs(self):
        holidays = build_holiday_set(["2024-12-25", {"date": "2025-01-01"}, {"name": "no date"}, date(2024, 8, 15), 7])
        assert holidays == {date(2024, 12, 25), date(2025, 1, 1), date(2024, 8, 15)}

    def test_holiday_with_non_string_name_still_counts(self):
        apps = [_make_application(start="2024-12-23", end="2024-12-27")]
        holidays = [{"date": "2024-12-25", "name": 2024}, {"date": "2024-12-26", "name": ["Boxing", "Day"]}]
        state = _state(_make_employee(), apps, holidays=holidays)
        assert state.balances.annual.taken == 3.0


# ═════════════════════════════════════════════════════════════════════
# Result shape
# ═════════════════════════════════════════════════════════════════════


class TestLeaveState:

    def test_cycle_and_run_stamped(self):
        as_of = datetime(2024, 11, 15, 9, 30)
        state = _state(_make_employee(), as_of=as_of)
        assert state.balances.cycle_start == datetime(2024, 7, 1)
        assert state.balances.cycle_end == datetime(2025, 6, 30, 23, 59, 59, 999000)
        assert state.balances.last_accrual_run == as_of
        assert state.cycle_range.year_label == "2024-2025"

    def test_supplied_cycle_range_is_used(self):
        cycle = current_leave_cycle(datetime(2023, 7, 1))
        state = compute_leave_state(_make_employee(), [], [], as_of=CYCLE_END, cycle_range=cycle)
        assert state.balances.cycle_start == datetime(2023, 7, 1)

    def test_document_shape(self):
        document = _state(_make_employee()).balances.to_document()
        assert set(document) == {"annual", "casual", "medical", "cycleStart", "cycleEnd", "lastAccrualRun"}
        assert set(document["annual"]) == {"balance", "yearlyAllocation", "monthlyAccrual", "accrued", "taken"}
        assert document["cycleStart"] == "2024-07-01T00:00:00"

    def test_deterministic(self):
        apps = [_make_application(start="2024-10-01", end="2024-10-04")]
        first = _state(_make_employee(), apps, ["2024-10-02"])
        second = _state(_make_employee(), apps, ["2024-10-02"])
        assert first.model_dump() == second.model_dump()

    def test_inputs_not_mutated(self):
        employee = _make_employee(leaveBalances={"annual": {"balance": 1}})
        apps = [_make_application()]
        before = (dict(employee), [dict(a) for a in apps])
        _state(employee, apps)
        assert (employee, apps) == before
