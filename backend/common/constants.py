"""Enums and constants for the HR portal leave engine."""

from __future__ import annotations

import enum


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    annual = "annual"
    casual = "casual"
    medical = "medical"


class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


SUPPORTED_LEAVE_TYPES: tuple[str, ...] = tuple(t.value for t in LeaveType)

# Yearly allocation (days) when an employee carries no override
DEFAULT_ENTITLEMENTS: dict[str, float] = {
    LeaveType.annual.value: 10,
    LeaveType.casual.value: 5,
    LeaveType.medical.value: 14,
}

# Leave cycle runs July 1 → June 30
CYCLE_START_MONTH = 7

# Textual placeholders found in imported employment date columns
DATE_SENTINELS = frozenset({"current", "present", "n/a", "na", "yes", "no"})

# Saturday (5) and Sunday (6)
WEEKEND_DAYS = frozenset({5, 6})


# ── Document store ──────────────────────────────────────────────────

class Collection(str, enum.Enum):
    employees = "employees"
    applications = "applications"
    holidays = "holidays"


RECRUITMENT_APPLICATION_TYPE = "recruitment"
