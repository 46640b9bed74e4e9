"""Leave-cycle and date helpers — pure functions, no I/O.

Employee dates arrive from years of spreadsheet imports, so parsing is
deliberately forgiving: anything that cannot be read as a date becomes
``None`` instead of raising.

Cycle maths:
  - A leave cycle runs July 1 00:00 → June 30 23:59:59.999 of the next year.
  - Accrual is counted in whole months: a month counts once any day of the
    employment window inside it has been reached.
"""

from __future__ import annotations

import calendar
import math
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Mapping, NamedTuple, Optional

from backend.common.constants import CYCLE_START_MONTH, DATE_SENTINELS

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_DASH_DATE = re.compile(r"^(\d{1,2})-([A-Za-z]{3,})-(\d{2,4})$")

# Tried in order after ISO-8601
_FALLBACK_FORMATS = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%a %b %d %Y",
)


class LeaveCycle(NamedTuple):
    cycle_start: datetime
    cycle_end: datetime
    year_label: str


class EmploymentWindow(NamedTuple):
    effective_start: datetime
    effective_end: datetime


# ═════════════════════════════════════════════════════════════════════
# Parsing
# ═════════════════════════════════════════════════════════════════════


def _naive(value: datetime) -> Optional[datetime]:
    if value.tzinfo is None:
        return value
    try:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    except (OverflowError, ValueError):
        # Shifting to UTC leaves the supported year range
        return None


def _parse_dash_date(text: str) -> Optional[datetime]:
    match = _DASH_DATE.match(text)
    if not match:
        return None
    day = int(match.group(1))
    month = _MONTHS.get(match.group(2)[:3].lower())
    year = int(match.group(3))
    if year < 100:
        year += 2000
    if month is None:
        return None
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def parse_flexible_date(value: Any) -> Optional[datetime]:
    """Parse a date from the heterogeneous formats found in employee data.

    Accepts ``datetime``/``date`` objects, ISO-8601 strings, ``15-Mar-24`` /
    ``15-Mar-2024`` dash dates and a handful of spelled-out formats. Returns
    ``None`` for sentinels (``"current"``, ``"n/a"``...), empty values and
    anything unparseable. Aware datetimes are converted to naive UTC.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time())
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text or text.lower() in DATE_SENTINELS:
        return None

    parsed = _parse_dash_date(text)
    if parsed is not None:
        return parsed

    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return _naive(datetime.fromisoformat(iso_text))
    except (ValueError, OverflowError):
        pass

    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def resolve_date_field(
    record: Mapping[str, Any],
    candidate_keys: Iterable[str],
) -> Optional[datetime]:
    """Return the first candidate key whose value parses as a date.

    Keys that are present but hold garbage are skipped, so a legacy column
    can still supply the date when the canonical one is ``"n/a"``.
    """

    if not isinstance(record, Mapping):
        return None
    for key in candidate_keys:
        if key in record:
            parsed = parse_flexible_date(record[key])
            if parsed is not None:
                return parsed
    return None


# ═════════════════════════════════════════════════════════════════════
# Day / month arithmetic
# ═════════════════════════════════════════════════════════════════════


def start_of_day(value: Any) -> Optional[datetime]:
    """Truncate to midnight; ``None`` for anything that is not a date."""
    if isinstance(value, datetime):
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    if isinstance(value, date):
        return datetime.combine(value, time())
    return None


def month_start(value: datetime) -> datetime:
    return datetime(value.year, value.month, 1)


def month_end(value: datetime) -> datetime:
    last_day = calendar.monthrange(value.year, value.month)[1]
    return datetime(value.year, value.month, last_day, 23, 59, 59, 999000)


def next_month(value: datetime) -> datetime:
    if value.month == 12:
        return datetime(value.year + 1, 1, 1)
    return datetime(value.year, value.month + 1, 1)


def round_one_decimal(value: Any) -> float:
    """Round half-up to one decimal place; non-numeric or non-finite → 0."""
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(numeric):
        return 0.0
    return math.floor(numeric * 10 + 0.5) / 10


def iter_days(start: datetime, end: datetime):
    """Yield each midnight from ``start`` to ``end`` inclusive."""
    cursor = start_of_day(start)
    last = start_of_day(end)
    while cursor <= last:
        yield cursor
        cursor += timedelta(days=1)


# ═════════════════════════════════════════════════════════════════════
# Leave cycle
# ═════════════════════════════════════════════════════════════════════


def current_leave_cycle(now: Optional[datetime] = None) -> LeaveCycle:
    """Return the July → June cycle containing ``now`` (default: today)."""
    base = now or datetime.now()
    year = base.year if base.month >= CYCLE_START_MONTH else base.year - 1
    cycle_start = datetime(year, CYCLE_START_MONTH, 1)
    cycle_end = datetime(year + 1, CYCLE_START_MONTH - 1, 30, 23, 59, 59, 999000)
    return LeaveCycle(cycle_start, cycle_end, f"{year}-{year + 1}")


def effective_employment_window(
    employment_start: Optional[datetime],
    employment_end: Optional[datetime],
    cycle: LeaveCycle,
) -> Optional[EmploymentWindow]:
    """Clip an employment span to the cycle; ``None`` when they don't overlap.

    Missing bounds default to the cycle's own start/end.
    """

    cycle_start = start_of_day(cycle.cycle_start)
    cycle_end = start_of_day(cycle.cycle_end)
    start = start_of_day(employment_start) or cycle_start
    end = start_of_day(employment_end) or cycle_end

    effective_start = max(start, cycle_start)
    effective_end = min(end, cycle_end)
    if effective_start > effective_end:
        return None
    return EmploymentWindow(effective_start, effective_end)


def enumerate_accrual_months(
    window: Optional[EmploymentWindow],
    as_of: Optional[datetime] = None,
) -> list[datetime]:
    """List first-of-month anchors that earn accrual up to ``as_of``.

    A month is included when at least one day of the window inside that
    month falls on or before the cutoff (``as_of`` truncated to midnight).
    """

    if window is None:
        return []

    cutoff = start_of_day(as_of or datetime.now())
    accrual_end = min(window.effective_end, cutoff)
    months: list[datetime] = []

    cursor = month_start(window.effective_start)
    while cursor <= accrual_end:
        active_start = max(cursor, window.effective_start)
        boundary = min(month_end(cursor), accrual_end)
        if boundary >= active_start:
            months.append(cursor)
        cursor = next_month(cursor)

    return months
