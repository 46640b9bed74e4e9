#!/usr/bin/env python3
"""Import employees from a CSV export into the ``employees`` collection.

Every CSV column is kept on the employee document as-is, so legacy date
columns such as ``Start Date - Full Time`` stay available to the accrual
engine. The ``Annual Leave`` / ``Casual Leave`` / ``Medical Leave`` columns
seed the opening balance of each leave type.

Without a CSV (or if the file is missing) a small sample roster is imported.

Usage:
    python scripts/import_employees.py employees.csv
    EMPLOYEE_CSV_PATH=employees.csv python scripts/import_employees.py
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Mapping, Optional

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

from backend.common.constants import Collection, SUPPORTED_LEAVE_TYPES
from backend.database import async_session_factory, engine
from backend.documents.store import DocumentStore
from backend.leave.schemas import LeaveBalanceEntry, LeaveBalances

logger = logging.getLogger("import_employees")

BALANCE_COLUMNS = {
    "annual": "Annual Leave",
    "casual": "Casual Leave",
    "medical": "Medical Leave",
}

SAMPLE_EMPLOYEES: list[dict[str, Any]] = [
    {
        "Name": "Alex Lee",
        "Email": "alex.lee@example.com",
        "Role": "Manager",
        "Status": "Active",
        "Department": "People Operations",
        "Position": "HR Manager",
        "Location": "Kuala Lumpur",
        "Annual Leave": 12,
        "Casual Leave": 5,
        "Medical Leave": 14,
    },
    {
        "Name": "Priya Nair",
        "Email": "priya.nair@example.com",
        "Role": "Employee",
        "Status": "Active",
        "Department": "Engineering",
        "Position": "Backend Engineer",
        "Location": "Bangalore",
        "Annual Leave": 10,
        "Casual Leave": 5,
        "Medical Leave": 12,
    },
    {
        "Name": "Jordan Smith",
        "Email": "jordan.smith@example.com",
        "Role": "Employee",
        "Status": "Active",
        "Department": "Design",
        "Position": "Product Designer",
        "Location": "Remote",
        "Annual Leave": 8,
        "Casual Leave": 4,
        "Medical Leave": 10,
    },
]


def read_csv_rows(csv_path: Optional[str]) -> list[dict[str, str]]:
    """Rows of ``csv_path`` as dicts; empty when no path or file is missing."""
    if not csv_path:
        return []
    path = Path(csv_path)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    if not path.exists():
        logger.warning("CSV file not found at %s — falling back to sample employees", path)
        return []
    with path.open(newline="", encoding="utf-8") as fh:
        return [row for row in csv.DictReader(fh) if any((v or "").strip() for v in row.values())]


def _opening_balance(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def build_employee_document(row: Mapping[str, Any], employee_id: Any) -> dict[str, Any]:
    """Employee document for one CSV row, with default leave balances."""

    balances = LeaveBalances()
    for leave_type in SUPPORTED_LEAVE_TYPES:
        entry = LeaveBalanceEntry.default_for(leave_type)
        entry.balance = _opening_balance(row.get(BALANCE_COLUMNS[leave_type]))
        setattr(balances, leave_type, entry)

    status = str(row.get("Status") or "").strip().lower()
    return {
        **dict(row),
        "id": employee_id,
        "name": row.get("Name"),
        "status": "inactive" if status == "inactive" else "active",
        "leaveBalances": balances.to_document(),
    }


async def import_employees(
    store: DocumentStore,
    rows: list[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    """Upsert one employee document per row; ids are time-based integers."""
    first_id = int(time.time() * 1000)
    documents = [build_employee_document(row, first_id + i) for i, row in enumerate(rows)]
    return await store.upsert_many(Collection.employees.value, documents)


async def _run(csv_path: Optional[str]) -> int:
    rows = read_csv_rows(csv_path)
    source = rows or SAMPLE_EMPLOYEES
    try:
        imported = await import_employees(DocumentStore(async_session_factory), source)
    except Exception:
        logger.exception("Employee import failed")
        return 1
    finally:
        await engine.dispose()

    logger.info(
        "Imported %d employees%s", len(imported), "" if rows else " (sample dataset)",
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Import employees from CSV")
    parser.add_argument(
        "csv_path",
        nargs="?",
        default=os.getenv("EMPLOYEE_CSV_PATH"),
        help="CSV file (default: $EMPLOYEE_CSV_PATH, else the sample roster)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    sys.exit(asyncio.run(_run(args.csv_path)))


if __name__ == "__main__":
    main()
