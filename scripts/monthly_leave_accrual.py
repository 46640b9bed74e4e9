#!/usr/bin/env python3
"""Monthly leave accrual — scheduled cron wrapper.

Runs on the first of every month, shortly after midnight:
    10 0 1 * *

Recomputes every employee's annual / casual / medical balances for the
current July → June cycle and persists the roster when anything changed.
Failures are logged and reported through the exit code; the job does not
retry on its own.

Usage:
    python scripts/monthly_leave_accrual.py                     # as of now
    python scripts/monthly_leave_accrual.py --as-of 2025-01-31  # back-dated run

Install in crontab:
    10 0 1 * * cd /opt/hr-portal && /usr/bin/python3 scripts/monthly_leave_accrual.py >> /var/log/leave-accrual.log 2>&1
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

from backend.database import async_session_factory, engine
from backend.documents.cache import DocumentCache
from backend.documents.store import DocumentStore
from backend.leave.schemas import RecalculationSummary
from backend.leave.service import LeaveAccrualService

logger = logging.getLogger("monthly_leave_accrual")


async def run_accrual(
    cache: DocumentCache,
    as_of: Optional[datetime] = None,
) -> Optional[RecalculationSummary]:
    """Run one accrual pass; returns ``None`` (after logging) on failure."""

    logger.info("Starting monthly leave accrual job")
    started = time.perf_counter()
    try:
        summary = await LeaveAccrualService(cache).accrue_monthly(as_of)
    except Exception:
        logger.exception("Monthly leave accrual failed")
        return None

    logger.info(
        "Monthly leave accrual completed in %.1fs: %d processed, %d updated (cycle %s → %s)",
        time.perf_counter() - started,
        summary.processed_count,
        summary.updated_count,
        summary.cycle_start.date().isoformat(),
        summary.cycle_end.date().isoformat(),
    )
    return summary


async def _run(as_of: Optional[datetime]) -> int:
    cache = DocumentCache(DocumentStore(async_session_factory))
    try:
        summary = await run_accrual(cache, as_of)
    finally:
        await engine.dispose()
    return 0 if summary is not None else 1


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Monthly leave accrual — recompute balances for the whole roster",
    )
    parser.add_argument(
        "--as-of",
        type=lambda s: datetime.strptime(s, "%Y-%m-%d"),
        default=None,
        help="Reference date (YYYY-MM-DD); defaults to now",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    sys.exit(asyncio.run(_run(args.as_of)))


if __name__ == "__main__":
    main()
