#!/usr/bin/env python3
"""Backfill default leave balances for employees that have none.

Employees imported before the accrual engine existed may carry no
``leaveBalances`` object (or a partial one). This gives each of them the
default annual / casual / medical structure, keeping whatever per-type
entries already exist, so the monthly accrual can take over.

Safe to run repeatedly: a second run finds nothing to update and writes
nothing.

Usage:
    python scripts/migrate_leave_balances.py
    python scripts/migrate_leave_balances.py --recalculate   # also run an accrual pass
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

from backend.database import async_session_factory, engine
from backend.documents.cache import DocumentCache
from backend.documents.store import DocumentStore
from backend.leave.service import LeaveAccrualService

logger = logging.getLogger("migrate_leave_balances")


async def _run(recalculate: bool) -> int:
    service = LeaveAccrualService(DocumentCache(DocumentStore(async_session_factory)))
    try:
        summary = await service.backfill_leave_balances()
        logger.info(
            "Leave balance backfill complete: %d employees, %d updated",
            summary.total_employees, summary.updated_count,
        )
        if recalculate:
            result = await service.recalculate_all()
            logger.info(
                "Recalculated balances: %d processed, %d updated",
                result.processed_count, result.updated_count,
            )
    except Exception:
        logger.exception("Leave balance migration failed")
        return 1
    finally:
        await engine.dispose()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill default leave balances")
    parser.add_argument(
        "--recalculate",
        action="store_true",
        help="Run a full accrual pass after the backfill",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    sys.exit(asyncio.run(_run(args.recalculate)))


if __name__ == "__main__":
    main()
