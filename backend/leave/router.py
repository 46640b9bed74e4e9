"""Leave router — current cycle, computed balances, recalculation, cache control.

Authentication is handled upstream of this service.
"""


from datetime import date, datetime, time
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from backend.common.rate_limit import limiter
from backend.config import settings
from backend.dependencies import get_accrual_service, get_document_cache
from backend.documents.cache import DocumentCache
from backend.leave.dates import current_leave_cycle
from backend.leave.schemas import LeaveCycleOut, LeaveStateOut, RecalculationSummary
from backend.leave.service import LeaveAccrualService

router = APIRouter(prefix="", tags=["leave"])


def _as_datetime(value: Optional[date]) -> Optional[datetime]:
    return datetime.combine(value, time()) if value else None


# ── GET /cycle ──────────────────────────────────────────────────────

@router.get("/cycle", response_model=LeaveCycleOut)
async def get_cycle(
    as_of: Optional[date] = Query(None, description="Reference date; defaults to today"),
):
    """Return the July → June leave cycle containing ``as_of``."""
    return LeaveCycleOut.from_cycle(current_leave_cycle(_as_datetime(as_of)))


# ── GET /balances/{employee_id} ─────────────────────────────────────

@router.get("/balances/{employee_id}", response_model=LeaveStateOut)
async def get_balances(
    employee_id: str,
    as_of: Optional[date] = Query(None, description="Reference date; defaults to today"),
    service: LeaveAccrualService = Depends(get_accrual_service),
):
    """Compute an employee's balances for the current cycle (not persisted)."""
    return await service.get_employee_leave_state(employee_id, _as_datetime(as_of))


# ── POST /recalculate ───────────────────────────────────────────────

@router.post("/recalculate", response_model=RecalculationSummary)
@limiter.limit(settings.RECALCULATE_RATE_LIMIT)
async def recalculate(
    request: Request,
    as_of: Optional[date] = Query(None, description="Reference date; defaults to now"),
    service: LeaveAccrualService = Depends(get_accrual_service),
):
    """Recalculate and persist balances for the whole roster."""
    return await service.recalculate_all(_as_datetime(as_of))


# ── POST /cache/invalidate ──────────────────────────────────────────

@router.post("/cache/invalidate")
async def invalidate_cache(
    cache: DocumentCache = Depends(get_document_cache),
):
    """Force the next read to go to the document store."""
    cache.invalidate()
    return {"invalidated": True}
