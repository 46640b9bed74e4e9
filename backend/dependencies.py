"""Shared FastAPI dependencies."""

from fastapi import Request

from backend.documents.cache import DocumentCache
from backend.leave.service import LeaveAccrualService


def get_document_cache(request: Request) -> DocumentCache:
    """The process-wide document cache built by ``create_app``."""
    return request.app.state.document_cache


def get_accrual_service(request: Request) -> LeaveAccrualService:
    """Leave accrual service bound to the process-wide cache."""
    return LeaveAccrualService(get_document_cache(request))
