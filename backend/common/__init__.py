"""Common module — shared constants, errors and rate limiting for the HR portal."""

from backend.common.constants import (
    DEFAULT_ENTITLEMENTS,
    SUPPORTED_LEAVE_TYPES,
    Collection,
    LeaveStatus,
    LeaveType,
)
from backend.common.exceptions import (
    AppException,
    NotFoundException,
    StorageUnavailableException,
    register_exception_handlers,
)

__all__ = [
    # Constants / Enums
    "Collection",
    "LeaveStatus",
    "LeaveType",
    "DEFAULT_ENTITLEMENTS",
    "SUPPORTED_LEAVE_TYPES",
    # Exceptions
    "AppException",
    "NotFoundException",
    "StorageUnavailableException",
    "register_exception_handlers",
]
