"""Per-client rate limiting (slowapi), wired into the app in main.py.

Routers import ``limiter`` to put tighter limits on expensive endpoints,
e.g. the roster-wide leave recalculation.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from backend.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.DEFAULT_RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
