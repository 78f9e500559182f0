"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as middleware) and by the route modules
(per-route limits via @limiter.limit()).

One shared instance means every route counts against the same in-memory
store. Separate instances per module would each keep their own counters.

RATE_LIMIT_ENABLED=false turns every limit off (used by the test suite).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=_settings.rate_limit_enabled,
)

# Applied to POST /auth/login and POST /auth/register.
LOGIN_LIMIT = _settings.login_rate_limit
