"""Rate limiting utilities.

Wraps the slowapi limiter with a test-friendly no-op variant so fixtures stay deterministic.
Mutation endpoints (mark read, token registration, dispatch) are limited per client address.
"""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings


class _NoOpLimiter:
    """Disable rate limiting when running tests to keep fixtures deterministic."""

    enabled = False

    def limit(self, *args, **kwargs):
        def decorator(func):
            return func

        return decorator


if os.getenv("APP_ENV", settings.environment).lower() == "test":
    limiter = _NoOpLimiter()
else:
    limiter = Limiter(
        key_func=get_remote_address, default_limits=["300 per minute", "5000 per day"]
    )


__all__ = ["limiter"]
