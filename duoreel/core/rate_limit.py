"""
Rate Limiter

One slowapi limiter shared by the app (app.state.limiter) and the routers
that proxy TMDb, keyed by client address.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import get_settings

settings = get_settings()

limiter = Limiter(key_func=get_remote_address)

UPSTREAM_LIMIT = f"{settings.rate_limit_per_minute}/minute"
