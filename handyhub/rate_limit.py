"""Per-client request limits (slowapi)."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from handyhub.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
