"""Rate limiter singleton. Import from here to avoid circular deps."""
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.APP_ENV != "test")
