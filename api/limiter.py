"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as middleware) and by the admin and contact
routers (per-route limits with @limiter.limit()). A single instance means all
routes share one in-memory counter store.

Limits are keyed by client IP. Tests call limiter.reset() between cases.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
