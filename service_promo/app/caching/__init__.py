"""
Promo Service caching package.

Holds the in-memory entity cache store and the validated-claim cache.
Both are process-local, rebuilt from the remote service after a restart,
and invalidated explicitly rather than by TTL.
"""

from .claim_cache import AuthClaimCache
from .entity_cache import CachedCollection, EntityCacheStore
from .locks import ReadWriteLock

__all__ = [
    "AuthClaimCache",
    "CachedCollection",
    "EntityCacheStore",
    "ReadWriteLock",
]
