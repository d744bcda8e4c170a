"""
Repositories for the Promo Service.

One repository per remote table. Each reads through the entity cache,
writes to the remote service first and then clears the caches that the
write made stale.
"""

from .base import CachedRepository
from .promo_repository import PromoRepository
from .promo_store_repository import PromoStoreRepository
from .promo_tenor_repository import PromoTenorRepository
from .store_repository import StoreRepository

__all__ = [
    "CachedRepository",
    "PromoRepository",
    "PromoStoreRepository",
    "PromoTenorRepository",
    "StoreRepository",
]
