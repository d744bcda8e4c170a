"""
Promo-store link repository.
"""

from typing import List, Optional

from ..domain.models import PromoStore
from .base import CachedRepository


class PromoStoreRepository(CachedRepository[PromoStore]):

    entity = "promo_store"
    table = "promo_store"
    model = PromoStore
    invalidates = ()

    async def fetch_by_pair(self, promo_id: str, store_id: str) -> PromoStore:
        """Look a link up by its unique (promo_id, store_id) pair."""
        return await self.fetch_by_key(
            "key",
            (promo_id, store_id),
            {"promo_id": promo_id, "store_id": store_id},
        )

    async def filter(self, promo_id: Optional[str] = None, store_id: Optional[str] = None) -> List[PromoStore]:
        links = await self.fetch_all_or_empty()
        return [
            link for link in links
            if (promo_id is None or link.promo_id == promo_id)
            and (store_id is None or link.store_id == store_id)
        ]
