"""
Promo repository.
"""

from typing import List

from ..domain.models import Promo
from .base import CachedRepository
from .promo_store_repository import PromoStoreRepository


class PromoRepository(CachedRepository[Promo]):
    """Promos; deleting or changing one also stales its tenors and links."""

    entity = "promo"
    table = "promo"
    model = Promo
    invalidates = ("promo_tenor", "promo_store")

    def __init__(self, client, cache, metrics=None, *, promo_stores: PromoStoreRepository):
        super().__init__(client, cache, metrics)
        self.promo_stores = promo_stores

    async def fetch_by_store_id(self, store_id: str) -> List[Promo]:
        """Promos linked to a store, answered from the link and promo caches."""
        links = await self.promo_stores.filter(store_id=store_id)
        promo_ids = {link.promo_id for link in links}
        if not promo_ids:
            return []
        promos = await self.fetch_all_or_empty()
        return [promo for promo in promos if promo.id in promo_ids]
