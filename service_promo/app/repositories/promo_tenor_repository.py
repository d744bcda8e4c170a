"""
Promo tenor repository and the tenors-by-store view.
"""

from typing import List, Optional

from ..domain.models import PromoTenor
from .base import CachedRepository
from .promo_store_repository import PromoStoreRepository


class PromoTenorRepository(CachedRepository[PromoTenor]):

    entity = "promo_tenor"
    table = "promo_tenor"
    model = PromoTenor
    invalidates = ()

    def __init__(self, client, cache, metrics=None, *, promo_stores: PromoStoreRepository):
        super().__init__(client, cache, metrics)
        self.promo_stores = promo_stores

    async def filter(
        self,
        promo_id: Optional[str] = None,
        tenor: Optional[int] = None,
        voucher: Optional[str] = None,
    ) -> List[PromoTenor]:
        """Filter the bulk cache; an absent filter matches everything."""
        tenors = await self.fetch_all_or_empty()
        return [
            item for item in tenors
            if (promo_id is None or item.promo_id == promo_id)
            and (tenor is None or item.tenor == tenor)
            and (voucher is None or item.voucher_code == voucher)
        ]

    async def fetch_by_store_id(self, store_id: str) -> List[PromoTenor]:
        """Available tenors of every promo linked to ``store_id``.

        A link carrying ``tenor_ids`` restricts its promo to those tenors.
        The result is memoized per store until the next invalidation. A store
        with no links is answered but never memoized, so arbitrary ids cannot
        grow the view.
        """
        cached = await self.cache.get_tenors_by_store(store_id)
        if cached is not None:
            self._count("cache_hits_total", entity="tenor_by_store")
            return cached

        self._count("cache_misses_total", entity="tenor_by_store")
        generation = await self.cache.tenors_by_store_generation()

        links = await self.promo_stores.filter(store_id=store_id)
        if not links:
            return []
        tenors = await self.fetch_all_or_empty()

        result: List[PromoTenor] = []
        for link in links:
            allowed = set(link.tenor_ids) if link.tenor_ids is not None else None
            result.extend(
                item for item in tenors
                if item.promo_id == link.promo_id
                and item.is_available
                and (allowed is None or item.id in allowed)
            )

        if not await self.cache.save_tenors_by_store(store_id, result, generation):
            self.logger.debug("Tenor view invalidated while computing, not memoized", store_id=store_id)
        return result
