"""
Store repository.
"""

from ..domain.models import CreateStorePayload, Store, UpdateStorePayload
from .base import CachedRepository


class StoreRepository(CachedRepository[Store]):
    """Stores are addressed externally by their route slug."""

    entity = "store"
    table = "store"
    model = Store
    invalidates = ("promo_store",)

    async def fetch_by_route(self, route: str) -> Store:
        return await self.fetch_by_key("route", route, {"route": route})

    async def create(self, payload: CreateStorePayload) -> Store:
        return await self.insert(payload)

    async def update_by_route(self, route: str, payload: UpdateStorePayload) -> Store:
        store = await self.fetch_by_route(route)
        return await self.update_by_id(store.id, payload)

    async def delete_by_route(self, route: str) -> None:
        store = await self.fetch_by_route(route)
        await self.delete_by_id(store.id)
