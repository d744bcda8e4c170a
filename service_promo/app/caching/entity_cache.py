"""
In-memory entity cache store for the Promo Service.

Each entity collection owns its own lock and every secondary index owns
another one, so work on stores never contends with work on promos.
"""

from typing import Any, Callable, Dict, Generic, Hashable, Iterable, List, Optional, TypeVar

from shared.logging import get_logger
from .locks import ReadWriteLock


T = TypeVar("T")

KeyFunc = Callable[[Any], Hashable]


class CachedCollection(Generic[T]):
    """Full snapshot of one entity collection plus its secondary indices.

    ``save_all`` swaps the list and rebuilds every index while holding the
    collection's write lock and each index's write lock, so a reader of
    either side never sees one generation in the list and another in an
    index.
    """

    def __init__(self, name: str, indices: Optional[Dict[str, KeyFunc]] = None):
        self.name = name
        self.logger = get_logger("promo.entity_cache")
        self._items: List[T] = []
        self._lock = ReadWriteLock()
        self._key_funcs: Dict[str, KeyFunc] = dict(indices or {})
        self._indices: Dict[str, Dict[Hashable, T]] = {index: {} for index in self._key_funcs}
        self._index_locks: Dict[str, ReadWriteLock] = {index: ReadWriteLock() for index in self._key_funcs}

    async def get_all(self) -> List[T]:
        """Return a copy of the cached list (empty when cold or cleared)."""
        async with self._lock.read():
            return list(self._items)

    async def count(self) -> int:
        async with self._lock.read():
            return len(self._items)

    async def lookup(self, index: str, key: Hashable) -> Optional[T]:
        """Return the entry stored under ``key`` in a secondary index."""
        if index not in self._indices:
            raise KeyError(f"{self.name} has no index named '{index}'")
        async with self._index_locks[index].read():
            return self._indices[index].get(key)

    async def save_all(self, items: Iterable[T]) -> None:
        """Replace the whole collection and rebuild every index from it."""
        snapshot = list(items)
        async with self._lock.write():
            rebuilt = {
                index: {key_func(item): item for item in snapshot}
                for index, key_func in self._key_funcs.items()
            }
            self._items = snapshot
            for index, entries in rebuilt.items():
                async with self._index_locks[index].write():
                    self._indices[index] = entries

        self.logger.debug("Entity cache saved", entity=self.name, count=len(snapshot))

    async def clear(self) -> None:
        """Empty the collection and its indices; safe to call repeatedly."""
        async with self._lock.write():
            self._items = []
            for index in self._indices:
                async with self._index_locks[index].write():
                    self._indices[index] = {}

        self.logger.debug("Entity cache cleared", entity=self.name)


class EntityCacheStore:
    """Owns every entity collection the service caches.

    Built once at startup and handed to each repository.
    """

    def __init__(self):
        self.logger = get_logger("promo.entity_cache")

        self.stores: CachedCollection = CachedCollection("store", {
            "id": lambda store: store.id,
            "route": lambda store: store.route,
        })
        self.promos: CachedCollection = CachedCollection("promo", {
            "id": lambda promo: promo.id,
        })
        self.promo_tenors: CachedCollection = CachedCollection("promo_tenor", {
            "id": lambda tenor: tenor.id,
        })
        self.promo_stores: CachedCollection = CachedCollection("promo_store", {
            "id": lambda link: link.id,
            "key": lambda link: (link.promo_id, link.store_id),
        })

        # derived view: store id -> available tenors of promos linked to it
        self._tenors_by_store: Dict[str, List[Any]] = {}
        self._tenors_by_store_generation = 0
        self._tenors_by_store_lock = ReadWriteLock()

    @property
    def collections(self) -> Dict[str, CachedCollection]:
        return {
            "store": self.stores,
            "promo": self.promos,
            "promo_tenor": self.promo_tenors,
            "promo_store": self.promo_stores,
        }

    async def get_tenors_by_store(self, store_id: str) -> Optional[List[Any]]:
        async with self._tenors_by_store_lock.read():
            tenors = self._tenors_by_store.get(store_id)
            return list(tenors) if tenors is not None else None

    async def tenors_by_store_generation(self) -> int:
        async with self._tenors_by_store_lock.read():
            return self._tenors_by_store_generation

    async def save_tenors_by_store(self, store_id: str, tenors: Iterable[Any], generation: int) -> bool:
        """Memoize a computed view unless the view was cleared since ``generation``."""
        async with self._tenors_by_store_lock.write():
            if generation != self._tenors_by_store_generation:
                return False
            self._tenors_by_store[store_id] = list(tenors)
            return True

    async def clear_tenors_by_store(self) -> None:
        async with self._tenors_by_store_lock.write():
            self._tenors_by_store = {}
            self._tenors_by_store_generation += 1

    async def counts(self) -> Dict[str, int]:
        """Item count per cached entity, plus memoized by-store views."""
        result = {name: await collection.count() for name, collection in self.collections.items()}
        async with self._tenors_by_store_lock.read():
            result["tenor_by_store"] = len(self._tenors_by_store)
        return result

    async def is_ready(self) -> bool:
        """Ready once both stores and promos are loaded."""
        return await self.stores.count() > 0 and await self.promos.count() > 0

    async def clear_all(self) -> None:
        for collection in self.collections.values():
            await collection.clear()
        await self.clear_tenors_by_store()
        self.logger.info("All entity caches cleared")
