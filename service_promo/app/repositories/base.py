"""
Cache-then-remote repository base for the Promo Service.
"""

from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel

from shared.errors import AccessLayerException, ConflictError, DatabaseError, NotFoundError, ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..adapters.query_builder import QueryBuilder
from ..adapters.remote_client import RemoteDataClient
from ..adapters.remote_errors import InsertConflict, NotFound, ParseError, RemoteDataError
from ..caching.entity_cache import CachedCollection, EntityCacheStore


T = TypeVar("T", bound=BaseModel)


class CachedRepository(Generic[T]):
    """Read-through, invalidate-on-write facade over one remote table.

    Reads try the entity cache first. Only ``fetch_all`` fills the bulk
    cache; keyed reads that miss go to the remote service without touching
    it. Every successful mutation clears the caches named in
    ``invalidates`` and, when ``invalidates_tenor_view`` is set, the
    memoized tenors-by-store view. Remote failures are never retried.
    """

    entity: str = ""
    table: str = ""
    model: Type[T]
    invalidates: Sequence[str] = ()
    invalidates_tenor_view: bool = True

    def __init__(
        self,
        client: RemoteDataClient,
        cache: EntityCacheStore,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.client = client
        self.cache = cache
        self.metrics = metrics
        self.logger = get_logger(f"promo.repository.{self.entity}")

    @property
    def collection(self) -> CachedCollection:
        return self.cache.collections[self.entity]

    def query(self) -> QueryBuilder:
        return self.client.from_(self.table, self.model)

    async def fetch_all(self) -> List[T]:
        """Return every row, from cache when warm, else from the remote service."""
        cached = await self.collection.get_all()
        if cached:
            self._count("cache_hits_total")
            self.logger.debug("Cache hit", entity=self.entity, count=len(cached))
            return cached

        self._count("cache_misses_total")
        self.logger.info("Cache miss, fetching from remote service", entity=self.entity)

        try:
            rows = await self.query().execute()
        except RemoteDataError as exc:
            raise self._translate(exc, "fetch") from exc

        if not rows:
            self.logger.warning("Remote service returned no rows", entity=self.entity)
            raise NotFoundError(f"No {self.entity} found")

        await self.collection.save_all(rows)
        self.logger.info("Entity cache filled", entity=self.entity, count=len(rows))
        return rows

    async def fetch_all_or_empty(self) -> List[T]:
        try:
            return await self.fetch_all()
        except NotFoundError:
            return []

    async def fetch_by_key(self, index: str, key: Any, filters: Dict[str, Any]) -> T:
        """Resolve one row from a secondary index, falling back to a filtered remote read."""
        cached = await self.collection.lookup(index, key)
        if cached is not None:
            self._count("cache_hits_total")
            return cached

        self._count("cache_misses_total")
        query = self.query()
        for column, value in filters.items():
            query.eq(column, value)

        try:
            return await query.execute_single()
        except RemoteDataError as exc:
            raise self._translate(exc, "fetch", key=key) from exc

    async def fetch_by_id(self, record_id: str) -> T:
        return await self.fetch_by_key("id", record_id, {"id": record_id})

    async def insert(self, payload: BaseModel) -> T:
        try:
            created = await self.query().insert(payload)
        except (NotFound, ParseError) as exc:
            # the POST succeeded; only its echo is missing or unreadable
            await self.invalidate()
            self.logger.error("Created entity not echoed back", entity=self.entity, error=exc.message)
            raise DatabaseError(
                f"{self.entity} was created but the remote service returned no usable row",
                {"entity": self.entity, "remote_code": exc.code},
            ) from exc
        except RemoteDataError as exc:
            raise self._translate(exc, "create") from exc

        await self.invalidate()
        self.logger.info("Entity created", entity=self.entity, id=getattr(created, "id", None))
        return created

    async def update_by_id(self, record_id: str, payload: BaseModel) -> T:
        changes = self._changes(payload)
        try:
            rows = await self.query().eq("id", record_id).update(changes)
        except RemoteDataError as exc:
            raise self._translate(exc, "update", key=record_id) from exc

        await self.invalidate()
        if not rows:
            raise NotFoundError(f"{self.entity} '{record_id}' not found")
        self.logger.info("Entity updated", entity=self.entity, id=record_id)
        return rows[0]

    async def delete_by_id(self, record_id: str) -> None:
        try:
            rows = await self.query().eq("id", record_id).delete()
        except RemoteDataError as exc:
            raise self._translate(exc, "delete", key=record_id) from exc

        await self.invalidate()
        if not rows:
            raise NotFoundError(f"{self.entity} '{record_id}' not found")
        self.logger.info("Entity deleted", entity=self.entity, id=record_id)

    async def invalidate(self) -> None:
        """Clear this entity's cache and every cache that depends on it."""
        for name in (self.entity, *self.invalidates):
            await self.cache.collections[name].clear()
            self._count("cache_invalidations_total", entity=name)
        if self.invalidates_tenor_view:
            await self.cache.clear_tenors_by_store()
            self._count("cache_invalidations_total", entity="tenor_by_store")
        self.logger.debug("Caches invalidated", entity=self.entity, dependents=list(self.invalidates))

    def _changes(self, payload: BaseModel) -> Dict[str, Any]:
        changes = payload.model_dump(mode="json", exclude_none=True)
        if not changes:
            raise ValidationError(f"No fields to update for {self.entity}")
        return changes

    def _translate(self, exc: RemoteDataError, action: str, key: Any = None) -> AccessLayerException:
        """Map a remote failure onto the domain error surfaced to handlers."""
        details = {"entity": self.entity, "remote_code": exc.code}
        if key is not None:
            details["key"] = str(key)

        if exc.is_not_found():
            return NotFoundError(f"{self.entity} not found", details)
        if isinstance(exc, InsertConflict):
            return ConflictError(f"{self.entity} already exists", details)

        self.logger.error("Remote service error", entity=self.entity, action=action, error=exc.message)
        return DatabaseError(f"Remote service error during {action}: {exc.message}", details)

    def _count(self, metric: str, entity: Optional[str] = None) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter(metric, entity=entity or self.entity)
