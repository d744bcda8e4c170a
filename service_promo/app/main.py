"""
Promo Service for the promo access layer.
"""

import asyncio
from typing import Dict, List, Optional

import httpx
from fastapi import Query, Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import AuthenticationError, ConfigurationError, RateLimitError

from .adapters.remote_client import RemoteDataClient
from .adapters.remote_errors import ConfigError
from .caching.claim_cache import AuthClaimCache
from .caching.entity_cache import EntityCacheStore
from .domain.auth_middleware import AuthMiddleware, is_public_path
from .domain.models import (
    CreatePromoPayload,
    CreatePromoStorePayload,
    CreatePromoTenorPayload,
    CreateStorePayload,
    Promo,
    PromoStore,
    PromoTenor,
    Store,
    UpdatePromoPayload,
    UpdatePromoStorePayload,
    UpdatePromoTenorPayload,
    UpdateStorePayload,
)
from .ratelimit.sliding_window import RateLimitMiddleware, SlidingWindowRateLimiter
from .repositories import PromoRepository, PromoStoreRepository, PromoTenorRepository, StoreRepository


class PromoService(BaseService):
    """CRUD service for stores, promos, promo tenors and promo-store links."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__("promo", 3000, config)

        try:
            self.remote_client = RemoteDataClient(
                self.config.remote_url,
                self.config.remote_api_key,
                timeout=self.config.remote_timeout_seconds,
                transport=transport,
                metrics=self.metrics,
            )
        except ConfigError as exc:
            self.logger.critical("Remote data service is not configured", error=exc.message)
            raise ConfigurationError(exc.message) from exc

        self.entity_cache = EntityCacheStore()

        self.promo_store_repository = PromoStoreRepository(self.remote_client, self.entity_cache, self.metrics)
        self.store_repository = StoreRepository(self.remote_client, self.entity_cache, self.metrics)
        self.promo_repository = PromoRepository(
            self.remote_client, self.entity_cache, self.metrics,
            promo_stores=self.promo_store_repository,
        )
        self.promo_tenor_repository = PromoTenorRepository(
            self.remote_client, self.entity_cache, self.metrics,
            promo_stores=self.promo_store_repository,
        )

        self.claim_cache = AuthClaimCache(max_entries=self.config.claim_cache_max_entries)
        self.auth_middleware = AuthMiddleware(
            self.claim_cache,
            self.config.jwt_secret,
            audience=self.config.jwt_audience,
            metrics=self.metrics,
        )
        self.rate_limiter = SlidingWindowRateLimiter(
            max_requests=self.config.rate_limit_max_requests,
            window_seconds=self.config.rate_limit_window_seconds,
            enabled=self.config.rate_limit_enabled,
        )
        self.rate_limit_middleware = RateLimitMiddleware(
            self.rate_limiter,
            public_paths=self.config.public_paths,
            metrics=self.metrics,
            trust_proxy_headers=self.config.rate_limit_trust_proxy_headers,
        )

        @self.app.on_event("startup")
        async def _startup():
            await self.warm_caches()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.remote_client.close()

        self._setup_promo_routes()
        self.app.state.promo_service = self

    def _setup_middleware(self):
        """Register the request guard before the base middleware so it runs innermost."""

        @self.app.middleware("http")
        async def guard_request(request: Request, call_next):
            path = request.url.path
            if is_public_path(path, self.config.public_paths):
                return await call_next(request)

            rate_result = None
            if not self.rate_limit_middleware.is_exempt(path):
                rate_result = await self.rate_limit_middleware.check_request(request)
                if not rate_result["allowed"]:
                    response = self._error_response(RateLimitError(details={
                        "limit": rate_result["limit"],
                        "reset_in_seconds": rate_result["reset_in_seconds"],
                    }))
                    response.headers.update(RateLimitMiddleware.headers_for(rate_result))
                    return response

            if self.config.auth_enabled:
                try:
                    await self.auth_middleware.authenticate_request(request)
                except AuthenticationError as exc:
                    return self._error_response(exc)

            response = await call_next(request)
            if rate_result is not None:
                response.headers.update(RateLimitMiddleware.headers_for(rate_result))
            return response

        super()._setup_middleware()

    async def warm_caches(self) -> None:
        """Load every entity collection before serving; any failure is fatal."""
        self.logger.info("Warming entity caches")
        repositories = {
            "store": self.store_repository,
            "promo": self.promo_repository,
            "promo_tenor": self.promo_tenor_repository,
            "promo_store": self.promo_store_repository,
        }
        results = await asyncio.gather(
            *(repository.fetch_all() for repository in repositories.values()),
            return_exceptions=True,
        )

        failures = {
            entity: result
            for entity, result in zip(repositories, results)
            if isinstance(result, BaseException)
        }
        for entity, error in failures.items():
            self.logger.critical("Cache warm failed", entity=entity, error=str(error))
        if failures:
            raise next(iter(failures.values()))

        self.logger.info("Entity caches warmed", counts=await self.entity_cache.counts())

    async def _check_dependencies(self) -> Dict[str, str]:
        remote_ok = await self.remote_client.health_check()
        return {"remote_data_service": "ok" if remote_ok else "error"}

    async def _collect_metrics(self) -> None:
        for entity, count in (await self.entity_cache.counts()).items():
            self.metrics.set_gauge("cache_items", count, entity=entity)

    def _setup_promo_routes(self):
        """Set up readiness, cache and entity routes."""

        @self.app.get("/ready")
        async def readiness():
            counts = await self.entity_cache.counts()
            if not await self.entity_cache.is_ready():
                return JSONResponse(status_code=503, content={"status": "not_ready", "caches": counts})
            return {"status": "ready", "caches": counts}

        @self.app.get("/cache/stats")
        async def cache_stats():
            return {
                "caches": await self.entity_cache.counts(),
                "claim_cache_entries": await self.claim_cache.size(),
                "rate_limited_clients": await self.rate_limiter.tracked_clients(),
                "uptime_seconds": self._get_uptime(),
            }

        # Store

        @self.app.get("/get-store", response_model=List[Store])
        async def get_stores():
            return await self.store_repository.fetch_all()

        @self.app.get("/get-store/{route}", response_model=Store)
        async def get_store_by_route(route: str):
            return await self.store_repository.fetch_by_route(route)

        @self.app.post("/create-store", response_model=Store, status_code=201)
        async def create_store(payload: CreateStorePayload):
            return await self.store_repository.create(payload)

        @self.app.put("/update-store/{route}", response_model=Store)
        async def update_store(route: str, payload: UpdateStorePayload):
            return await self.store_repository.update_by_route(route, payload)

        @self.app.delete("/delete-store/{route}")
        async def delete_store(route: str):
            await self.store_repository.delete_by_route(route)
            return {"message": "Store deleted", "route": route}

        # Promo

        @self.app.get("/get-promo", response_model=List[Promo])
        async def get_promos(store_id: Optional[str] = Query(None)):
            if store_id:
                return await self.promo_repository.fetch_by_store_id(store_id)
            return await self.promo_repository.fetch_all()

        @self.app.get("/get-promo/{promo_id}", response_model=Promo)
        async def get_promo(promo_id: str):
            return await self.promo_repository.fetch_by_id(promo_id)

        @self.app.post("/create-promo", response_model=Promo, status_code=201)
        async def create_promo(payload: CreatePromoPayload):
            return await self.promo_repository.insert(payload)

        @self.app.put("/update-promo/{promo_id}", response_model=Promo)
        async def update_promo(promo_id: str, payload: UpdatePromoPayload):
            return await self.promo_repository.update_by_id(promo_id, payload)

        @self.app.delete("/delete-promo/{promo_id}")
        async def delete_promo(promo_id: str):
            await self.promo_repository.delete_by_id(promo_id)
            return {"message": "Promo deleted", "id": promo_id}

        # Promo tenor

        @self.app.get("/get-promo-tenor", response_model=List[PromoTenor])
        async def get_promo_tenors(
            promo_id: Optional[str] = Query(None),
            tenor: Optional[int] = Query(None),
            voucher: Optional[str] = Query(None),
        ):
            if promo_id is None and tenor is None and voucher is None:
                return await self.promo_tenor_repository.fetch_all()
            return await self.promo_tenor_repository.filter(promo_id=promo_id, tenor=tenor, voucher=voucher)

        @self.app.get("/get-promo-tenor/{tenor_id}", response_model=PromoTenor)
        async def get_promo_tenor(tenor_id: str):
            return await self.promo_tenor_repository.fetch_by_id(tenor_id)

        @self.app.get("/get-promo-tenor-by-store/{store_id}", response_model=List[PromoTenor])
        async def get_promo_tenors_by_store(store_id: str):
            return await self.promo_tenor_repository.fetch_by_store_id(store_id)

        @self.app.post("/create-promo-tenor", response_model=PromoTenor, status_code=201)
        async def create_promo_tenor(payload: CreatePromoTenorPayload):
            return await self.promo_tenor_repository.insert(payload)

        @self.app.put("/update-promo-tenor/{tenor_id}", response_model=PromoTenor)
        async def update_promo_tenor(tenor_id: str, payload: UpdatePromoTenorPayload):
            return await self.promo_tenor_repository.update_by_id(tenor_id, payload)

        @self.app.delete("/delete-promo-tenor/{tenor_id}")
        async def delete_promo_tenor(tenor_id: str):
            await self.promo_tenor_repository.delete_by_id(tenor_id)
            return {"message": "Promo tenor deleted", "id": tenor_id}

        # Promo store

        @self.app.get("/get-promo-store", response_model=List[PromoStore])
        async def get_promo_stores(
            promo_id: Optional[str] = Query(None),
            store_id: Optional[str] = Query(None),
        ):
            if promo_id is None and store_id is None:
                return await self.promo_store_repository.fetch_all()
            return await self.promo_store_repository.filter(promo_id=promo_id, store_id=store_id)

        @self.app.get("/get-promo-store/{link_id}", response_model=PromoStore)
        async def get_promo_store(link_id: str):
            return await self.promo_store_repository.fetch_by_id(link_id)

        @self.app.get("/get-promo-store/{promo_id}/{store_id}", response_model=PromoStore)
        async def get_promo_store_by_pair(promo_id: str, store_id: str):
            return await self.promo_store_repository.fetch_by_pair(promo_id, store_id)

        @self.app.post("/create-promo-store", response_model=PromoStore, status_code=201)
        async def create_promo_store(payload: CreatePromoStorePayload):
            return await self.promo_store_repository.insert(payload)

        @self.app.put("/update-promo-store/{link_id}", response_model=PromoStore)
        async def update_promo_store(link_id: str, payload: UpdatePromoStorePayload):
            return await self.promo_store_repository.update_by_id(link_id, payload)

        @self.app.delete("/delete-promo-store/{link_id}")
        async def delete_promo_store(link_id: str):
            await self.promo_store_repository.delete_by_id(link_id)
            return {"message": "Promo store deleted", "id": link_id}


def create_app():
    """Create FastAPI application."""
    service = PromoService()
    return service.app


if __name__ == "__main__":
    service = PromoService()
    service.run()
