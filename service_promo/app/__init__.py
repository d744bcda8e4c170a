"""
Promo Service package for the promo access layer.

The service exposes CRUD endpoints for stores, promos, promo tenors and
promo-store links backed by a remote relational data service:
- Read-through entity caches, invalidated on every successful write
- Bearer-token authentication with a validated-claim cache
- Per-client sliding-window rate limiting

Structure:
- app.main: FastAPI app, routes, startup warm and middleware wiring.
- app.adapters: Remote data gateway, query builder and its error taxonomy.
- app.caching: Entity cache store, read/write lock and claim cache.
- app.repositories: Per-entity cache-then-remote facades.
- app.ratelimit: Sliding-window limiter and middleware.
- app.domain: Entity models and the auth middleware.
"""
