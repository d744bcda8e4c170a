"""
Adapters package for the Promo Service.

Wraps the remote relational data service:

- Base URL normalization and credential headers
- A fluent query builder emitting the service's filter grammar
- Classification of failure responses into a typed error taxonomy

Adapters never touch the entity cache; that is the repositories' job.
"""

from .query_builder import QueryBuilder
from .remote_client import RemoteDataClient, RemoteResponse

__all__ = [
    "QueryBuilder",
    "RemoteDataClient",
    "RemoteResponse",
]
