"""
Shared fixtures for Promo Service tests.

`FakeRemote` stands in for the remote data service behind an
httpx.MockTransport: it keeps tables in memory, understands `eq`
filters and `limit`, and records every request it receives.
"""

import asyncio
import json
import uuid
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import get_config


class FakeRemote:
    """In-memory remote service answering the PostgREST-style protocol."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {name: list(rows) for name, rows in (tables or {}).items()}
        self.requests: List[httpx.Request] = []
        self._scripted: List[Tuple[int, Any]] = []

    def script(self, status: int, body: Any) -> None:
        """Answer the next request with a canned response instead of table data."""
        self._scripted.append((status, body))

    def calls(self, method: Optional[str] = None, table: Optional[str] = None) -> List[httpx.Request]:
        return [
            request for request in self.requests
            if (method is None or request.method == method)
            and (table is None or self._table_of(request) == table)
        ]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.async_handler)

    async def async_handler(self, request: httpx.Request) -> httpx.Response:
        # yield once so concurrent callers interleave like real network I/O
        await asyncio.sleep(0)
        return self.handler(request)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self._scripted:
            status, body = self._scripted.pop(0)
            content = body if isinstance(body, str) else json.dumps(body)
            return httpx.Response(status, content=content)

        table = self._table_of(request)
        rows = self.tables.setdefault(table, [])
        filters, limit = self._parse_params(request)
        matching = [row for row in rows if self._matches(row, filters)]

        if request.method == "GET":
            selected = matching[:limit] if limit is not None else matching
            headers = {}
            if "count=exact" in request.headers.get("Prefer", ""):
                headers["Content-Range"] = f"0-{max(len(selected) - 1, 0)}/{len(matching)}"
            return httpx.Response(200, json=selected, headers=headers)

        if request.method == "POST":
            payload = json.loads(request.content)
            created = []
            for item in payload if isinstance(payload, list) else [payload]:
                row = {"id": str(uuid.uuid4()), **item}
                rows.append(row)
                created.append(row)
            return httpx.Response(201, json=created)

        if request.method == "PATCH":
            changes = json.loads(request.content)
            for row in matching:
                row.update(changes)
            return httpx.Response(200, json=matching)

        if request.method == "DELETE":
            self.tables[table] = [row for row in rows if row not in matching]
            return httpx.Response(200, json=matching)

        return httpx.Response(405, text="method not allowed")

    @staticmethod
    def _table_of(request: httpx.Request) -> str:
        return request.url.path.rsplit("/", 1)[-1]

    @staticmethod
    def _parse_params(request: httpx.Request):
        filters = []
        limit = None
        for key, value in request.url.params.multi_items():
            if key == "limit":
                limit = int(value)
            elif key in ("select", "order", "offset"):
                continue
            elif value.startswith("eq."):
                filters.append((key, value[3:]))
        return filters, limit

    @staticmethod
    def _matches(row: Dict[str, Any], filters) -> bool:
        return all(str(row.get(column)) == expected for column, expected in filters)


STORES = [
    {"id": "s-1", "name": "Jakarta One", "company": "ACME", "address": "Jl. Sudirman 1",
     "route": "jkt-01", "store_type": "KA"},
    {"id": "s-2", "name": "Bandung Two", "company": "ACME", "address": "Jl. Braga 2",
     "route": "bdg-02", "store_type": "NKA"},
]

PROMOS = [
    {"id": "p-1", "title_promo": "Zero Interest", "admin_promo_type": "FIX", "admin_promo": 50000,
     "interest_rate": 0, "is_active": True},
    {"id": "p-2", "title_promo": "Half Admin", "admin_promo_type": "PERCENT", "admin_promo": 0.5,
     "interest_rate": 1.5, "is_active": True},
]

PROMO_TENORS = [
    {"id": "t-1", "promo_id": "p-1", "tenor": 3, "min_transaction": 1000000, "subsidi": 0, "admin": 0,
     "discount": 0, "max_discount": 0, "voucher_code": "ZERO3", "free_installment": 0, "is_available": True},
    {"id": "t-2", "promo_id": "p-1", "tenor": 6, "min_transaction": 1000000, "subsidi": 0, "admin": 0,
     "discount": 0, "max_discount": 0, "free_installment": 1, "is_available": True},
    {"id": "t-3", "promo_id": "p-1", "tenor": 12, "min_transaction": 2000000, "subsidi": 0, "admin": 0,
     "discount": 0, "max_discount": 0, "free_installment": 0, "is_available": False},
    {"id": "t-4", "promo_id": "p-2", "tenor": 6, "min_transaction": 500000, "subsidi": 10000, "admin": 0,
     "discount": 5, "max_discount": 100000, "free_installment": 0, "is_available": True},
]

PROMO_STORES = [
    {"id": "ps-1", "promo_id": "p-1", "store_id": "s-1"},
    {"id": "ps-2", "promo_id": "p-2", "store_id": "s-1", "tenor_ids": ["t-4"]},
    {"id": "ps-3", "promo_id": "p-2", "store_id": "s-2", "tenor_ids": []},
]


@pytest.fixture
def fake_remote():
    """Remote service seeded with two stores, two promos, their tenors and links."""
    return FakeRemote({
        "store": [dict(row) for row in STORES],
        "promo": [dict(row) for row in PROMOS],
        "promo_tenor": [dict(row) for row in PROMO_TENORS],
        "promo_store": [dict(row) for row in PROMO_STORES],
    })


@pytest.fixture
def service_config():
    """Configuration pointing at the fake remote service."""
    return get_config(
        "promo",
        3000,
        remote_url="http://remote.test",
        remote_api_key="service-key",
        jwt_secret="test-secret",
        rate_limit_max_requests=1000,
    )
