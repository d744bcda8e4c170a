"""
Fluent query builder for the remote data service filter grammar.

Filters serialize to `column=operator.value` query parameters with values
percent-encoded; the read verb is GET, inserts POST, updates PATCH and
deletes DELETE, with the accumulated filters scoping updates and deletes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar, Union
from urllib.parse import quote
from uuid import UUID

from pydantic import BaseModel, ValidationError as PydanticValidationError

from shared.logging import get_logger
from .remote_errors import MultipleResults, NotFound, ParseError, QueryError, SerializationError

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .remote_client import RemoteDataClient


T = TypeVar("T", bound=BaseModel)

Payload = Union[BaseModel, dict]


def encode_value(value: Any) -> str:
    """Render a filter value the way the remote grammar expects it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    return quote(str(value), safe="")


class QueryBuilder(Generic[T]):
    """Accumulates filters, projection, ordering and paging for one table."""

    def __init__(self, client: "RemoteDataClient", table: str, model: Optional[Type[T]] = None):
        self.client = client
        self.table = table
        self.model = model
        self.logger = get_logger("promo.query_builder")

        self._filters: List[Tuple[str, str]] = []
        self._select: Optional[str] = None
        self._order: Optional[Tuple[str, bool]] = None
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    # -- projection -------------------------------------------------------

    def select(self, columns: str) -> "QueryBuilder[T]":
        self._select = columns
        return self

    # -- filters ----------------------------------------------------------

    def _filter(self, column: str, operator: str, value: Any) -> "QueryBuilder[T]":
        self._filters.append((column, f"{operator}.{encode_value(value)}"))
        return self

    def eq(self, column: str, value: Any) -> "QueryBuilder[T]":
        return self._filter(column, "eq", value)

    def neq(self, column: str, value: Any) -> "QueryBuilder[T]":
        return self._filter(column, "neq", value)

    def gt(self, column: str, value: Any) -> "QueryBuilder[T]":
        return self._filter(column, "gt", value)

    def gte(self, column: str, value: Any) -> "QueryBuilder[T]":
        return self._filter(column, "gte", value)

    def lt(self, column: str, value: Any) -> "QueryBuilder[T]":
        return self._filter(column, "lt", value)

    def lte(self, column: str, value: Any) -> "QueryBuilder[T]":
        return self._filter(column, "lte", value)

    def like(self, column: str, pattern: str) -> "QueryBuilder[T]":
        return self._filter(column, "like", pattern)

    def ilike(self, column: str, pattern: str) -> "QueryBuilder[T]":
        return self._filter(column, "ilike", pattern)

    def in_(self, column: str, values: Iterable[Any]) -> "QueryBuilder[T]":
        joined = ",".join(encode_value(value) for value in values)
        self._filters.append((column, f"in.({joined})"))
        return self

    def is_null(self, column: str) -> "QueryBuilder[T]":
        self._filters.append((column, "is.null"))
        return self

    def is_not_null(self, column: str) -> "QueryBuilder[T]":
        self._filters.append((column, "not.is.null"))
        return self

    def id(self, value: Any) -> "QueryBuilder[T]":
        return self.eq("id", value)

    # -- modifiers --------------------------------------------------------

    def order(self, column: str, ascending: bool = True) -> "QueryBuilder[T]":
        self._order = (column, ascending)
        return self

    def order_asc(self, column: str) -> "QueryBuilder[T]":
        return self.order(column, True)

    def order_desc(self, column: str) -> "QueryBuilder[T]":
        return self.order(column, False)

    def limit(self, count: int) -> "QueryBuilder[T]":
        self._limit = count
        return self

    def offset(self, count: int) -> "QueryBuilder[T]":
        self._offset = count
        return self

    # -- serialization ----------------------------------------------------

    def build_params(self, *, modifiers: bool = True) -> List[Tuple[str, str]]:
        """Return the query parameters in a fixed order regardless of call order.

        Mutations pass ``modifiers=False`` so only the filter scope is sent.
        """
        params: List[Tuple[str, str]] = []
        if modifiers and self._select:
            params.append(("select", quote(self._select, safe=",*()")))
        params.extend(self._filters)
        if modifiers:
            if self._order is not None:
                column, ascending = self._order
                params.append(("order", f"{quote(column, safe='')}.{'asc' if ascending else 'desc'}"))
            if self._limit is not None:
                params.append(("limit", str(self._limit)))
            if self._offset is not None:
                params.append(("offset", str(self._offset)))
        return params

    def build_query_string(self, *, modifiers: bool = True) -> str:
        return "&".join(f"{key}={value}" for key, value in self.build_params(modifiers=modifiers))

    def build_path(self, *, modifiers: bool = True) -> str:
        query = self.build_query_string(modifiers=modifiers)
        return f"{self.table}?{query}" if query else self.table

    # -- decoding ---------------------------------------------------------

    def _decode_rows(self, data: Any) -> List[Any]:
        if not isinstance(data, list):
            raise ParseError(f"expected a JSON array from '{self.table}', got {type(data).__name__}")
        if self.model is None:
            return data
        try:
            return [self.model.model_validate(row) for row in data]
        except PydanticValidationError as exc:
            raise ParseError(str(exc)) from exc

    def _encode_payload(self, payload: Union[Payload, Sequence[Payload]]) -> Any:
        try:
            if isinstance(payload, BaseModel):
                return payload.model_dump(mode="json", exclude_none=True)
            if isinstance(payload, dict):
                return payload
            return [self._encode_payload(item) for item in payload]
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Failed to serialize payload: {exc}") from exc

    def _require_scope(self, verb: str) -> None:
        if not self._filters:
            raise QueryError(f"refusing to {verb} '{self.table}' without a filter scope")

    # -- execution --------------------------------------------------------

    async def execute(self) -> List[T]:
        """Run the read query and decode every returned row."""
        path = self.build_path()
        self.logger.debug("Executing remote query", table=self.table, path=path)
        data = await self.client.get(path)
        return self._decode_rows(data)

    async def execute_single(self) -> T:
        """Run the read query expecting exactly one row.

        The limit is set to 2 so a filter that is not actually unique is
        reported as MultipleResults rather than silently truncated.
        """
        rows = await self.limit(2).execute()
        if not rows:
            raise NotFound()
        if len(rows) > 1:
            raise MultipleResults()
        return rows[0]

    async def all(self) -> List[T]:
        return await self.execute()

    async def find(self, record_id: Any) -> T:
        return await self.id(record_id).execute_single()

    async def insert(self, payload: Payload) -> T:
        """Insert one row and return the representation echoed back."""
        body = self._encode_payload(payload)
        data = await self.client.post(self.table, body)
        rows = self._decode_rows(data)
        if not rows:
            raise NotFound()
        return rows[0]

    async def insert_many(self, payloads: Sequence[Payload]) -> List[T]:
        body = self._encode_payload(list(payloads))
        data = await self.client.post(self.table, body)
        return self._decode_rows(data)

    async def update(self, payload: Payload) -> List[T]:
        """Patch every row matching the filters and return the updated rows."""
        self._require_scope("update")
        body = self._encode_payload(payload)
        data = await self.client.patch(self.build_path(modifiers=False), body)
        return self._decode_rows(data)

    async def delete(self) -> List[T]:
        """Delete every row matching the filters and return the deleted rows."""
        self._require_scope("delete")
        data = await self.client.delete(self.build_path(modifiers=False))
        return self._decode_rows(data)

    async def count(self) -> int:
        """Count matching rows, preferring the exact total the service reports."""
        response = await self.client.request("GET", self.build_path(), prefer="count=exact")
        content_range = response.headers.get("content-range", "")
        total = content_range.rsplit("/", 1)[-1] if "/" in content_range else ""
        if total.isdigit():
            return int(total)
        if not isinstance(response.data, list):
            raise ParseError(f"expected a JSON array from '{self.table}'")
        return len(response.data)

    async def exists(self) -> bool:
        return await self.limit(1).count() > 0
