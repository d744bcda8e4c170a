"""
HTTP gateway to the remote relational data service.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type

import httpx

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .query_builder import QueryBuilder
from .remote_errors import ConfigError, NetworkError, ParseError, RemoteDataError, classify_error_response


REST_PATH = "/rest/v1"


def normalize_base_url(url: str) -> str:
    """Make sure the base url ends with the REST path exactly once."""
    base = url.rstrip("/")
    if not base.endswith(REST_PATH):
        base = f"{base}{REST_PATH}"
    return base


@dataclass
class RemoteResponse:
    """Decoded body plus the response headers a caller may need."""

    status: int
    data: Any
    headers: Dict[str, str] = field(default_factory=dict)


class RemoteDataClient:
    """Owns the base URL, credentials and connection pool for the remote service."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        if not base_url:
            raise ConfigError("remote service url is not configured")
        if not api_key:
            raise ConfigError("remote service api key is not configured")

        self.base_url = normalize_base_url(base_url)
        self.metrics = metrics
        self.logger = get_logger("promo.remote_client")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            },
        )

    def from_(self, table: str, model: Optional[Type] = None) -> QueryBuilder:
        """Start a query against one table."""
        return QueryBuilder(self, table, model)

    async def request(
        self,
        method: str,
        path: str,
        payload: Optional[Any] = None,
        prefer: Optional[str] = None,
    ) -> RemoteResponse:
        """Send one request and classify any non-2xx answer."""
        url = f"/{path.lstrip('/')}"
        headers = {}
        if prefer:
            headers["Prefer"] = f"return=representation,{prefer}"

        start_time = time.time()
        try:
            response = await self._client.request(method, url, json=payload, headers=headers or None)
        except httpx.RequestError as exc:
            self._record(method, "network_error", start_time)
            self.logger.error("Remote request failed", method=method, path=url, error=str(exc))
            raise NetworkError(str(exc)) from exc

        self._record(method, str(response.status_code), start_time)

        if not response.is_success:
            error = classify_error_response(response.status_code, response.text, path)
            self.logger.warning(
                "Remote request rejected",
                method=method,
                path=url,
                status_code=response.status_code,
                error=error.code,
            )
            raise error

        self.logger.debug("Remote request completed", method=method, path=url, status_code=response.status_code)

        if not response.content:
            data: Any = []
        else:
            try:
                data = response.json()
            except ValueError as exc:
                raise ParseError(str(exc)) from exc
        return RemoteResponse(status=response.status_code, data=data, headers=dict(response.headers))

    async def get(self, path: str) -> Any:
        return (await self.request("GET", path)).data

    async def post(self, path: str, payload: Any) -> Any:
        return (await self.request("POST", path, payload)).data

    async def patch(self, path: str, payload: Any) -> Any:
        return (await self.request("PATCH", path, payload)).data

    async def delete(self, path: str) -> Any:
        return (await self.request("DELETE", path)).data

    async def check_auth(self, table: str = "store") -> bool:
        """Verify the credentials are accepted by the remote service."""
        try:
            await self.request("GET", f"{table}?select=*&limit=1")
            return True
        except RemoteDataError as exc:
            if exc.is_auth_error():
                return False
            if exc.is_client_error():
                # any other 4xx still proves the key got us through
                return True
            raise

    async def health_check(self, table: str = "store") -> bool:
        """Reachability check: a 4xx answer counts as connected."""
        try:
            await self.request("GET", f"{table}?select=id&limit=1")
            return True
        except RemoteDataError as exc:
            if exc.is_network_error() or exc.is_server_error():
                self.logger.warning("Remote health check failed", error=exc.message)
                return False
            return True

    async def close(self) -> None:
        await self._client.aclose()

    def _record(self, method: str, status: str, start_time: float) -> None:
        if self.metrics is None:
            return
        self.metrics.increment_counter("remote_requests_total", method=method, status=status)
        self.metrics.observe_histogram("remote_request_duration_seconds", time.time() - start_time, method=method)
