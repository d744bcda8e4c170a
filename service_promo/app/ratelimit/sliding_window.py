"""
Sliding-window rate limiter for the Promo Service.
"""

import asyncio
import hashlib
import math
import time
from typing import Callable, Dict, Any, Iterable, List, Optional

from fastapi import Request

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..domain.auth_middleware import is_public_path


class SlidingWindowRateLimiter:
    """In-process sliding-window limiter keyed by client fingerprint.

    Each fingerprint keeps the instants of its recent requests. A check
    prunes instants older than the window, rejects once the remaining
    count reaches ``max_requests`` and otherwise records the new instant.
    State lives for the process lifetime and is not shared across workers.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self.clock = clock
        self.logger = get_logger("promo.rate_limiter")
        self._requests: Dict[str, List[float]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def fingerprint(ip: Optional[str], user_agent: Optional[str], accept_language: Optional[str]) -> str:
        """Stable, non-reversible key for one client."""
        raw = f"{ip or 'unknown'}-{user_agent or 'unknown'}-{accept_language or 'unknown'}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    async def check(self, fingerprint: str) -> Dict[str, Any]:
        """Admit or reject one request for ``fingerprint``."""
        if not self.enabled:
            return {
                "allowed": True,
                "current_count": 0,
                "limit": self.max_requests,
                "remaining": self.max_requests,
                "reset_in_seconds": 0,
            }

        async with self._lock:
            now = self.clock()
            cutoff = now - self.window_seconds
            timestamps = [instant for instant in self._requests.get(fingerprint, []) if instant > cutoff]

            if len(timestamps) >= self.max_requests:
                self._requests[fingerprint] = timestamps
                reset_in = math.ceil(timestamps[0] + self.window_seconds - now)
                self.logger.warning(
                    "Rate limit exceeded",
                    fingerprint=fingerprint[:12],
                    current_count=len(timestamps),
                    limit=self.max_requests,
                )
                return {
                    "allowed": False,
                    "current_count": len(timestamps),
                    "limit": self.max_requests,
                    "remaining": 0,
                    "reset_in_seconds": max(reset_in, 0),
                    "retry_after": max(reset_in, 0),
                }

            timestamps.append(now)
            self._requests[fingerprint] = timestamps
            reset_in = math.ceil(timestamps[0] + self.window_seconds - now)

        return {
            "allowed": True,
            "current_count": len(timestamps),
            "limit": self.max_requests,
            "remaining": max(0, self.max_requests - len(timestamps)),
            "reset_in_seconds": max(reset_in, 0),
        }

    async def tracked_clients(self) -> int:
        async with self._lock:
            return len(self._requests)

    async def reset(self, fingerprint: Optional[str] = None) -> None:
        async with self._lock:
            if fingerprint is None:
                self._requests.clear()
            else:
                self._requests.pop(fingerprint, None)


class RateLimitMiddleware:
    """Rate limiting middleware for FastAPI."""

    def __init__(
        self,
        rate_limiter: SlidingWindowRateLimiter,
        public_paths: Iterable[str] = (),
        metrics: Optional[MetricsCollector] = None,
        trust_proxy_headers: bool = False,
    ):
        self.rate_limiter = rate_limiter
        self.trust_proxy_headers = trust_proxy_headers
        self.public_paths = list(public_paths)
        self.metrics = metrics
        self.logger = get_logger("promo.rate_limit_middleware")

    def is_exempt(self, path: str) -> bool:
        return not self.rate_limiter.enabled or is_public_path(path, self.public_paths)

    async def check_request(self, request: Request) -> Dict[str, Any]:
        """Check rate limit for request."""
        fingerprint = SlidingWindowRateLimiter.fingerprint(
            self._get_client_ip(request),
            request.headers.get("User-Agent"),
            request.headers.get("Accept-Language"),
        )
        result = await self.rate_limiter.check(fingerprint)
        if not result["allowed"] and self.metrics is not None:
            self.metrics.increment_counter("rate_limit_rejections_total")
        return result

    @staticmethod
    def headers_for(result: Dict[str, Any]) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(result["limit"]),
            "X-RateLimit-Remaining": str(result.get("remaining", 0)),
            "X-RateLimit-Reset": str(result["reset_in_seconds"]),
        }
        if "retry_after" in result:
            headers["Retry-After"] = str(result["retry_after"])
        return headers

    def _get_client_ip(self, request: Request) -> str:
        """Socket peer address; forwarding headers count only behind a trusted proxy."""
        if not self.trust_proxy_headers:
            return request.client.host if request.client else "unknown"

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"
