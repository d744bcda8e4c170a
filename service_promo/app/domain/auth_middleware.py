"""
Authentication middleware for the Promo Service.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from jose import JWTError, jwt

from shared.errors import AuthenticationError
from shared.logging import get_logger, set_user_context
from shared.metrics import MetricsCollector
from ..caching.claim_cache import AuthClaimCache


ALGORITHM = "HS256"


def is_public_path(path: str, public_paths) -> bool:
    """Exact match or a sub-path of a public prefix; `/get-promo` does not cover `/get-promo-store`."""
    for prefix in public_paths:
        if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
            return True
    return False


class AuthMiddleware:
    """Bearer-token authentication backed by a validated-claim cache.

    A cached, unexpired token skips signature verification entirely.
    Anything else is verified (HS256, audience) and, only on success,
    cached until its own ``exp``. Every failure is a 401 with a generic
    message; the cause is logged, not returned.
    """

    def __init__(
        self,
        claim_cache: AuthClaimCache,
        secret: Optional[str],
        audience: str = "authenticated",
        metrics: Optional[MetricsCollector] = None,
    ):
        self.claim_cache = claim_cache
        self.secret = secret
        self.audience = audience
        self.metrics = metrics
        self.logger = get_logger("promo.auth_middleware")

    async def authenticate_request(self, request: Request) -> Dict[str, Any]:
        """Authenticate an incoming request and attach its claims to request state."""
        token = self.extract_token(request.headers.get("Authorization"))
        claims = await self.authenticate_token(token)
        request.state.claims = claims
        return claims

    @staticmethod
    def extract_token(auth_header: Optional[str]) -> str:
        if not auth_header:
            raise AuthenticationError("Authorization header required")
        if not auth_header.startswith("Bearer "):
            raise AuthenticationError("Invalid authorization header format")
        token = auth_header[7:].strip()
        if not token:
            raise AuthenticationError("Invalid authorization header format")
        return token

    async def authenticate_token(self, token: str) -> Dict[str, Any]:
        cached = await self.claim_cache.get_cached_claims(token)
        if cached is not None:
            self._record("cache_hit")
            set_user_context(cached.get("sub"))
            self.logger.debug("Token claims served from cache", user_id=cached.get("sub"))
            return cached

        if not self.secret:
            self._record("misconfigured")
            self.logger.error("Token signing secret is not configured")
            raise AuthenticationError("Unauthorized")

        try:
            claims = jwt.decode(token, self.secret, algorithms=[ALGORITHM], audience=self.audience)
        except JWTError as exc:
            self._record("invalid")
            self.logger.warning("Token validation failed", error=str(exc))
            raise AuthenticationError("Unauthorized") from exc

        expiry = claims.get("exp")
        if not isinstance(expiry, (int, float)):
            self._record("invalid")
            self.logger.warning("Token has no expiry claim")
            raise AuthenticationError("Unauthorized")

        await self.claim_cache.save_token_claims(token, claims, float(expiry))
        self._record("valid")
        set_user_context(claims.get("sub"))
        self.logger.info("Token validated", user_id=claims.get("sub"))
        return claims

    def _record(self, result: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("token_validations_total", result=result)
