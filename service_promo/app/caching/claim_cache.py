"""
Cache of validated bearer-token claims.
"""

import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Tuple

from shared.logging import get_logger
from .locks import ReadWriteLock


class AuthClaimCache:
    """Maps a raw token to the claims it was validated into.

    Entries expire at the token's own ``exp`` and are evicted by the read
    that finds them expired; nothing sweeps in the background. The map is
    unbounded unless ``max_entries`` is set, in which case the least
    recently used token is dropped first.
    """

    def __init__(self, max_entries: Optional[int] = None, clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self.clock = clock
        self.logger = get_logger("promo.claim_cache")
        self._entries: "OrderedDict[str, Tuple[Dict[str, Any], float]]" = OrderedDict()
        self._lock = ReadWriteLock()

    async def get_cached_claims(self, token: str) -> Optional[Dict[str, Any]]:
        """Return the claims for ``token`` if cached and not yet expired."""
        async with self._lock.read():
            entry = self._entries.get(token)

        if entry is None:
            return None

        claims, expiry = entry
        if self.clock() < expiry:
            if self.max_entries is not None:
                async with self._lock.write():
                    if token in self._entries:
                        self._entries.move_to_end(token)
            return claims

        async with self._lock.write():
            current = self._entries.get(token)
            # the token may have been re-saved with a later expiry meanwhile
            if current is not None and self.clock() >= current[1]:
                del self._entries[token]
                self.logger.debug("Expired token claims evicted")
        return None

    async def save_token_claims(self, token: str, claims: Dict[str, Any], expiry: float) -> None:
        """Insert or overwrite the claims for ``token``."""
        async with self._lock.write():
            self._entries[token] = (claims, float(expiry))
            self._entries.move_to_end(token)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    self._entries.popitem(last=False)

    async def size(self) -> int:
        async with self._lock.read():
            return len(self._entries)

    async def clear(self) -> None:
        async with self._lock.write():
            self._entries.clear()
