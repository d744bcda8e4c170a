"""
Rate limiting package for the Promo Service.

Per-client sliding windows held in process memory, keyed by a hashed
fingerprint of IP, user agent and accept-language.
"""

from .sliding_window import RateLimitMiddleware, SlidingWindowRateLimiter

__all__ = ["RateLimitMiddleware", "SlidingWindowRateLimiter"]
