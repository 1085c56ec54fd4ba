"""
Middleware components for request processing.

This package contains middleware for:
- Request context (request ID, IP address, user agent)
- Rate limiting (per-IP admission control and X-RateLimit-* headers)
- CORS (origin allow-list with wildcard patterns)
"""

from syllabus_sync.middleware.cors import CORSMiddleware
from syllabus_sync.middleware.rate_limit_dependencies import rate_limit_ip
from syllabus_sync.middleware.rate_limit_headers import RateLimitHeadersMiddleware
from syllabus_sync.middleware.rate_limiter import rate_limiter
from syllabus_sync.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "RateLimitHeadersMiddleware",
    "CORSMiddleware",
    "rate_limiter",
    "rate_limit_ip",
]
