"""
RequestContext Middleware - request tracking for every request.

Adds to request.state:
- request_id: UUID for tracing this request
- ip_address: Client IP address (rate limiting and LLM usage are keyed on it)
- user_agent: Client user agent string

Also binds request_id into the structlog context so every log line written
while handling the request carries it, and echoes it as X-Request-ID.
"""

import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from syllabus_sync.config import settings
from syllabus_sync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Request.state Namespace Convention:
    - request_id, ip_address, user_agent: Set by RequestContextMiddleware
    - rate_limit_info: Set by rate limit dependencies
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        ip_address = self._extract_client_ip(request)
        request.state.ip_address = ip_address

        user_agent = request.headers.get("user-agent")
        request.state.user_agent = user_agent

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            logger.debug(
                "Request started",
                method=request.method,
                path=request.url.path,
                ip_address=ip_address,
                user_agent=user_agent,
            )

            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Request-ID"] = request_id
        return response

    def _extract_client_ip(self, request: Request) -> str | None:
        """
        Extract client IP address with proxy spoofing protection.

        X-Forwarded-For is only honored when TRUST_X_FORWARDED_FOR is enabled
        and the direct peer is one of TRUSTED_PROXY_IPS; otherwise a client
        could pick its own rate limit bucket.
        """
        peer = request.client.host if request.client else None

        if not settings.TRUST_X_FORWARDED_FOR:
            return peer

        if peer and peer in settings.TRUSTED_PROXY_IPS:
            forwarded_for = request.headers.get("x-forwarded-for")
            if forwarded_for:
                # "client, proxy1, proxy2": first entry is the original client
                ip_address = forwarded_for.split(",")[0].strip()
                logger.debug(
                    "Using X-Forwarded-For from trusted proxy",
                    proxy_ip=peer,
                    client_ip=ip_address,
                )
                return ip_address or peer

        return peer
