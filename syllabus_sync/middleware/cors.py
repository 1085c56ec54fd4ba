"""
CORS Middleware - origin allow-list for browser and native clients.

Allowed origins may be exact (``https://app.example.com``) or contain ``*``
wildcards (``http://localhost:*``, ``capacitor://*``). Native iOS web views
send ``Origin: null``; that is always accepted, as are requests without an
Origin header (server-to-server, curl).

Disallowed origins get 403 on preflight and on protected paths (``/parse``).
Other paths still run but receive no CORS headers, so browsers block them.

Usage:
    from syllabus_sync.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allowed_origins=["http://localhost:*"],
        protected_paths=["/parse"],
    )
"""

import re

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from syllabus_sync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

NULL_ORIGIN = "null"


def compile_origin_pattern(pattern: str) -> re.Pattern:
    """``*`` matches any run of characters; everything else is literal."""
    return re.compile("^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$")


class CORSMiddleware(BaseHTTPMiddleware):
    """Handles preflight OPTIONS requests and adds CORS headers to responses."""

    def __init__(
        self,
        app,
        allowed_origins: list[str] | None = None,
        protected_paths: list[str] | None = None,
        allow_methods: list[str] | None = None,
        allow_headers: list[str] | None = None,
        max_age: int = 600,
    ):
        """
        Args:
            app: ASGI application
            allowed_origins: Exact origins or ``*`` wildcard patterns
            protected_paths: Paths that reject disallowed origins with 403
            allow_methods: Allowed HTTP methods
            allow_headers: Allowed request headers
            max_age: How long (seconds) to cache preflight responses
        """
        super().__init__(app)
        self.allowed_origins = allowed_origins or []
        self._patterns = [compile_origin_pattern(p) for p in self.allowed_origins]
        self.protected_paths = set(protected_paths or [])
        self.allow_methods = allow_methods or ["GET", "POST", "OPTIONS"]
        self.allow_headers = allow_headers or [
            "Content-Type",
            "Authorization",
            "X-Client-ID",
            "X-Request-ID",
        ]
        self.max_age = max_age

        logger.info("CORS middleware initialized", allowed_origins=self.allowed_origins)

    def is_origin_allowed(self, origin: str | None) -> bool:
        if origin is None or origin == NULL_ORIGIN:
            return True
        return any(pattern.match(origin) for pattern in self._patterns)

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        allowed = self.is_origin_allowed(origin)

        if request.method == "OPTIONS" and request.headers.get("access-control-request-method"):
            if not allowed:
                logger.warning("CORS preflight rejected - origin not allowed", origin=origin)
                return self._forbidden()
            return self._preflight_response(origin)

        if not allowed and request.url.path in self.protected_paths:
            logger.warning(
                "Request rejected - origin not allowed", origin=origin, path=request.url.path
            )
            return self._forbidden()

        response = await call_next(request)

        if origin and allowed:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"

        return response

    def _forbidden(self) -> Response:
        return JSONResponse(status_code=403, content={"error": "Forbidden: origin not allowed"})

    def _preflight_response(self, origin: str | None) -> Response:
        headers = {
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
            "Access-Control-Max-Age": str(self.max_age),
            "Vary": "Origin",
        }
        if origin:
            headers["Access-Control-Allow-Origin"] = origin

        return Response(status_code=204, headers=headers)
