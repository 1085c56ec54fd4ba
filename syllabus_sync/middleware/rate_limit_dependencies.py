"""
Rate Limit Dependencies - per-IP rate limiting for endpoints.

Usage:
    from syllabus_sync.middleware.rate_limit_dependencies import rate_limit_ip

    @router.post("/parse")
    async def parse(
        request: Request,
        _rate: None = Depends(rate_limit_ip),
    ):
        ...
"""

from fastapi import HTTPException, Request, status

from syllabus_sync.config import settings
from syllabus_sync.infrastructure.observability.logging import get_logger
from syllabus_sync.middleware.rate_limiter import rate_limiter

logger = get_logger(__name__)


def client_ip(request: Request) -> str | None:
    """IP resolved by RequestContextMiddleware, falling back to the socket peer."""
    ip_address = getattr(request.state, "ip_address", None)
    if ip_address:
        return ip_address
    return request.client.host if request.client else None


async def rate_limit_ip_only(request: Request) -> None:
    """
    Rate limit dependency keyed by client IP.

    Raises:
        HTTPException: 429 with a Retry-After header if the limit is exceeded
    """
    if not settings.RATE_LIMIT_ENABLED:
        return

    ip_address = client_ip(request)
    if not ip_address:
        logger.warning("No client IP, using shared bucket", path=request.url.path)

    allowed, info = await rate_limiter.check_ip_rate_limit(ip_address)

    # Read by RateLimitHeadersMiddleware
    request.state.rate_limit_info = info

    if not allowed:
        logger.warning(
            "IP rate limit exceeded",
            ip_address=ip_address,
            limit=info["limit"],
            retry_after=info["retry_after"],
            path=request.url.path,
        )

        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "rate_limit_exceeded",
                "message": f"Too many requests from your IP. Try again in {info['retry_after']} seconds.",
                "limit": info["limit"],
                "retry_after": info["retry_after"],
            },
            headers={"Retry-After": str(info["retry_after"])},
        )


rate_limit_ip = rate_limit_ip_only
