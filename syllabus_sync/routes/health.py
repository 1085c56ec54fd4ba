# syllabus_sync/routes/health.py
"""
Health check endpoints: liveness and readiness.
"""

import time

from fastapi import APIRouter

from syllabus_sync.config import settings
from syllabus_sync.middleware.rate_limiter import rate_limiter
from syllabus_sync.services.llm_usage_tracker import llm_usage_tracker

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "syllabus-sync"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check: rate-limit backend reachable and LLM configuration.

    A missing LLM key does not make the service unready, since the
    heuristic extractor still answers; it is reported for visibility.
    """
    checks = {}
    overall_ok = True

    # 1) Rate-limit store
    t0 = time.time()
    try:
        store_ok = await rate_limiter.store.ping()
        checks["rate_limit_store"] = {
            "ok": bool(store_ok),
            "backend": settings.RATE_LIMIT_BACKEND,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = overall_ok and bool(store_ok)
    except Exception as e:
        checks["rate_limit_store"] = {
            "ok": False,
            "backend": settings.RATE_LIMIT_BACKEND,
            "error": f"{type(e).__name__}: {e}",
        }
        overall_ok = False

    # 2) LLM configuration
    checks["llm"] = {
        "ok": True,
        "configured": settings.llm_configured(),
        "model": settings.OPENAI_MODEL,
        "usage": await llm_usage_tracker.snapshot(),
    }

    checks["configuration"] = {"ok": True, "environment": settings.environment}

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
