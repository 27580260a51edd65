# rehearsal_sync/routes/health.py
"""
Health check endpoints for the sync service and its collaborators.
"""

import time

from fastapi import APIRouter

from rehearsal_sync.config import settings
from rehearsal_sync.services.sync.runtime import sync_runtime

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "rehearsal-sync"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check covering Redis and the availability store.
    """
    checks = {}
    overall_ok = True

    if not sync_runtime.initialized:
        return {
            "overall_ok": False,
            "checks": {"runtime": {"ok": False, "error": "Sync runtime not initialized"}},
            "timestamp": time.time(),
        }

    # 1) Redis health check
    t0 = time.time()
    redis_ok = await sync_runtime.store.ping()
    checks["redis"] = {"ok": redis_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
    overall_ok = overall_ok and redis_ok

    # 2) Availability store health check
    t0 = time.time()
    store_ok = await sync_runtime.backend.health_check()
    checks["availability_store"] = {"ok": store_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
    overall_ok = overall_ok and store_ok

    # 3) Configuration checks
    config_issues = []
    if not settings.BACKEND_ACCESS_TOKEN:
        config_issues.append("BACKEND_ACCESS_TOKEN not set")
    if not settings.GOOGLE_CALENDAR_ACCESS_TOKEN:
        config_issues.append("GOOGLE_CALENDAR_ACCESS_TOKEN not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
        "timezone": settings.resolved_timezone(),
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
