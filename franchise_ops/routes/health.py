"""
Health check endpoints.
"""

import time

from fastapi import APIRouter

from franchise_ops.config import settings
from franchise_ops.db.pool import db_health_check
from franchise_ops.infrastructure.locks.redis_client import redis_client

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "franchise-ops"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check. The database gates readiness; Redis only backs run
    locks, so its absence is reported but does not fail the check.
    """
    checks = {}

    t0 = time.time()
    try:
        db_health = await db_health_check()
        checks["database"] = {
            "ok": bool(db_health.get("healthy", False)),
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if "pool_stats" in db_health:
            checks["database"]["pool"] = db_health["pool_stats"]
        if not checks["database"]["ok"]:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")
    except Exception as e:
        checks["database"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}

    t0 = time.time()
    redis_ok = await redis_client.ping()
    checks["redis"] = {
        "ok": redis_ok,
        "latency_ms": round((time.time() - t0) * 1000, 1),
        "required": False,
    }

    checks["configuration"] = {
        "ok": True,
        "environment": settings.environment,
        "cron_secret_configured": settings.cron_secret_configured(),
    }

    return {
        "overall_ok": checks["database"]["ok"],
        "checks": checks,
        "timestamp": time.time(),
    }
