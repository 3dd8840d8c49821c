import time
from typing import Any, Dict

import structlog
from django.core.cache import cache
from django.db import connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

from modules.core.gateway import store_gateway

logger = structlog.get_logger(__name__)


def health_check(request: HttpRequest) -> JsonResponse:
    """Report the selected store, its database round-trip and the cache.

    Returns 503 when the marketplace runs in degraded mode (no store
    candidate reachable) or a backing service is down.
    """
    services: Dict[str, Dict[str, Any]] = {}
    overall_healthy = True

    store = store_gateway.get_store()
    if store.available:
        services["store"] = {"status": "up", "candidate": store.candidate_name}
    else:
        services["store"] = {
            "status": "down",
            "failures": [failure.as_dict() for failure in store.failures],
        }
        overall_healthy = False
        logger.error("health_check.store_unavailable")

    if store.available:
        try:
            start = time.monotonic()
            conn = connections[store.handle]
            conn.ensure_connection()
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            services["database"] = {
                "status": "up",
                "response_time_ms": round((time.monotonic() - start) * 1000, 2),
            }
        except Exception:
            services["database"] = {"status": "down"}
            overall_healthy = False
            logger.error("health_check.db_failure", alias=store.handle)

    try:
        start = time.monotonic()
        cache.set("_health_check", "ok", 10)
        if cache.get("_health_check") != "ok":
            raise ConnectionError("Cache read failed")
        services["cache"] = {
            "status": "up",
            "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        }
    except Exception:
        services["cache"] = {"status": "down"}
        overall_healthy = False
        logger.error("health_check.cache_failure")

    logger.info(
        "health_check.completed",
        status="healthy" if overall_healthy else "unhealthy",
    )

    return JsonResponse(
        {
            "status": "healthy" if overall_healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if overall_healthy else 503,
    )
