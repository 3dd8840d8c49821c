"""Async tasks of the core module."""

import structlog
from celery import shared_task

from modules.core.gateway import store_gateway

logger = structlog.get_logger(__name__)


@shared_task(name="core.refresh_store_selection")
def refresh_store_selection():
    """Re-dial the store candidates so a recovered primary is picked up again."""
    result = store_gateway.refresh()
    if result.available:
        logger.info("store.refresh_completed", candidate=result.candidate_name)
        return {"status": "up", "candidate": result.candidate_name}
    logger.warning("store.refresh_completed", status="down")
    return {
        "status": "down",
        "failures": [failure.as_dict() for failure in result.failures],
    }
