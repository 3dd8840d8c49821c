"""Translate database driver failures into ``StoreUnavailable``."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import structlog
from django.db import InterfaceError, OperationalError

from modules.core.exceptions import StoreUnavailable

logger = structlog.get_logger(__name__)


@contextmanager
def store_errors(using: str) -> Iterator[None]:
    """Re-raise connection-level ORM errors as ``StoreUnavailable``.

    Integrity and programming errors are left alone; they are bugs or
    domain conflicts, not a vanished datastore.
    """
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        logger.error("store.operation_failed", alias=using, error=str(exc))
        raise StoreUnavailable(f"Store '{using}' is unavailable.") from exc
