import uuid
from contextvars import ContextVar
from typing import Callable

import structlog
from django.http import HttpRequest, HttpResponse

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = structlog.get_logger(__name__)


def get_correlation_id() -> str:
    """Correlation ID of the current request, or a fresh one outside a request."""
    return correlation_id_var.get() or str(uuid.uuid4())


class CorrelationIdMiddleware:
    """Extract or generate a correlation ID for each request.

    Reads the X-Request-ID header; when absent a UUID4 is generated. The
    ID is kept in a ContextVar, bound into structlog's context so every
    log line carries it, stamped on notification records created while
    serving the request, and echoed back in the X-Request-ID header.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = request.META.get("HTTP_X_REQUEST_ID") or str(uuid.uuid4())
        token = correlation_id_var.set(cid)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=cid)

        logger.info(
            "request.started",
            method=request.method,
            path=request.get_full_path(),
        )

        try:
            response = self.get_response(request)
        finally:
            correlation_id_var.reset(token)

        logger.info(
            "request.finished",
            method=request.method,
            path=request.get_full_path(),
            status_code=response.status_code,
        )

        response["X-Request-ID"] = cid
        return response
