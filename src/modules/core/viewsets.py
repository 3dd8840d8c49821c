"""View helpers shared by the API modules."""

from __future__ import annotations

import structlog
from rest_framework import status
from rest_framework.response import Response

from modules.core.exceptions import StoreUnavailable
from modules.core.gateway import store_gateway

logger = structlog.get_logger(__name__)


class StoreBoundViewMixin:
    """Resolve the persistence gateway's store before every action.

    ``self.store_alias`` is the database alias repositories must bind to.
    It is resolved before authentication so the token's user is loaded
    from the same store (see ``StoreJWTAuthentication``).
    Any ``StoreUnavailable`` escaping the action (from the gateway lookup
    or from a repository) becomes the degraded-mode 503 response.
    """

    store_alias: str = "default"

    def initial(self, request, *args, **kwargs):
        self.store_alias = store_gateway.require_store().handle
        request.store_alias = self.store_alias
        super().initial(request, *args, **kwargs)

    def handle_exception(self, exc):
        if isinstance(exc, StoreUnavailable):
            store_gateway.invalidate()
            logger.warning("api.store_unavailable", error=str(exc))
            return Response(
                {
                    "detail": "Service temporarily unavailable. Please retry shortly.",
                    "code": "store_unavailable",
                },
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return super().handle_exception(exc)
