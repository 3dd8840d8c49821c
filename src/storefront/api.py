"""HTTP client for the orders API.

Failures are split in two: ``ApiUnavailable`` (the server could not be
reached or answered 5xx, including the degraded-mode 503) and
``ApiError`` (a 4xx, i.e. the server looked at the request and said no).
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import requests
import structlog

logger = structlog.get_logger(__name__)


class ApiUnavailable(Exception):
    """The API could not be reached or failed server-side."""


class ApiError(Exception):
    """The API rejected the request (4xx)."""

    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self.payload = payload
        detail = payload.get("detail") if isinstance(payload, dict) else payload
        super().__init__(f"HTTP {status_code}: {detail}")


class OrdersApiClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._session = session or requests.Session()

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                json=json,
                headers=self._headers(headers),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("api.unreachable", method=method, url=url, error=str(exc))
            raise ApiUnavailable(str(exc)) from exc

        if response.status_code >= 500:
            logger.warning("api.server_error", method=method, url=url, status=response.status_code)
            raise ApiUnavailable(f"HTTP {response.status_code} from {url}")
        if response.status_code >= 400:
            raise ApiError(response.status_code, _json_or_text(response))
        if not response.content:
            return {}
        body = _json_or_text(response)
        if not isinstance(body, dict):
            # A proxy or captive portal answering in place of the API.
            logger.warning("api.unexpected_body", method=method, url=url, status=response.status_code)
            raise ApiUnavailable(f"Unexpected response body from {url}")
        return body

    def create_order(
        self, payload: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        return self._request("POST", "/api/v1/orders/", json=payload, headers=headers)

    def get_order(self, order_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/v1/orders/{order_id}/")

    def send_confirmation(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/v1/orders/send-confirmation/", json=payload)


def _json_or_text(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
