# services/flying411_client.py
from typing import Any, Dict, Optional

import httpx
import structlog

from common.config import APP_VER, FLYING411_API_KEY, FLYING411_API_URL, FLYING411_TIMEOUT
from common.errors import ExternalServiceError
from common.retry import with_backoff

# ENV:
# FLYING411_API_URL=https://api.flying411.com/v1
# FLYING411_API_KEY=<...>
# FLYING411_TIMEOUT=30

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.ConnectError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return False


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and (body.get("message") or body.get("error")):
            return str(body.get("message") or body.get("error"))
        return f"HTTP {exc.response.status_code}"
    return str(exc) or exc.__class__.__name__


class Flying411Client:
    """Thin client for the Flying411.com listing API. Pass `http` to reuse or mock the transport."""

    def __init__(
        self,
        base_url: str = FLYING411_API_URL,
        api_key: str = FLYING411_API_KEY,
        timeout: float = FLYING411_TIMEOUT,
        http: Optional[httpx.Client] = None,
        max_retries: int = 3,
        sleep=None,
    ):
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self._sleep = sleep
        self._http = http or httpx.Client(
            timeout=timeout,
            headers={
                "Content-Type": "application/json",
                "X-API-Key": api_key,
                "User-Agent": f"Flying411-BulkUpload/{APP_VER}",
            },
        )

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"

        def call() -> httpx.Response:
            r = self._http.request(method, url, json=json)
            r.raise_for_status()
            return r

        kwargs = {"sleep": self._sleep} if self._sleep else {}
        try:
            r = with_backoff(
                call,
                retry_on=(httpx.HTTPError,),
                should_retry=_is_transient,
                max_retries=self.max_retries,
                **kwargs,
            )
        except httpx.HTTPError as e:
            logger.error("flying411_request_failed", method=method, path=path, error=_error_message(e))
            raise ExternalServiceError("flying411", _error_message(e), retryable=_is_transient(e))

        logger.info("flying411_request", method=method, path=path, status=r.status_code)
        if not r.content:
            return {}
        try:
            body = r.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"data": body}

    def create_listing(self, payload: Dict[str, Any]) -> str:
        """Returns the external id assigned by Flying411."""
        body = self._request("POST", "/sync", payload)
        external_id = body.get("id") or body.get("externalId") or (body.get("data") or {}).get("id")
        if not external_id:
            raise ExternalServiceError("flying411", "Response did not include a listing id")
        return str(external_id)

    def update_listing(self, external_id: str, payload: Dict[str, Any]) -> str:
        self._request("PUT", f"/sync/{external_id}", payload)
        return external_id

    def delete_listing(self, external_id: str) -> None:
        self._request("DELETE", f"/sync/{external_id}")

    def health_check(self) -> bool:
        try:
            self._request("GET", "/health")
            return True
        except ExternalServiceError:
            return False
