import os
import mimetypes
import httpx
from typing import Optional, List, Dict, Any
from dotenv import load_dotenv

load_dotenv()
BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000").rstrip("/")
USER_ID = os.getenv("API_USER_ID", "default_user")
TIMEOUT = float(os.getenv("API_TIMEOUT", "120"))

_DEFAULT_MESSAGES = {
    "timeout": "The server took too long to respond. Please try again.",
    "offline": "Cannot reach the server. Check your connection and try again.",
    "server": "The server ran into a problem. Please try again later.",
    "rate_limit": "Too many requests. Please wait a moment and try again.",
    "unauthorized": "Your session has expired. Please sign in again.",
    "forbidden": "You do not have access to this upload.",
    "not_found": "The requested item was not found.",
    "validation": "The request was rejected.",
    "unknown": "Something went wrong.",
}


class ApiError(Exception):
    """
    Classified request failure.

    kind: timeout | offline | server | rate_limit | unauthorized | forbidden
          | not_found | validation | unknown
    For validation errors the server's message is kept verbatim.
    """

    def __init__(self, kind: str, message: Optional[str] = None, status: Optional[int] = None,
                 code: Optional[str] = None):
        self.kind = kind
        self.message = message or _DEFAULT_MESSAGES.get(kind, _DEFAULT_MESSAGES["unknown"])
        self.status = status
        self.code = code
        super().__init__(self.message)


def kind_for_status(status: int) -> str:
    if status in (400, 422):
        return "validation"
    if status == 401:
        return "unauthorized"
    if status == 403:
        return "forbidden"
    if status == 404:
        return "not_found"
    if status == 429:
        return "rate_limit"
    if status >= 500:
        return "server"
    return "unknown"


def error_from_response(r: httpx.Response) -> ApiError:
    kind = kind_for_status(r.status_code)
    try:
        body = r.json()
    except ValueError:
        body = None
    server_msg, code = None, None
    if isinstance(body, dict):
        server_msg = body.get("error") or body.get("message") or body.get("detail")
        code = body.get("code")
        if not isinstance(server_msg, str):
            server_msg = None
    # only validation failures show the server's wording; the rest use friendly defaults
    message = server_msg if kind == "validation" else None
    return ApiError(kind, message, status=r.status_code, code=code)


class ApiClient:
    """One method per backend endpoint; returns the envelope's `data`, raises ApiError."""

    def __init__(self, base_url: str = BASE, user_id: str = USER_ID, http: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self._http = http or httpx.Client(timeout=TIMEOUT)

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = {"X-User-Id": self.user_id}
        try:
            r = self._http.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise ApiError("timeout") from e
        except httpx.TransportError as e:
            raise ApiError("offline") from e

        if r.status_code >= 400:
            raise error_from_response(r)
        try:
            body = r.json()
        except ValueError as e:
            raise ApiError("unknown", "The server sent an unreadable response.", status=r.status_code) from e
        if isinstance(body, dict) and body.get("ok") is False:
            raise ApiError("validation", body.get("error"), status=r.status_code, code=body.get("code"))
        if isinstance(body, dict) and "data" in body:
            return body["data"] or {}
        return body if isinstance(body, dict) else {"data": body}

    # ---- upload workflow ----

    def create_session(self, filename: str, content: bytes, content_type: Optional[str] = None) -> Dict[str, Any]:
        ctype = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return self._request("POST", "/upload/session", files={"file": (filename, content, ctype)})

    def parse(self, session_id: str, sheet_name: Optional[str] = None) -> Dict[str, Any]:
        data = {"sheetName": sheet_name} if sheet_name else None
        return self._request("POST", f"/upload/session/{session_id}/parse", data=data)

    def suggest_mappings(self, session_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/upload/session/{session_id}/map")

    def save_mapping(self, session_id: str, mappings: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self._request("PUT", f"/upload/session/{session_id}/mapping", json={"mappings": mappings})

    def match(self, session_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/upload/session/{session_id}/match")

    def rows(self, session_id: str, page: int = 1, limit: int = 25, status: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if status:
            params["status"] = status
        return self._request("GET", f"/upload/session/{session_id}/rows", params=params)

    def update_row(self, session_id: str, row_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/upload/session/{session_id}/rows/{row_id}", json=values)

    def import_rows(self, session_id: str, row_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        body = {"rowIds": row_ids} if row_ids else None
        return self._request("POST", f"/upload/session/{session_id}/import", json=body)

    def export(self, session_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/upload/session/{session_id}/export")

    def sessions(self, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        return self._request("GET", "/upload/sessions", params={"page": page, "limit": limit})

    def session(self, session_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/upload/session/{session_id}")

    # ---- parts ----

    def search_parts(self, q: str, limit: int = 5) -> List[Dict[str, Any]]:
        return self._request("GET", "/parts/search", params={"q": q, "limit": limit}).get("parts", [])

    # ---- Flying411 sync ----

    def sync_stats(self) -> Dict[str, Any]:
        return self._request("GET", "/sync/stats")

    def sync_listings(self, listing_ids: List[str]) -> Dict[str, Any]:
        return self._request("POST", "/sync/listings", json={"listingIds": listing_ids})

    def listings(self, sync_status: Optional[str] = None, page: int = 1, limit: int = 20,
                 session_id: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if session_id:
            params["sessionId"] = session_id
        if sync_status:
            params["syncStatus"] = sync_status
        return self._request("GET", "/sync/listings", params=params)

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")
