# streamlit_app/src/upload_store.py
"""
Client-side owner of the active upload session.

One UploadStore per browser session (kept in st.session_state). Every remote
method returns True/False and never raises: failures land in `error` and go
to the `notify` callback as a toast. `reset()` bumps `generation`, and a
response that comes back for an older generation is dropped.
"""
from typing import Any, Callable, Dict, List, Optional

import structlog

from .api import ApiClient, ApiError

logger = structlog.get_logger(__name__)

STEP_UPLOAD, STEP_MAPPING, STEP_REVIEW, STEP_RESULTS = 0, 1, 2, 3
STEPS = ["Upload File", "Column Mapping", "Review Data", "Import Results"]


def _noop(kind: str, message: str) -> None:
    return None


class UploadStore:
    def __init__(self, api: ApiClient, notify: Optional[Callable[[str, str], None]] = None):
        self.api = api
        self.notify = notify or _noop
        self.generation = 0
        self._clear()

    def _clear(self) -> None:
        self.session: Optional[Dict[str, Any]] = None
        self.step = STEP_UPLOAD
        self.headers: List[str] = []
        self.sample_rows: List[Dict[str, str]] = []
        self.mappings: List[Dict[str, Any]] = []
        self.unmapped_source: List[str] = []
        self.ai_used = False
        self.rows: List[Dict[str, Any]] = []
        self.pagination: Dict[str, int] = {"page": 1, "limit": 25, "total": 0}
        self.status_filter: Optional[str] = None
        self.import_result: Optional[Dict[str, Any]] = None
        self.publish_result: Optional[Dict[str, Any]] = None
        self.sessions: List[Dict[str, Any]] = []
        self.is_loading = False
        self.error: Optional[str] = None

    @property
    def session_id(self) -> Optional[str]:
        return (self.session or {}).get("id")

    # ---- plumbing ----

    def _run(self, label: str, call: Callable[[], Dict[str, Any]], apply: Callable[[Dict[str, Any]], None]) -> bool:
        gen = self.generation
        self.is_loading = True
        self.error = None
        try:
            data = call()
        except ApiError as e:
            if gen != self.generation:
                logger.info("stale_response_dropped", action=label, kind=e.kind)
                return False
            self.error = e.message
            self.is_loading = False
            logger.warning("store_action_failed", action=label, kind=e.kind, status=e.status)
            self.notify("error", e.message)
            return False
        if gen != self.generation:
            logger.info("stale_response_dropped", action=label)
            return False
        apply(data)
        self.is_loading = False
        return True

    def _set_session(self, data: Dict[str, Any]) -> None:
        if data.get("session"):
            self.session = data["session"]

    # ---- remote operations ----

    def create_session(self, filename: str, content: bytes, content_type: Optional[str] = None) -> bool:
        def apply(data):
            self.session = data["session"]
            self.step = STEP_UPLOAD
            self.headers, self.sample_rows, self.mappings = [], [], []
            self.rows, self.import_result = [], None

        ok = self._run("create_session", lambda: self.api.create_session(filename, content, content_type), apply)
        if ok:
            self.notify("success", f"Uploaded {filename}")
        return ok

    def parse_file(self, sheet_name: Optional[str] = None) -> bool:
        if not self.session_id:
            return False
        sid = self.session_id

        def apply(data):
            self._set_session(data)
            self.headers = data.get("headers", [])
            self.sample_rows = data.get("sampleRows", [])

        return self._run("parse_file", lambda: self.api.parse(sid, sheet_name), apply)

    def get_ai_mappings(self) -> bool:
        if not self.session_id:
            return False
        sid = self.session_id

        def apply(data):
            self._set_session(data)
            self.mappings = list(data.get("mappings", []))
            self.unmapped_source = data.get("unmappedSource", [])
            self.ai_used = bool(data.get("aiUsed"))

        return self._run("get_ai_mappings", lambda: self.api.suggest_mappings(sid), apply)

    def save_mapping(self, mappings: List[Dict[str, Any]]) -> bool:
        if not self.session_id:
            return False
        sid = self.session_id
        kept = [m for m in mappings if m.get("targetField") and m.get("sourceColumn")]

        def apply(data):
            self._set_session(data)
            self.mappings = kept

        return self._run("save_mapping", lambda: self.api.save_mapping(sid, kept), apply)

    def run_matching(self) -> bool:
        if not self.session_id:
            return False
        sid = self.session_id
        return self._run("run_matching", lambda: self.api.match(sid), self._set_session)

    def fetch_rows(self, page: int = 1, limit: int = 25, status: Optional[str] = None) -> bool:
        if not self.session_id:
            return False
        sid = self.session_id

        def apply(data):
            self.rows = data.get("rows", [])
            self.pagination = data.get("pagination", {"page": page, "limit": limit, "total": len(self.rows)})
            self.status_filter = status

        return self._run("fetch_rows", lambda: self.api.rows(sid, page=page, limit=limit, status=status), apply)

    def update_row(self, row_id: str, values: Dict[str, Any]) -> bool:
        if not self.session_id:
            return False
        sid = self.session_id

        def apply(data):
            self._set_session(data)
            updated = data["row"]
            self.rows = [updated if r.get("id") == row_id else r for r in self.rows]

        ok = self._run("update_row", lambda: self.api.update_row(sid, row_id, values), apply)
        if ok:
            self.notify("success", "Row updated")
        return ok

    def import_rows(self, row_ids: Optional[List[str]] = None) -> bool:
        if not self.session_id:
            return False
        sid = self.session_id

        def apply(data):
            self._set_session(data)
            self.import_result = {k: data.get(k) for k in ("imported", "skipped", "errors")}

        ok = self._run("import_rows", lambda: self.api.import_rows(sid, row_ids=row_ids), apply)
        if ok:
            self.notify("success", f"Imported {self.import_result.get('imported', 0)} listings")
        return ok

    def publish_listings(self, page_size: int = 100, batch_size: int = 50) -> bool:
        """Send every unsynced listing of this session to Flying411, paging the listing query."""
        if not self.session_id:
            return False
        sid = self.session_id

        def call():
            ids: List[str] = []
            page = 1
            while True:
                data = self.api.listings(session_id=sid, sync_status="not_synced", page=page, limit=page_size)
                batch = data.get("listings", [])
                ids.extend(l["id"] for l in batch)
                total = data.get("pagination", {}).get("total", 0)
                if not batch or len(ids) >= total:
                    break
                page += 1
            results, ok = [], 0
            for i in range(0, len(ids), batch_size):
                out = self.api.sync_listings(ids[i:i + batch_size])
                results.extend(out.get("results", []))
                ok += out.get("summary", {}).get("succeeded", 0)
            return {"results": results, "summary": {"total": len(ids), "succeeded": ok, "failed": len(ids) - ok}}

        def apply(data):
            self.publish_result = data

        ok = self._run("publish_listings", call, apply)
        if ok:
            self.notify("success", f"Published {self.publish_result['summary']['succeeded']} listings")
        return ok

    def fetch_sessions(self, page: int = 1, limit: int = 10) -> bool:
        def apply(data):
            self.sessions = data.get("sessions", [])

        return self._run("fetch_sessions", lambda: self.api.sessions(page=page, limit=limit), apply)

    # ---- local transitions ----

    def set_step(self, step: int) -> None:
        self.step = max(STEP_UPLOAD, min(STEP_RESULTS, step))

    def back(self) -> None:
        if self.step in (STEP_MAPPING, STEP_REVIEW):
            self.step -= 1

    def reset(self) -> None:
        self.generation += 1
        self._clear()

    # ---- wizard steps ----

    def upload_and_parse(self, filename: str, content: bytes, content_type: Optional[str] = None,
                         sheet_name: Optional[str] = None) -> bool:
        if not self.create_session(filename, content, content_type):
            return False
        if not self.parse_file(sheet_name):
            return False
        self.get_ai_mappings()
        self.set_step(STEP_MAPPING)
        return True

    def confirm_mapping(self, mappings: List[Dict[str, Any]]) -> bool:
        """Advance to review only when both the save and the matching run succeed."""
        if not self.save_mapping(mappings):
            return False
        if not self.run_matching():
            return False
        self.fetch_rows(page=1, limit=self.pagination.get("limit", 25))
        self.set_step(STEP_REVIEW)
        return True

    def import_and_finish(self, row_ids: Optional[List[str]] = None) -> bool:
        if not self.import_rows(row_ids=row_ids):
            return False
        self.set_step(STEP_RESULTS)
        return True
