# streamlit_app/src/row_edit.py
from typing import Any, Callable, Dict, List, Optional

from .api import ApiClient, ApiError
from .mapping import REQUIRED_FIELDS
from .utils import Debouncer

LOW_CONFIDENCE = 0.5
MIN_QUERY_LENGTH = 2


class RowEditForm:
    """Editable copy of one row's field map. Nothing is persisted until save()."""

    def __init__(self, row: Dict[str, Any]):
        self.row = row
        source = row.get("mappedData") or row.get("rawData") or {}
        self.values: Dict[str, str] = {k: "" if v is None else str(v) for k, v in source.items()}
        for f in REQUIRED_FIELDS:
            self.values.setdefault(f, "")

    def set_value(self, field: str, value: str) -> None:
        self.values[field] = value

    def missing_fields(self) -> List[str]:
        return [f for f in REQUIRED_FIELDS if not (self.values.get(f) or "").strip()]

    def needs_more_info(self) -> bool:
        conf = self.row.get("matchConfidence")
        low = conf is not None and conf < LOW_CONFIDENCE
        return bool(self.missing_fields()) or low

    def select_part(self, part: Dict[str, Any]) -> None:
        """Attach a search result to the form; part number is filled only when blank."""
        self.values["matchedPartId"] = part["id"]
        if not (self.values.get("partNumber") or "").strip():
            self.values["partNumber"] = part.get("partNumber", "")

    @property
    def matched_part_id(self) -> Optional[str]:
        return self.values.get("matchedPartId") or None

    def payload(self) -> Dict[str, str]:
        return dict(self.values)

    def save(self, store) -> bool:
        return store.update_row(self.row["id"], self.payload())


class PartSearch:
    """
    Part-number lookup for the edit modal. Typed queries go through a 300 ms
    debounce; `search_now` bypasses it for explicit submits.
    """

    def __init__(self, api: ApiClient, limit: int = 5, wait: float = 0.3,
                 on_results: Optional[Callable[[List[Dict[str, Any]]], None]] = None):
        self.api = api
        self.limit = limit
        self.query = ""
        self.results: List[Dict[str, Any]] = []
        self.error: Optional[str] = None
        self.on_results = on_results
        self._debounced = Debouncer(self.search_now, wait=wait)

    def type_query(self, q: str) -> None:
        self.query = q
        if len((q or "").strip()) < MIN_QUERY_LENGTH:
            self._debounced.cancel()
            self.results = []
            return
        self._debounced(q)

    def submit(self, q: str) -> List[Dict[str, Any]]:
        self.query = q
        self._debounced.cancel()
        return self.search_now()

    def search_now(self, q: Optional[str] = None) -> List[Dict[str, Any]]:
        q = (self.query if q is None else q).strip()
        if len(q) < MIN_QUERY_LENGTH:
            self.results = []
            return self.results
        try:
            found = self.api.search_parts(q, limit=self.limit)
        except ApiError as e:
            self.error = e.message
            self.results = []
            return self.results
        # a newer keystroke supersedes this result
        if q != (self.query or "").strip():
            return self.results
        self.error = None
        self.results = found
        if self.on_results:
            self.on_results(found)
        return self.results
