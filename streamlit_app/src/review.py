# streamlit_app/src/review.py
from typing import Any, Dict, List, Optional, Set

STATUS_FILTERS = ["all", "matched", "partial", "unmatched", "error"]
STATUS_COLORS = {
    "matched": "#10b981",    # emerald
    "partial": "#f59e0b",    # amber
    "unmatched": "#ef4444",  # red
    "error": "#ef4444",
}
IMPORTABLE_STATUSES = ("matched", "partial")


class RowReviewGrid:
    """Selection, filter and paging state for the review table."""

    def __init__(self, limit: int = 25):
        self.status_filter = "all"
        self.page = 1
        self.limit = limit
        self.selected: Set[str] = set()

    @property
    def status_param(self) -> Optional[str]:
        return None if self.status_filter == "all" else self.status_filter

    def set_filter(self, status: str) -> None:
        if status not in STATUS_FILTERS:
            raise ValueError(f"Unknown status filter: {status}")
        if status != self.status_filter:
            self.status_filter = status
            self.page = 1
            self.selected.clear()

    @staticmethod
    def color_for(status: str) -> str:
        return STATUS_COLORS.get(status, STATUS_COLORS["error"])

    def toggle(self, row_id: str) -> None:
        if row_id in self.selected:
            self.selected.remove(row_id)
        else:
            self.selected.add(row_id)

    def toggle_all(self, rows: List[Dict[str, Any]]) -> None:
        """Select every visible row, or clear them all when they are already selected."""
        ids = {r["id"] for r in rows}
        if ids and ids <= self.selected:
            self.selected -= ids
        else:
            self.selected |= ids

    def all_selected(self, rows: List[Dict[str, Any]]) -> bool:
        ids = {r["id"] for r in rows}
        return bool(ids) and ids <= self.selected

    def selected_ids(self) -> List[str]:
        return sorted(self.selected)

    def show_import_selected(self) -> bool:
        return bool(self.selected)

    def total_pages(self, pagination: Dict[str, int]) -> int:
        total, limit = pagination.get("total", 0), pagination.get("limit", self.limit) or self.limit
        return max(1, -(-total // limit))

    def next_page(self, pagination: Dict[str, int]) -> int:
        self.page = min(self.page + 1, self.total_pages(pagination))
        return self.page

    def prev_page(self) -> int:
        self.page = max(1, self.page - 1)
        return self.page

    @staticmethod
    def summary(session: Optional[Dict[str, Any]], row_counts: Optional[Dict[str, int]] = None) -> Dict[str, int]:
        s = session or {}
        out = {
            "total": s.get("totalRows", 0),
            "processed": s.get("processedRows", 0),
            "errors": s.get("errorRows", 0),
        }
        for status in STATUS_FILTERS[1:]:
            out[status] = (row_counts or {}).get(status, 0)
        return out

    @staticmethod
    def display_record(row: Dict[str, Any]) -> Dict[str, Any]:
        mapped = row.get("mappedData") or row.get("rawData") or {}
        conf = row.get("matchConfidence")
        return {
            "Row": row.get("rowNumber"),
            "Status": row.get("status"),
            "Part Number": mapped.get("partNumber", ""),
            "Title": mapped.get("title", "") or mapped.get("description", ""),
            "Price": mapped.get("price", ""),
            "Qty": mapped.get("quantity", ""),
            "Confidence": f"{round(conf * 100)}%" if conf is not None else "",
            "Issues": "; ".join(row.get("errors") or []),
        }
