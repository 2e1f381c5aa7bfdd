# streamlit_app/src/mapping.py
from typing import Any, Dict, List, Optional

TARGET_FIELDS: List[Dict[str, Any]] = [
    {"value": "partNumber", "label": "Part Number", "required": True},
    {"value": "title", "label": "Title"},
    {"value": "description", "label": "Description"},
    {"value": "category", "label": "Category"},
    {"value": "condition", "label": "Condition"},
    {"value": "price", "label": "Price"},
    {"value": "quantity", "label": "Quantity"},
    {"value": "location", "label": "Location"},
    {"value": "manufacturer", "label": "Manufacturer"},
    {"value": "model", "label": "Model"},
    {"value": "serialNumber", "label": "Serial Number"},
    {"value": "notes", "label": "Notes"},
]
FIELD_LABELS = {f["value"]: f["label"] for f in TARGET_FIELDS}
REQUIRED_FIELDS = [f["value"] for f in TARGET_FIELDS if f.get("required")]


def confidence_level(confidence: Optional[float]) -> str:
    c = confidence or 0.0
    if c >= 0.8:
        return "High"
    if c >= 0.5:
        return "Medium"
    return "Low"


class ColumnMapperState:
    """
    One entry per source column. A target field is held by at most one column;
    a column with an empty target is unmapped.
    """

    def __init__(self, headers: List[str], mappings: List[Dict[str, Any]],
                 sample_rows: Optional[List[Dict[str, str]]] = None):
        self.headers = list(headers)
        self.sample_rows = sample_rows or []
        by_source = {m.get("sourceColumn"): m for m in mappings if m.get("sourceColumn")}
        self.entries: List[Dict[str, Any]] = []
        claimed = set()
        for h in self.headers:
            m = by_source.get(h) or {}
            target = m.get("targetField") or ""
            if target in claimed:
                target = ""
            if target:
                claimed.add(target)
            conf = float(m.get("confidence") or 0.0) if target else 0.0
            self.entries.append({
                "sourceColumn": h,
                "targetField": target,
                "confidence": conf,
                "suggestedConfidence": m.get("suggestedConfidence", conf if target else None),
                "userOverridden": bool(m.get("userOverridden", False)),
            })

    def _entry(self, source: str) -> Dict[str, Any]:
        for e in self.entries:
            if e["sourceColumn"] == source:
                return e
        raise KeyError(source)

    def options_for(self, source: str) -> List[str]:
        """Targets this column may pick: free ones plus its own current target."""
        current = self._entry(source)["targetField"]
        taken = {e["targetField"] for e in self.entries if e["targetField"] and e["sourceColumn"] != source}
        return [f["value"] for f in TARGET_FIELDS if f["value"] not in taken or f["value"] == current]

    def select(self, source: str, target: str) -> None:
        if not target:
            self.remove(source)
            return
        if target not in self.options_for(source):
            raise ValueError(f"{FIELD_LABELS.get(target, target)} is already mapped to another column")
        e = self._entry(source)
        if e["targetField"] == target:
            return
        e["targetField"] = target
        e["confidence"] = 1.0
        e["userOverridden"] = True

    def remove(self, source: str) -> None:
        e = self._entry(source)
        e["targetField"] = ""
        e["confidence"] = 0.0
        e["userOverridden"] = True

    def badge(self, source: str) -> Optional[str]:
        e = self._entry(source)
        return confidence_level(e["confidence"]) if e["targetField"] else None

    def mapped(self) -> List[Dict[str, Any]]:
        return [e for e in self.entries if e["targetField"]]

    def unmapped(self) -> List[str]:
        return [e["sourceColumn"] for e in self.entries if not e["targetField"]]

    def unmapped_targets(self) -> List[str]:
        taken = {e["targetField"] for e in self.entries}
        return [f["value"] for f in TARGET_FIELDS if f["value"] not in taken]

    def can_confirm(self) -> bool:
        return any(e["targetField"] == "partNumber" and e["sourceColumn"] for e in self.entries)

    def sample_values(self, source: str, n: int = 3) -> List[str]:
        return [str(r.get(source, "")) for r in self.sample_rows[:n] if str(r.get(source, "")).strip()]

    def to_mappings(self) -> List[Dict[str, Any]]:
        return [dict(e) for e in self.mapped()]
