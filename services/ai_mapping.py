import json
from typing import Dict, Any, List

from services.llm_client import call_llm_json, image_part

_FIELD_DOCS = """- partNumber: Part number / P/N
- title: Short listing title / item name
- description: Item description
- category: Category (Aircraft, Engines, Parts, etc.)
- condition: Item condition (New, Overhauled, Serviceable, As Removed, etc.)
- price: Unit price in USD
- quantity: Quantity available
- location: Physical location / warehouse
- manufacturer: Manufacturer / OEM name
- model: Aircraft, engine or part model
- serialNumber: Serial number (S/N, ESN, MSN)
- notes: Additional notes or remarks"""

_MAP_SYSTEM = """You are a data mapping specialist for an aviation parts inventory system.
Map each source column of an uploaded spreadsheet to the most appropriate target field.

Target fields:
%s

Reply with JSON only:
{"mappings": [{"source": "<source column>", "target": "<target field>", "confidence": <0..1>}]}

Rules:
- Only use the target fields listed above, each at most once.
- Only use source columns from the given list.
- Leave out columns that fit no target field.
- confidence reflects how sure you are (1.0 = certain)."""

_EXTRACT_SYSTEM = """You are a data extraction specialist for an aviation parts inventory system.
Extract structured tabular data: identify the column headers and the data rows.
Trim whitespace and normalise formatting. Prioritise aviation inventory fields
(parts, aircraft, engines) when present. At most %d rows.

Reply with JSON only:
{"headers": ["col1", "col2"], "rows": [{"col1": "val1", "col2": "val2"}]}"""

MAX_AI_TEXT = 15_000


def suggest_column_mappings(
    headers: List[str],
    sample_rows: List[Dict[str, str]],
    target_fields: List[str],
) -> List[Dict[str, Any]]:
    """
    Ask the model for {source, target, confidence} suggestions.
    Suggestions naming unknown columns/fields are dropped; [] when the model is unavailable.
    """
    sample = [{h: str(r.get(h, "")) for h in headers} for r in sample_rows[:3]]
    messages = [
        {"role": "system", "content": _MAP_SYSTEM % _FIELD_DOCS},
        {
            "role": "user",
            "content": "Source columns: %s\n\nSample data (up to 3 rows):\n%s\n\nAllowed targets: %s"
            % (json.dumps(headers, ensure_ascii=False), json.dumps(sample, indent=2, ensure_ascii=False),
               json.dumps(target_fields)),
        },
    ]
    result = call_llm_json(messages)
    out: List[Dict[str, Any]] = []
    for m in result.get("mappings", []) or []:
        if not isinstance(m, dict):
            continue
        source, target = m.get("source"), m.get("target")
        if source not in headers or target not in target_fields:
            continue
        try:
            confidence = float(m.get("confidence", 0.5))
        except (TypeError, ValueError):
            confidence = 0.5
        out.append({"source": source, "target": target, "confidence": min(1.0, max(0.0, confidence))})
    return out


def extract_table_from_text(text: str, max_rows: int) -> Dict[str, Any]:
    messages = [
        {"role": "system", "content": _EXTRACT_SYSTEM % max_rows},
        {"role": "user", "content": "TEXT:\n" + text[:MAX_AI_TEXT]},
    ]
    return call_llm_json(messages, timeout=60)


def extract_table_from_image(data: bytes, mime_type: str, max_rows: int) -> Dict[str, Any]:
    messages = [
        {"role": "system", "content": _EXTRACT_SYSTEM % max_rows},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "Extract the inventory table shown in this photo."},
                image_part(data, mime_type),
            ],
        },
    ]
    return call_llm_json(messages, timeout=90)
