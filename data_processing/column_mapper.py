"""
Column mapping suggestions.

Phases, each target field claimed at most once:
  1. exact header == field name        -> 1.0
  2. alias table                       -> 0.95
  3. LLM suggestion for the leftovers  -> model confidence
  4. Levenshtein fuzzy (score >= 0.6)  -> 0.5 .. 0.7
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from common.models import ColumnMapping, TARGET_FIELDS
from services import llm_client
from services.ai_mapping import suggest_column_mappings

logger = structlog.get_logger(__name__)

ALIASES: Dict[str, List[str]] = {
    "partNumber": [
        "p/n", "pn", "part no", "part no.", "part_no", "part_number", "part number",
        "part#", "part #", "partnumber", "partno", "item number", "item no", "item no.",
        "item#", "item #", "sku", "stock number", "stock no",
    ],
    "title": [
        "name", "item name", "product name", "part name", "listing title", "heading",
    ],
    "description": [
        "desc", "desc.", "item description", "item desc", "product description",
        "part description", "details",
    ],
    "category": [
        "cat", "cat.", "type", "item type", "product type", "part type",
        "classification", "class",
    ],
    "condition": [
        "cond", "cond.", "item condition", "part condition", "status",
        "condition code", "cond code",
    ],
    "price": [
        "unit price", "unit cost", "cost", "amount", "rate", "selling price",
        "list price", "sale price", "usd", "price (usd)", "price usd", "unit_price",
    ],
    "quantity": [
        "qty", "qty.", "qty available", "quantity available", "stock", "stock qty",
        "on hand", "count", "units",
    ],
    "location": [
        "loc", "loc.", "warehouse", "warehouse location", "storage",
        "storage location", "bin", "shelf", "rack", "site",
    ],
    "manufacturer": [
        "mfg", "mfg.", "mfr", "mfr.", "oem", "make", "brand", "vendor",
        "supplier", "produced by", "manufacturer name",
    ],
    "model": [
        "model no", "model number", "aircraft model", "engine model", "a/c model",
        "a/c type", "aircraft type", "engine type", "airframe",
    ],
    "serialNumber": [
        "s/n", "sn", "serial", "serial no", "serial no.", "serial #", "serial_number",
        "serial number", "esn", "msn",
    ],
    "notes": [
        "note", "remarks", "remark", "comment", "comments", "additional info",
        "additional notes", "memo",
    ],
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")


@dataclass
class MappingSuggestion:
    mappings: List[ColumnMapping]
    unmapped_source: List[str]
    unmapped_target: List[str]
    ai_used: bool = False

    def to_wire(self) -> dict:
        return {
            "mappings": [m.to_wire() for m in self.mappings],
            "unmappedSource": self.unmapped_source,
            "unmappedTarget": self.unmapped_target,
            "aiUsed": self.ai_used,
        }


@dataclass
class _Claims:
    mappings: List[ColumnMapping] = field(default_factory=list)
    sources: set = field(default_factory=set)
    targets: set = field(default_factory=set)

    def claim(self, source: str, target: str, confidence: float) -> None:
        self.mappings.append(ColumnMapping(
            source_column=source, target_field=target,
            confidence=confidence, suggested_confidence=confidence,
        ))
        self.sources.add(source)
        self.targets.add(target)


def map_columns(
    headers: List[str],
    sample_rows: List[Dict[str, str]],
    use_ai: Optional[bool] = None,
) -> MappingSuggestion:
    claims = _Claims()

    # 1. exact
    for header in headers:
        normalized = header.lower().strip()
        for target in TARGET_FIELDS:
            if target not in claims.targets and normalized == target.lower():
                claims.claim(header, target, 1.0)
                break

    # 2. alias
    for header in headers:
        if header in claims.sources:
            continue
        normalized = header.lower().strip()
        for target in TARGET_FIELDS:
            if target not in claims.targets and normalized in ALIASES[target]:
                claims.claim(header, target, 0.95)
                break

    # 3. AI
    ai_used = False
    if use_ai is None:
        use_ai = llm_client.is_configured()
    leftover_headers = [h for h in headers if h not in claims.sources]
    leftover_targets = [t for t in TARGET_FIELDS if t not in claims.targets]
    if use_ai and leftover_headers and leftover_targets:
        suggestions = suggest_column_mappings(leftover_headers, sample_rows, leftover_targets)
        ai_used = True
        for s in suggestions:
            if s["source"] in claims.sources or s["target"] in claims.targets:
                continue
            claims.claim(s["source"], s["target"], round(s["confidence"], 2))

    # 4. fuzzy
    for header in [h for h in headers if h not in claims.sources]:
        remaining = [t for t in TARGET_FIELDS if t not in claims.targets]
        if not remaining:
            break
        target, score = _best_fuzzy(header, remaining)
        if target and score >= 0.6:
            confidence = min(0.7, max(0.5, round(0.5 + (score - 0.6) * 0.5, 2)))
            claims.claim(header, target, confidence)

    result = MappingSuggestion(
        mappings=claims.mappings,
        unmapped_source=[h for h in headers if h not in claims.sources],
        unmapped_target=[t for t in TARGET_FIELDS if t not in claims.targets],
        ai_used=ai_used,
    )
    logger.info("column_mapping_done", mapped=len(result.mappings),
                unmapped_source=len(result.unmapped_source), ai_used=ai_used)
    return result


def _best_fuzzy(header: str, targets: List[str]):
    normalized = _NON_ALNUM.sub("", header.lower())
    best, best_score = None, 0.0
    for target in targets:
        candidates = [target.lower()] + [_NON_ALNUM.sub("", a) for a in ALIASES[target]]
        for candidate in candidates:
            score = fuzzy_score(normalized, candidate)
            if score > best_score:
                best, best_score = target, score
    return best, best_score


def fuzzy_score(a: str, b: str) -> float:
    """1 - levenshtein(a, b) / max(len): 1.0 identical, 0.0 nothing in common."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1 - levenshtein(a, b) / max(len(a), len(b))


def levenshtein(a: str, b: str) -> int:
    dp = list(range(len(b) + 1))
    for i in range(1, len(a) + 1):
        prev, dp[0] = dp[0], i
        for j in range(1, len(b) + 1):
            cur = dp[j]
            if a[i - 1] == b[j - 1]:
                dp[j] = prev
            else:
                dp[j] = 1 + min(prev, dp[j], dp[j - 1])
            prev = cur
    return dp[len(b)]
