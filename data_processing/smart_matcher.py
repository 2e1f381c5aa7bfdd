"""
Row -> part matching against the parts catalog.

Confidence ladder: exact 1.0, exact alternate 0.95, normalised 0.9,
normalised alternate 0.85, substring fuzzy 0.5..0.7.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

import structlog

from common.catalog_store import normalize_part_number
from common.models import MappedFields, Part, RowStatus

logger = structlog.get_logger(__name__)

MATCHED_THRESHOLD = 0.8
PARTIAL_THRESHOLD = 0.5


@dataclass
class PartMatch:
    part_id: str
    part_number: str
    confidence: float
    match_type: str  # exact | normalized | fuzzy


def status_for(match: Optional[PartMatch]) -> RowStatus:
    if match is None:
        return RowStatus.UNMATCHED
    if match.confidence >= MATCHED_THRESHOLD:
        return RowStatus.MATCHED
    if match.confidence >= PARTIAL_THRESHOLD:
        return RowStatus.PARTIAL
    return RowStatus.UNMATCHED


def _similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    if shorter in longer:
        return len(shorter) / len(longer)
    return 0.0


class SmartMatcher:
    """Lookup maps are built once per instance; build one per matching run."""

    def __init__(self, parts: List[Part]):
        self.parts = parts
        self._by_id: Dict[str, Part] = {p.id: p for p in parts}
        self._exact: Dict[str, Part] = {}
        self._normalized: Dict[str, Part] = {}
        self._alt_exact: Dict[str, Part] = {}
        self._alt_normalized: Dict[str, Part] = {}
        for p in parts:
            self._exact.setdefault(p.part_number.upper(), p)
            self._normalized.setdefault(normalize_part_number(p.part_number), p)
            for alt in p.alternates:
                self._alt_exact.setdefault(alt.upper(), p)
                self._alt_normalized.setdefault(normalize_part_number(alt), p)
        logger.info("matcher_ready", parts=len(parts))

    def get_part(self, part_id: str) -> Optional[Part]:
        return self._by_id.get(part_id)

    def match_part(self, fields: MappedFields) -> Optional[PartMatch]:
        raw = (fields.part_number or "").strip()
        if not raw:
            return None

        key = raw.upper()
        if key in self._exact:
            return self._hit(self._exact[key], 1.0, "exact")
        if key in self._alt_exact:
            return self._hit(self._alt_exact[key], 0.95, "exact")

        norm = normalize_part_number(raw)
        if norm:
            if norm in self._normalized:
                return self._hit(self._normalized[norm], 0.9, "normalized")
            if norm in self._alt_normalized:
                return self._hit(self._alt_normalized[norm], 0.85, "normalized")

        return self._fuzzy(norm, (fields.manufacturer or "").strip().upper())

    def enrich(self, fields: MappedFields, part: Part) -> None:
        """Fill blank descriptive fields from the catalog part."""
        for name in ("title", "description", "category", "manufacturer", "model"):
            if not getattr(fields, name) and getattr(part, name):
                setattr(fields, name, getattr(part, name))

    def _fuzzy(self, norm: str, manufacturer: str) -> Optional[PartMatch]:
        if len(norm) < 3:
            return None
        best, best_score = None, 0.0
        for part in self.parts:
            score = _similarity(norm, normalize_part_number(part.part_number))
            if score <= 0:
                continue
            if manufacturer and manufacturer in (part.manufacturer or "").upper():
                score = min(score + 0.15, 0.75)
            if score > best_score:
                best, best_score = part, score
        if best is None or best_score < 0.3:
            return None
        return self._hit(best, round(min(max(best_score, 0.5), 0.7), 2), "fuzzy")

    @staticmethod
    def _hit(part: Part, confidence: float, match_type: str) -> PartMatch:
        return PartMatch(part_id=part.id, part_number=part.part_number,
                         confidence=confidence, match_type=match_type)
