"""
Unit tests for part matching.

Run: pytest tests/unit/test_smart_matcher.py -v
"""

import pytest

from common.models import MappedFields, RowStatus
from data_processing.smart_matcher import SmartMatcher, PartMatch, status_for


@pytest.fixture
def matcher(catalog_parts):
    return SmartMatcher(catalog_parts)


def _match(matcher, part_number, **extra):
    return matcher.match_part(MappedFields(part_number=part_number, **extra))


class TestMatchPart:
    def test_exact_primary(self, matcher):
        m = _match(matcher, "ABC-123")
        assert (m.part_id, m.confidence, m.match_type) == ("part-1", 1.0, "exact")

    def test_exact_is_case_insensitive(self, matcher):
        assert _match(matcher, "abc-123").confidence == 1.0

    def test_exact_alternate(self, matcher):
        m = _match(matcher, "ABC123-ALT")
        assert (m.part_id, m.confidence) == ("part-1", 0.95)

    def test_normalized_primary(self, matcher):
        m = _match(matcher, "ABC 123")
        assert (m.part_id, m.confidence, m.match_type) == ("part-1", 0.9, "normalized")

    def test_normalized_strips_leading_zeros(self, matcher):
        m = _match(matcher, "789XYZ")
        assert (m.part_id, m.confidence) == ("part-4", 0.9)

    def test_normalized_alternate(self, matcher):
        m = _match(matcher, "ABC123ALT")
        assert (m.part_id, m.confidence) == ("part-1", 0.85)

    def test_fuzzy_substring(self, matcher):
        m = _match(matcher, "ABC12")
        assert m.part_id == "part-1"
        assert m.match_type == "fuzzy"
        assert 0.5 <= m.confidence <= 0.7

    def test_fuzzy_manufacturer_boost(self, matcher):
        plain = _match(matcher, "PT6A")
        boosted = _match(matcher, "PT6A", manufacturer="Pratt")
        assert boosted.part_id == "part-3"
        assert boosted.confidence > plain.confidence

    def test_no_match(self, matcher):
        assert _match(matcher, "QQQQ-9999") is None

    def test_short_input_never_fuzzy(self, matcher):
        assert _match(matcher, "AB") is None

    def test_blank_part_number(self, matcher):
        assert _match(matcher, "  ") is None
        assert matcher.match_part(MappedFields()) is None


class TestStatusFor:
    @pytest.mark.parametrize("confidence, expected", [
        (1.0, RowStatus.MATCHED),
        (0.8, RowStatus.MATCHED),
        (0.79, RowStatus.PARTIAL),
        (0.5, RowStatus.PARTIAL),
        (0.3, RowStatus.UNMATCHED),
    ])
    def test_thresholds(self, confidence, expected):
        assert status_for(PartMatch("p", "P", confidence, "fuzzy")) == expected

    def test_none_is_unmatched(self):
        assert status_for(None) == RowStatus.UNMATCHED


class TestEnrich:
    def test_fills_blank_fields_only(self, matcher):
        fields = MappedFields(part_number="ABC-123", title="My Pump")
        matcher.enrich(fields, matcher.get_part("part-1"))

        assert fields.title == "My Pump"
        assert fields.description == "Main gear hydraulic pump"
        assert fields.manufacturer == "Parker"
        assert fields.category == "Parts"
