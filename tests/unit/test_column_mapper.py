"""
Unit tests for column mapping suggestions.

Run: pytest tests/unit/test_column_mapper.py -v
"""

from data_processing import column_mapper
from data_processing.column_mapper import map_columns, fuzzy_score, levenshtein


def _by_source(result):
    return {m.source_column: m for m in result.mappings}


class TestMapColumnsDeterministicPhases:
    """Exact, alias and fuzzy phases with the LLM switched off."""

    def test_exact_header_match_is_full_confidence(self):
        result = map_columns(["partNumber", "Description", "Notes"], [], use_ai=False)
        m = _by_source(result)

        assert m["partNumber"].target_field == "partNumber"
        assert m["partNumber"].confidence == 1.0
        assert m["Description"].target_field == "description"
        assert m["Notes"].target_field == "notes"

    def test_alias_match(self):
        result = map_columns(["P/N", "Qty", "Unit Price", "Mfr", "S/N"], [], use_ai=False)
        m = _by_source(result)

        assert m["P/N"].target_field == "partNumber"
        assert m["Qty"].target_field == "quantity"
        assert m["Unit Price"].target_field == "price"
        assert m["Mfr"].target_field == "manufacturer"
        assert m["S/N"].target_field == "serialNumber"
        assert all(x.confidence == 0.95 for x in result.mappings)

    def test_fuzzy_match_confidence_range(self):
        result = map_columns(["Part Numbr"], [], use_ai=False)
        m = _by_source(result)

        assert m["Part Numbr"].target_field == "partNumber"
        assert 0.5 <= m["Part Numbr"].confidence <= 0.7

    def test_suggested_confidence_recorded(self):
        result = map_columns(["P/N"], [], use_ai=False)

        assert result.mappings[0].suggested_confidence == result.mappings[0].confidence
        assert result.mappings[0].user_overridden is False

    def test_unrelated_header_left_unmapped(self):
        result = map_columns(["Part Number", "Zqxw"], [], use_ai=False)

        assert "Zqxw" in result.unmapped_source
        assert "partNumber" not in result.unmapped_target

    def test_each_target_claimed_once(self):
        result = map_columns(["P/N", "Part Number", "PN", "Item Number"], [], use_ai=False)
        targets = [m.target_field for m in result.mappings]

        assert len(targets) == len(set(targets))
        assert _by_source(result)["P/N"].target_field == "partNumber"

    def test_deterministic_without_ai(self):
        headers = ["Part #", "Desc", "Qty Available", "Price USD", "Warehouse", "Cond"]

        first = map_columns(headers, [], use_ai=False).to_wire()
        second = map_columns(headers, [], use_ai=False).to_wire()

        assert first == second
        assert first["aiUsed"] is False

    def test_wire_shape_is_camel_case(self):
        wire = map_columns(["Part Number"], [], use_ai=False).to_wire()

        assert set(wire) == {"mappings", "unmappedSource", "unmappedTarget", "aiUsed"}
        assert wire["mappings"][0]["sourceColumn"] == "Part Number"
        assert wire["mappings"][0]["targetField"] == "partNumber"


class TestMapColumnsAIPhase:
    """LLM suggestions for columns the deterministic phases could not place."""

    def test_ai_suggestion_used_for_leftovers(self, monkeypatch):
        calls = []

        def fake_suggest(headers, sample_rows, targets):
            calls.append((headers, targets))
            return [{"source": "Widget Code", "target": "partNumber", "confidence": 0.83}]

        monkeypatch.setattr(column_mapper, "suggest_column_mappings", fake_suggest)
        result = map_columns(["Widget Code", "Description"], [{"Widget Code": "A1"}], use_ai=True)
        m = _by_source(result)

        assert result.ai_used is True
        assert m["Widget Code"].target_field == "partNumber"
        assert m["Widget Code"].confidence == 0.83
        assert calls[0][0] == ["Widget Code"]
        assert "description" not in calls[0][1]

    def test_ai_cannot_steal_claimed_target(self, monkeypatch):
        monkeypatch.setattr(
            column_mapper, "suggest_column_mappings",
            lambda h, s, t: [{"source": "Thing", "target": "description", "confidence": 0.9}],
        )
        result = map_columns(["Description", "Thing"], [], use_ai=True)

        assert _by_source(result)["Description"].target_field == "description"
        assert "Thing" not in _by_source(result) or _by_source(result)["Thing"].target_field != "description"

    def test_ai_skipped_when_not_configured(self, monkeypatch):
        def boom(*args):
            raise AssertionError("LLM must not be called")

        monkeypatch.setattr(column_mapper, "suggest_column_mappings", boom)
        result = map_columns(["Widget Code"], [])

        assert result.ai_used is False


class TestFuzzyHelpers:
    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_fuzzy_score_bounds(self):
        assert fuzzy_score("abc", "abc") == 1.0
        assert fuzzy_score("", "abc") == 0.0
        assert 0.0 < fuzzy_score("partnumbr", "partnumber") < 1.0
