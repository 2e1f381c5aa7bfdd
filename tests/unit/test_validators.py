"""
Unit tests for mapping and row value validation.

Run: pytest tests/unit/test_validators.py -v
"""

import pytest

from common.errors import ValidationError
from common.models import ColumnMapping, MappedFields
from data_processing.validators import (
    validate_mappings, normalize_price, normalize_quantity, normalize_and_validate,
)


def _m(source, target, confidence=1.0):
    return ColumnMapping(source_column=source, target_field=target, confidence=confidence)


class TestValidateMappings:
    def test_drops_empty_targets(self):
        kept = validate_mappings([_m("PN", "partNumber"), _m("Junk", "", 0.0)])
        assert [m.source_column for m in kept] == ["PN"]

    def test_requires_part_number(self):
        with pytest.raises(ValidationError) as exc:
            validate_mappings([_m("Desc", "description")])
        assert exc.value.code == "PART_NUMBER_NOT_MAPPED"
        assert exc.value.status_code == 422

    def test_duplicate_target(self):
        with pytest.raises(ValidationError) as exc:
            validate_mappings([_m("PN", "partNumber"), _m("P/N", "partNumber")])
        assert exc.value.code == "DUPLICATE_TARGET_FIELD"

    def test_duplicate_source(self):
        with pytest.raises(ValidationError) as exc:
            validate_mappings([_m("PN", "partNumber"), _m("PN", "title")])
        assert exc.value.code == "DUPLICATE_SOURCE_COLUMN"

    def test_unknown_target(self):
        with pytest.raises(ValidationError) as exc:
            validate_mappings([_m("PN", "partNumber"), _m("X", "colour")])
        assert exc.value.code == "UNKNOWN_TARGET_FIELD"

    def test_unknown_source_column(self):
        with pytest.raises(ValidationError) as exc:
            validate_mappings([_m("PN", "partNumber")], headers=["Part Number"])
        assert exc.value.code == "UNKNOWN_SOURCE_COLUMN"


class TestNormalizePrice:
    @pytest.mark.parametrize("raw, expected", [
        ("$1,250.00", "1250.00"),
        ("USD 99", "99"),
        ("€ 10.5", "10.5"),
        ("0", "0"),
    ])
    def test_cleans_currency(self, raw, expected):
        assert normalize_price(raw) == (expected, None)

    def test_blank_is_not_an_error(self):
        assert normalize_price("") == (None, None)

    def test_non_numeric(self):
        value, err = normalize_price("call us")
        assert value is None and "Invalid price" in err

    def test_negative(self):
        value, err = normalize_price("-5")
        assert value is None and "negative" in err

    @pytest.mark.parametrize("raw", ["inf", "-inf", "nan", "1e400"])
    def test_non_finite(self, raw):
        value, err = normalize_price(raw)
        assert value is None and "Invalid price" in err


class TestNormalizeQuantity:
    @pytest.mark.parametrize("raw, expected", [("3", "3"), ("2.0", "2"), ("1,000", "1000")])
    def test_whole_numbers(self, raw, expected):
        assert normalize_quantity(raw) == (expected, None)

    @pytest.mark.parametrize("raw", ["1.5", "0", "-2", "lots", "inf", "nan", "1e400"])
    def test_rejects(self, raw):
        value, err = normalize_quantity(raw)
        assert value is None and err


class TestNormalizeAndValidate:
    def test_clean_row(self):
        fields = MappedFields(part_number=" ABC-123 ", price="$10", quantity="2")
        assert normalize_and_validate(fields) == []
        assert fields.part_number == "ABC-123"
        assert fields.price == "10"

    def test_collects_every_error(self):
        fields = MappedFields(part_number="", price="abc", quantity="0")
        errors = normalize_and_validate(fields)

        assert "Missing required field: partNumber" in errors
        assert len(errors) == 3
