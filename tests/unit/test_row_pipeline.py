"""
Unit tests for row building, manual edits, import and export.

Run: pytest tests/unit/test_row_pipeline.py -v
"""

import os
import uuid

import pytest
from openpyxl import load_workbook

from common.models import (
    ColumnMapping, RowStatus, UploadSession, UploadSessionRow, UploadStatus,
)
from data_processing.exporter import save_session_excel
from data_processing.importer import import_rows, row_to_listing
from data_processing.row_builder import apply_edit, build_row
from data_processing.smart_matcher import SmartMatcher

MAPPING = [
    ColumnMapping(source_column="PN", target_field="partNumber", confidence=0.95),
    ColumnMapping(source_column="Price", target_field="price", confidence=1.0),
    ColumnMapping(source_column="Qty", target_field="quantity", confidence=0.95),
]


@pytest.fixture
def matcher(catalog_parts):
    return SmartMatcher(catalog_parts)


def _build(matcher, n=1, **raw):
    return build_row("s1", n, {"PN": "", "Price": "", "Qty": "", **raw}, MAPPING, matcher)


class TestBuildRow:
    def test_matched_row_is_normalized_and_enriched(self, matcher):
        row = _build(matcher, PN="ABC-123", Price="$1,200", Qty="2")

        assert row.status == RowStatus.MATCHED
        assert row.match_confidence == 1.0
        assert row.matched_part_id == "part-1"
        assert row.mapped_data["price"] == "1200"
        assert row.mapped_data["title"] == "Hydraulic Pump"
        assert row.raw_data["Price"] == "$1,200"

    def test_partial_row(self, matcher):
        row = _build(matcher, PN="ABC12")
        assert row.status == RowStatus.PARTIAL
        assert row.matched_part_id == "part-1"

    def test_unmatched_row_has_no_part(self, matcher):
        row = _build(matcher, PN="NOPE-0000")
        assert row.status == RowStatus.UNMATCHED
        assert row.matched_part_id is None
        assert row.errors == []

    @pytest.mark.parametrize("qty", ["inf", "nan", "1e400"])
    def test_non_finite_quantity_is_error(self, matcher, qty):
        row = _build(matcher, PN="ABC-123", Qty=qty)
        assert row.status == RowStatus.ERROR
        assert any("positive whole number" in e for e in row.errors)

    def test_validation_failure_is_error(self, matcher):
        row = _build(matcher, PN="", Price="abc")
        assert row.status == RowStatus.ERROR
        assert "Missing required field: partNumber" in row.errors
        assert any("Invalid price" in e for e in row.errors)
        assert row.matched_part_id is None


class TestApplyEdit:
    def test_edit_rematches(self, matcher):
        row = _build(matcher, PN="")
        apply_edit(row, {"partNumber": "65-4321-01", "quantity": "1"}, matcher)

        assert row.status == RowStatus.MATCHED
        assert row.matched_part_id == "part-2"
        assert row.errors == []

    def test_edit_replaces_mapped_data(self, matcher):
        row = _build(matcher, PN="ABC-123", Price="10")
        apply_edit(row, {"partNumber": "ABC-123"}, matcher)

        assert "price" not in row.mapped_data

    def test_manual_part_pick(self, matcher):
        row = _build(matcher, PN="")
        row.match_confidence = 0.3
        apply_edit(row, {"partNumber": "", "title": "Pump"}, matcher, manual_part_id="part-1")

        assert row.status == RowStatus.MATCHED
        assert row.match_confidence == 1.0
        assert row.matched_part_id == "part-1"
        assert row.mapped_data["partNumber"] == "ABC-123"
        assert row.mapped_data["title"] == "Pump"

    def test_edit_with_nan_quantity_is_error(self, matcher):
        row = _build(matcher, PN="ABC-123")
        apply_edit(row, {"partNumber": "ABC-123", "quantity": "nan"}, matcher)

        assert row.status == RowStatus.ERROR
        assert row.matched_part_id is None

    def test_manual_pick_keeps_other_errors(self, matcher):
        row = _build(matcher, PN="X")
        apply_edit(row, {"partNumber": "X", "quantity": "0"}, matcher, manual_part_id="part-1")

        assert row.status == RowStatus.ERROR
        assert row.matched_part_id is None


class TestImport:
    def _row(self, **mapped):
        return UploadSessionRow(id=str(uuid.uuid4()), session_id="s1", row_number=1,
                                mapped_data=mapped, status=RowStatus.MATCHED, matched_part_id="part-1")

    def test_row_to_listing_defaults(self):
        listing = row_to_listing(self._row(partNumber="ABC-123"), "u1")

        assert listing.title == "ABC-123"
        assert listing.price == 0.0
        assert listing.quantity == 1
        assert listing.category == "Parts"
        assert listing.condition == "As Removed"
        assert listing.part_id == "part-1"

    def test_title_falls_back_to_description(self):
        listing = row_to_listing(self._row(partNumber="A", description="Pump", price="12.5", quantity="3"), "u1")

        assert (listing.title, listing.price, listing.quantity) == ("Pump", 12.5, 3)

    def test_bad_price_raises(self):
        with pytest.raises(ValueError):
            row_to_listing(self._row(partNumber="A", price="n/a"), "u1")

    def test_import_rows_filters_and_reports(self, session_store, catalog):
        session = session_store.create_session(UploadSession(
            id="s1", user_id="u1", filename="s1.csv", original_name="inv.csv",
            mime_type="text/csv", file_size=1, status=UploadStatus.MATCHED,
        ))
        good = self._row(partNumber="ABC-123")
        partial = self._row(partNumber="ABC12")
        partial.status = RowStatus.PARTIAL
        bad = self._row(partNumber="ABC-123", quantity="zero")
        unmatched = self._row(partNumber="???")
        unmatched.status = RowStatus.UNMATCHED
        for i, r in enumerate([good, partial, bad, unmatched], start=1):
            r.row_number = i
        session_store.replace_rows("s1", [good, partial, bad, unmatched])

        outcome = import_rows(session, session_store, catalog)

        assert outcome.imported == 2
        assert len(outcome.errors) == 1 and outcome.errors[0]["rowId"] == bad.id
        failed = session_store.get_row("s1", bad.id)
        assert failed.status == RowStatus.ERROR and failed.matched_part_id is None
        assert session_store.get_row("s1", unmatched.id).listing_id is None

        again = import_rows(session, session_store, catalog)
        assert (again.imported, again.skipped) == (0, 2)

    def test_import_only_selected_rows(self, session_store, catalog):
        session = session_store.create_session(UploadSession(
            id="s1", user_id="u1", filename="s1.csv", original_name="inv.csv",
            mime_type="text/csv", file_size=1, status=UploadStatus.MATCHED,
        ))
        a, b = self._row(partNumber="A"), self._row(partNumber="B")
        b.row_number = 2
        session_store.replace_rows("s1", [a, b])

        outcome = import_rows(session, session_store, catalog, row_ids=[b.id])

        assert outcome.imported == 1
        assert session_store.get_row("s1", a.id).listing_id is None
        assert session_store.get_row("s1", b.id).listing_id is not None


class TestExport:
    def test_writes_rows_and_summary(self):
        session = UploadSession(id="abcdef123456", user_id="u1", filename="x.csv",
                                original_name="My Stock.csv", mime_type="text/csv", file_size=1)
        rows = [
            UploadSessionRow(id="r1", session_id=session.id, row_number=1, status=RowStatus.MATCHED,
                             match_confidence=1.0, mapped_data={"partNumber": "ABC-123"}),
            UploadSessionRow(id="r2", session_id=session.id, row_number=2, status=RowStatus.ERROR,
                             errors=["Missing required field: partNumber"]),
        ]
        out = save_session_excel(session, rows)

        assert os.path.exists(out["path"])
        assert out["url"] == f"/static/{out['filename']}"
        assert out["filename"].startswith("My_Stock_abcdef12_")
        wb = load_workbook(out["path"])
        assert wb.sheetnames == ["Rows", "Summary"]
        assert wb["Rows"].max_row == 3
