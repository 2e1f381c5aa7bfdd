"""
Unit tests for the client-side UploadStore.

Run: pytest tests/unit/test_upload_store.py -v
"""

from unittest.mock import MagicMock

import pytest

from streamlit_app.src.api import ApiError
from streamlit_app.src.upload_store import (
    STEP_MAPPING, STEP_RESULTS, STEP_REVIEW, STEP_UPLOAD, UploadStore,
)

SESSION = {"id": "s1", "status": "uploaded", "totalRows": 0}


@pytest.fixture
def api():
    api = MagicMock()
    api.create_session.return_value = {"session": SESSION}
    api.parse.return_value = {"session": {**SESSION, "status": "parsed"}, "headers": ["PN"],
                              "sampleRows": [{"PN": "ABC-123"}]}
    api.suggest_mappings.return_value = {
        "session": {**SESSION, "status": "mapped"},
        "mappings": [{"sourceColumn": "PN", "targetField": "partNumber", "confidence": 0.95}],
        "unmappedSource": [], "aiUsed": False,
    }
    api.save_mapping.return_value = {"session": {**SESSION, "status": "mapped"}}
    api.match.return_value = {"session": {**SESSION, "status": "matched"}}
    api.rows.return_value = {"rows": [{"id": "r1", "status": "error"}, {"id": "r2", "status": "matched"}],
                             "pagination": {"page": 1, "limit": 25, "total": 2}}
    api.import_rows.return_value = {"session": {**SESSION, "status": "imported"},
                                    "imported": 1, "skipped": 0, "errors": []}
    return api


@pytest.fixture
def notify():
    return MagicMock()


@pytest.fixture
def store(api, notify):
    return UploadStore(api, notify=notify)


class TestRemoteActions:
    """Each remote call returns a bool and never raises."""

    def test_upload_and_parse_reaches_mapping(self, store):
        assert store.upload_and_parse("inv.csv", b"PN\nABC-123\n") is True
        assert store.step == STEP_MAPPING
        assert store.headers == ["PN"]
        assert store.mappings[0]["targetField"] == "partNumber"
        assert store.session["status"] == "mapped"
        assert store.is_loading is False

    def test_failure_sets_error_and_notifies(self, store, api, notify):
        api.create_session.side_effect = ApiError("validation", "File too large", status=400)

        assert store.create_session("big.csv", b"x") is False
        assert store.error == "File too large"
        assert store.session is None
        assert store.is_loading is False
        notify.assert_called_with("error", "File too large")

    def test_failed_parse_stays_on_upload(self, store, api):
        api.parse.side_effect = ApiError("validation", "Could not parse file")

        assert store.upload_and_parse("inv.csv", b"x") is False
        assert store.step == STEP_UPLOAD
        assert store.session_id == "s1"

    def test_ai_mapping_overwrites(self, store, api):
        store.create_session("inv.csv", b"x")
        store.mappings = [{"sourceColumn": "Old", "targetField": "title"}]

        store.get_ai_mappings()

        assert [m["sourceColumn"] for m in store.mappings] == ["PN"]

    def test_save_mapping_drops_unmapped_entries(self, store, api):
        store.create_session("inv.csv", b"x")
        store.save_mapping([
            {"sourceColumn": "PN", "targetField": "partNumber"},
            {"sourceColumn": "Junk", "targetField": ""},
        ])

        sent = api.save_mapping.call_args[0][1]
        assert sent == [{"sourceColumn": "PN", "targetField": "partNumber"}]
        assert store.mappings == sent

    def test_without_session_does_nothing(self, store, api):
        assert store.run_matching() is False
        api.match.assert_not_called()


class TestConfirmMapping:
    def test_success_moves_to_review_with_rows(self, store, api):
        store.upload_and_parse("inv.csv", b"x")

        assert store.confirm_mapping(store.mappings) is True
        assert store.step == STEP_REVIEW
        assert len(store.rows) == 2

    def test_match_failure_stays_on_mapping(self, store, api, notify):
        store.upload_and_parse("inv.csv", b"x")
        api.match.side_effect = ApiError("server", status=500)

        assert store.confirm_mapping(store.mappings) is False
        assert store.step == STEP_MAPPING
        assert store.error == "The server ran into a problem. Please try again later."
        api.rows.assert_not_called()

    def test_save_failure_skips_matching(self, store, api):
        store.upload_and_parse("inv.csv", b"x")
        api.save_mapping.side_effect = ApiError("validation", "Mapping must include partNumber")

        assert store.confirm_mapping([]) is False
        api.match.assert_not_called()


class TestRowsAndImport:
    def test_update_row_replaces_in_place(self, store, api):
        store.upload_and_parse("inv.csv", b"x")
        store.confirm_mapping(store.mappings)
        api.update_row.return_value = {"row": {"id": "r1", "status": "matched"}}

        assert store.update_row("r1", {"partNumber": "ABC-123"}) is True
        assert store.rows == [{"id": "r1", "status": "matched"}, {"id": "r2", "status": "matched"}]

    def test_failed_update_keeps_rows(self, store, api):
        store.upload_and_parse("inv.csv", b"x")
        store.confirm_mapping(store.mappings)
        api.update_row.side_effect = ApiError("not_found", status=404)

        assert store.update_row("r1", {}) is False
        assert store.rows[0] == {"id": "r1", "status": "error"}

    def test_import_selected_rows(self, store, api):
        store.upload_and_parse("inv.csv", b"x")

        assert store.import_and_finish(row_ids=["r2"]) is True
        api.import_rows.assert_called_with("s1", row_ids=["r2"])
        assert store.step == STEP_RESULTS
        assert store.import_result == {"imported": 1, "skipped": 0, "errors": []}


class TestLocalTransitions:
    def test_back_only_from_mapping_and_review(self, store):
        store.set_step(STEP_REVIEW)
        store.back()
        assert store.step == STEP_MAPPING
        store.set_step(STEP_RESULTS)
        store.back()
        assert store.step == STEP_RESULTS
        store.set_step(STEP_UPLOAD)
        store.back()
        assert store.step == STEP_UPLOAD

    def test_reset_clears_everything(self, store):
        store.upload_and_parse("inv.csv", b"x")
        store.reset()

        assert store.session is None
        assert store.step == STEP_UPLOAD
        assert store.mappings == []
        assert store.generation == 1

    def test_stale_response_is_dropped(self, store, api):
        store.create_session("inv.csv", b"x")

        def parse_then_reset(*args):
            store.reset()
            return {"session": {**SESSION, "status": "parsed"}, "headers": ["PN"], "sampleRows": []}

        api.parse.side_effect = parse_then_reset

        assert store.parse_file() is False
        assert store.headers == []
        assert store.session is None


class TestRowEditRefresh:
    def test_update_row_refreshes_session_counts(self, store, api):
        store.upload_and_parse("inv.csv", b"x")
        store.confirm_mapping(store.mappings)
        api.update_row.return_value = {
            "row": {"id": "r1", "status": "matched"},
            "session": {**SESSION, "status": "matched", "processedRows": 2, "errorRows": 0},
        }

        store.update_row("r1", {"partNumber": "ABC-123"})

        assert (store.session["processedRows"], store.session["errorRows"]) == (2, 0)


class TestPublishListings:
    def _pages(self, total, page_size=100):
        ids = [f"l{i}" for i in range(total)]

        def listings(session_id=None, sync_status=None, page=1, limit=20):
            chunk = ids[(page - 1) * limit:page * limit]
            return {"listings": [{"id": i} for i in chunk],
                    "pagination": {"page": page, "limit": limit, "total": total}}

        return listings

    def test_pages_through_all_listings(self, store, api):
        store.create_session("inv.csv", b"x")
        api.listings.side_effect = self._pages(230)
        api.sync_listings.side_effect = lambda ids: {"results": [{"listingId": i, "status": "success"} for i in ids],
                                                     "summary": {"total": len(ids), "succeeded": len(ids)}}

        assert store.publish_listings() is True

        assert api.listings.call_count == 3
        sent = [call.args[0] for call in api.sync_listings.call_args_list]
        assert [len(b) for b in sent] == [50, 50, 50, 50, 30]
        assert len({i for b in sent for i in b}) == 230
        assert store.publish_result["summary"] == {"total": 230, "succeeded": 230, "failed": 0}

    def test_failure_is_reported(self, store, api, notify):
        store.create_session("inv.csv", b"x")
        api.listings.side_effect = ApiError("server", status=500)

        assert store.publish_listings() is False
        assert store.publish_result is None
        notify.assert_called_with("error", "The server ran into a problem. Please try again later.")
