"""
Unit tests for the frontend API client error classification.

Run: pytest tests/unit/test_api_client.py -v
"""

import httpx
import pytest

from streamlit_app.src.api import ApiClient, ApiError, kind_for_status


def _api(handler):
    return ApiClient(base_url="http://api.test", user_id="u1",
                     http=httpx.Client(transport=httpx.MockTransport(handler)))


class TestStatusKinds:
    @pytest.mark.parametrize("status,kind", [
        (400, "validation"), (422, "validation"), (401, "unauthorized"), (403, "forbidden"),
        (404, "not_found"), (429, "rate_limit"), (500, "server"), (503, "server"), (418, "unknown"),
    ])
    def test_kind_for_status(self, status, kind):
        assert kind_for_status(status) == kind


class TestApiClient:
    def test_unwraps_envelope_and_sends_user(self):
        seen = {}

        def handler(request):
            seen["user"] = request.headers.get("X-User-Id")
            return httpx.Response(200, json={"ok": True, "code": "SESSION", "data": {"session": {"id": "s1"}}})

        assert _api(handler).session("s1") == {"session": {"id": "s1"}}
        assert seen["user"] == "u1"

    def test_validation_message_is_verbatim(self):
        def handler(request):
            return httpx.Response(400, json={"ok": False, "code": "FILE_TOO_LARGE", "error": "File exceeds 25 MB"})

        with pytest.raises(ApiError) as exc:
            _api(handler).session("s1")
        assert exc.value.kind == "validation"
        assert exc.value.message == "File exceeds 25 MB"
        assert exc.value.code == "FILE_TOO_LARGE"

    def test_server_message_is_not_shown(self):
        def handler(request):
            return httpx.Response(500, json={"ok": False, "error": "Traceback ..."})

        with pytest.raises(ApiError) as exc:
            _api(handler).session("s1")
        assert exc.value.kind == "server"
        assert "Traceback" not in exc.value.message

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ApiError) as exc:
            _api(handler).session("s1")
        assert exc.value.kind == "timeout"

    def test_offline(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ApiError) as exc:
            _api(handler).session("s1")
        assert exc.value.kind == "offline"

    def test_search_parts_returns_list(self):
        def handler(request):
            assert request.url.params["q"] == "ABC"
            return httpx.Response(200, json={"ok": True, "code": "PARTS", "data": {"parts": [{"id": "part-1"}]}})

        assert _api(handler).search_parts("ABC") == [{"id": "part-1"}]
