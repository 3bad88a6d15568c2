"""
Tests for the remote model-listing probe.

All HTTP calls are mocked; no network access required.
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from keyswitch.probe.models import (
    ModelInfo,
    extract_models,
    model_display_name,
    models_url,
    query_models,
)


# ===================================================================
# Fixtures & helpers
# ===================================================================

def _mock_response(status_code=200, json_data=None, json_error=None):
    """Create a mock httpx.Response."""
    resp = MagicMock(spec=httpx.Response)
    resp.status_code = status_code
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = json_data
    return resp


@pytest.fixture
def mock_get():
    with patch("keyswitch.probe.models.httpx.get") as mocked:
        yield mocked


# ===================================================================
# Helpers
# ===================================================================

class TestHelpers:

    @pytest.mark.parametrize(
        "base, expected",
        [
            ("https://api.example.com", "https://api.example.com/v1/models"),
            ("https://api.example.com/", "https://api.example.com/v1/models"),
            ("https://proxy.example.com/anthropic", "https://proxy.example.com/anthropic/v1/models"),
        ],
    )
    def test_models_url(self, base, expected):
        assert models_url(base) == expected

    def test_known_display_name(self):
        assert model_display_name("claude-3-opus-20240229") == "Claude 3 Opus"

    def test_fallback_display_name(self):
        assert model_display_name("gpt-4o-mini") == "Gpt 4o Mini"

    def test_missing_display_name(self):
        assert model_display_name(None) == "Unknown Model"

    def test_extract_from_data(self):
        payload = {"object": "list", "data": [{"id": "a"}, {"id": "b"}]}
        assert [m["id"] for m in extract_models(payload)] == ["a", "b"]

    def test_extract_from_models(self):
        assert [m["id"] for m in extract_models({"models": [{"id": "a"}]})] == ["a"]

    def test_extract_from_bare_list(self):
        assert [m["id"] for m in extract_models([{"id": "a"}])] == ["a"]

    def test_extract_skips_entries_without_id(self):
        payload = {"data": [{"id": "a"}, {"name": "no id"}, "junk", {"id": ""}]}
        assert [m["id"] for m in extract_models(payload)] == ["a"]

    @pytest.mark.parametrize("payload", [{}, {"data": "nope"}, "text", None, 42])
    def test_extract_unknown_shapes(self, payload):
        assert extract_models(payload) == []


# ===================================================================
# query_models
# ===================================================================

class TestQueryModels:

    @pytest.mark.parametrize("key, base", [("", "https://x"), ("k", ""), (None, None)])
    def test_missing_inputs_no_request(self, mock_get, key, base):
        result = query_models(key, base)
        assert result.success is False
        assert result.message == "Missing API key or API address"
        mock_get.assert_not_called()

    def test_request_shape(self, mock_get):
        mock_get.return_value = _mock_response(json_data={"data": []})
        query_models("sk-1", "https://api.example.com", timeout=5)

        args, kwargs = mock_get.call_args
        assert args[0] == "https://api.example.com/v1/models"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-1"
        assert kwargs["timeout"] == 5

    def test_success(self, mock_get):
        mock_get.return_value = _mock_response(
            json_data={"data": [{"id": "claude-3-haiku-20240307"}, {"id": "custom-model"}]}
        )
        result = query_models("sk-1", "https://api.example.com")

        assert result.success is True
        assert result.message == "Connected, found 2 available models"
        assert result.models == [
            ModelInfo("claude-3-haiku-20240307", "claude-3-haiku-20240307", "Claude 3 Haiku"),
            ModelInfo("custom-model", "custom-model", "Custom Model"),
        ]

    def test_connected_but_empty(self, mock_get):
        mock_get.return_value = _mock_response(json_data={"unexpected": True})
        result = query_models("sk-1", "https://api.example.com")
        assert result.success is True
        assert result.models == []
        assert "no model data" in result.message

    @pytest.mark.parametrize(
        "status_code, fragment",
        [
            (401, "invalid or unauthorized"),
            (403, "permission"),
            (404, "does not support model listing"),
            (500, "HTTP 500"),
        ],
    )
    def test_http_errors(self, mock_get, status_code, fragment):
        mock_get.return_value = _mock_response(status_code=status_code)
        result = query_models("sk-1", "https://api.example.com")
        assert result.success is False
        assert fragment in result.message

    def test_non_json_body(self, mock_get):
        mock_get.return_value = _mock_response(json_error=ValueError("bad json"))
        result = query_models("sk-1", "https://api.example.com")
        assert result.success is False
        assert "not JSON" in result.message

    def test_connect_error(self, mock_get):
        mock_get.side_effect = httpx.ConnectError("refused")
        result = query_models("sk-1", "https://api.example.com")
        assert result.success is False
        assert result.message.startswith("Cannot connect")

    def test_bad_address(self, mock_get):
        mock_get.side_effect = httpx.UnsupportedProtocol("no scheme")
        result = query_models("sk-1", "api.example.com")
        assert result.success is False
        assert "address format" in result.message

    def test_timeout(self, mock_get):
        mock_get.side_effect = httpx.ReadTimeout("slow")
        result = query_models("sk-1", "https://api.example.com")
        assert result.success is False
        assert result.message.startswith("Model query failed")

    def test_to_dict(self, mock_get):
        mock_get.return_value = _mock_response(json_data=[{"id": "m1"}])
        data = query_models("sk-1", "https://api.example.com").to_dict()
        assert data == {
            "success": True,
            "message": "Connected, found 1 available models",
            "models": [{"id": "m1", "name": "m1", "display_name": "M1"}],
        }
