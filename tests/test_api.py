"""Tests for api.py: HTTP request layer, Transport errors, dry-run."""

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from clubhouse_sync.api import (
    Transport,
    _error_envelope,
    _http_request,
    _is_sampled_request,
)
from clubhouse_sync.credentials import CredentialProvider
from clubhouse_sync.exceptions import CliError, HTTPError, SetupError, TransportError


def _response(payload, content_type="application/json", status=200):
    raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    resp = MagicMock()
    resp.read.return_value = raw
    resp.headers = {"Content-Type": content_type}
    resp.status = status
    resp.__enter__ = MagicMock(return_value=resp)
    resp.__exit__ = MagicMock(return_value=False)
    return resp


def _http_error(code, body=b"", headers=None):
    return urllib.error.HTTPError(
        "https://api.example.test/x", code, "Reason", headers or {}, io.BytesIO(body)
    )


class TestSampling:
    def test_sample_rate_zero_disables(self, monkeypatch):
        monkeypatch.setattr("clubhouse_sync.api.config.HTTP_LOG_SAMPLE_RATE", 0.0)
        assert _is_sampled_request("req-1") is False

    def test_sample_rate_one_enables(self, monkeypatch):
        monkeypatch.setattr("clubhouse_sync.api.config.HTTP_LOG_SAMPLE_RATE", 1.0)
        assert _is_sampled_request("req-1") is True

    def test_sampling_is_deterministic(self, monkeypatch):
        monkeypatch.setattr("clubhouse_sync.api.config.HTTP_LOG_SAMPLE_RATE", 0.5)
        assert _is_sampled_request("req-stable") == _is_sampled_request("req-stable")


class TestErrorEnvelope:
    def test_plain(self):
        assert _error_envelope("failed") == "[ERROR] failed"

    def test_with_meta_and_detail(self):
        msg = _error_envelope("failed", status=500, request_id="r1", detail="body")
        assert msg == "[ERROR] failed (status=500, request_id=r1)\nbody"


class TestHttpRequest:
    @patch("clubhouse_sync.api.urllib.request.urlopen")
    def test_parses_json(self, mock_urlopen):
        mock_urlopen.return_value = _response({"id": 1})
        assert _http_request("https://api.example.test/x") == {"id": 1}

    @patch("clubhouse_sync.api.urllib.request.urlopen")
    def test_empty_body_returns_none(self, mock_urlopen):
        mock_urlopen.return_value = _response(b"  ")
        assert _http_request("https://api.example.test/x", method="PUT") is None

    @patch("clubhouse_sync.api.urllib.request.urlopen")
    def test_sends_json_body(self, mock_urlopen):
        mock_urlopen.return_value = _response({})
        _http_request("https://api.example.test/x", {"name": "n"}, {}, "POST")
        req = mock_urlopen.call_args[0][0]
        assert req.get_method() == "POST"
        assert json.loads(req.data) == {"name": "n"}

    @patch("clubhouse_sync.api.urllib.request.urlopen")
    def test_http_error_raised_with_body(self, mock_urlopen):
        mock_urlopen.side_effect = _http_error(422, b'{"message": "invalid"}')
        with pytest.raises(HTTPError) as exc_info:
            _http_request("https://api.example.test/x")
        assert exc_info.value.code == 422
        assert "invalid" in exc_info.value.body

    @patch("clubhouse_sync.api.urllib.request.urlopen")
    def test_url_error_has_no_code(self, mock_urlopen):
        mock_urlopen.side_effect = urllib.error.URLError("connection refused")
        with pytest.raises(HTTPError) as exc_info:
            _http_request("https://api.example.test/x")
        assert exc_info.value.code is None
        assert "connection refused" in exc_info.value.reason

    @patch("clubhouse_sync.api.urllib.request.urlopen")
    def test_timeout_has_no_code(self, mock_urlopen):
        mock_urlopen.side_effect = TimeoutError()
        with pytest.raises(HTTPError) as exc_info:
            _http_request("https://api.example.test/x")
        assert exc_info.value.code is None
        assert "timed out" in exc_info.value.reason

    @patch("clubhouse_sync.api.urllib.request.urlopen")
    def test_invalid_json_raises_cli_error(self, mock_urlopen):
        mock_urlopen.return_value = _response(b"<html>", content_type="application/json")
        with pytest.raises(CliError, match="not valid JSON"):
            _http_request("https://api.example.test/x")

    @patch("clubhouse_sync.api.urllib.request.urlopen")
    def test_non_json_content_type(self, mock_urlopen):
        mock_urlopen.return_value = _response(b"<html>", content_type="text/html")
        with pytest.raises(CliError, match="Content-Type"):
            _http_request("https://api.example.test/x")

    @patch("clubhouse_sync.api.urllib.request.urlopen")
    def test_response_too_large(self, mock_urlopen, monkeypatch):
        monkeypatch.setattr("clubhouse_sync.api.config.HTTP_MAX_RESPONSE_BYTES", 4)
        mock_urlopen.return_value = _response(b'{"a": 12345}')
        with pytest.raises(CliError, match="too large"):
            _http_request("https://api.example.test/x")

    @patch("clubhouse_sync.api.urllib.request.urlopen")
    def test_logs_when_enabled(self, mock_urlopen, monkeypatch, capsys):
        monkeypatch.setattr("clubhouse_sync.api.config.HTTP_LOG_ENABLED", True)
        mock_urlopen.return_value = _response({"id": 1})
        _http_request("https://api.example.test/x", headers={"X-Request-Id": "r1"})
        err = capsys.readouterr().err
        assert '"phase": "request"' in err
        assert '"phase": "response"' in err


class TestTransport:
    def _transport(self, **kwargs):
        return Transport(CredentialProvider(token="tok-123"), **kwargs)

    @patch("clubhouse_sync.api._http_request")
    def test_builds_url_and_headers(self, mock_req):
        mock_req.return_value = {"id": 42}
        t = self._transport(base_url="https://api.example.test/api/v3/")
        assert t.request("get", "/stories/42") == {"id": 42}
        url, body, headers, method = mock_req.call_args[0]
        assert url == "https://api.example.test/api/v3/stories/42"
        assert body is None
        assert method == "GET"
        assert headers["Clubhouse-Token"] == "tok-123"
        assert headers["Content-Type"] == "application/json"
        assert headers["X-Request-Id"]

    @patch("clubhouse_sync.api._http_request")
    def test_query_string(self, mock_req):
        mock_req.return_value = []
        self._transport().request("GET", "/labels", query={"slim": "true"})
        assert mock_req.call_args[0][0].endswith("/labels?slim=true")

    @patch("clubhouse_sync.api._http_request")
    def test_non_2xx_raises_transport_error(self, mock_req):
        mock_req.side_effect = HTTPError(
            422, "Unprocessable", '{"message": "bad"}', headers={"X-Request-Id": "srv-1"}
        )
        with pytest.raises(TransportError) as exc_info:
            self._transport().request("PUT", "/stories/42", {"name": "x"})
        err = exc_info.value
        assert err.method == "PUT"
        assert err.path == "/stories/42"
        assert err.body == {"name": "x"}
        assert err.status == 422
        assert err.response_body == '{"message": "bad"}'
        assert "request_id=srv-1" in str(err)

    @patch("clubhouse_sync.api._http_request")
    def test_connection_failure_has_no_status(self, mock_req):
        mock_req.side_effect = HTTPError(None, "connection refused", "")
        with pytest.raises(TransportError) as exc_info:
            self._transport().request("GET", "/projects")
        assert exc_info.value.status is None
        assert "connection refused" in str(exc_info.value)

    @pytest.mark.parametrize("code", [401, 403])
    @patch("clubhouse_sync.api._http_request")
    def test_rejected_token_is_setup_error(self, mock_req, code):
        mock_req.side_effect = HTTPError(code, "Unauthorized", "")
        with pytest.raises(SetupError, match=r"\[TOKEN_EXPIRED\]"):
            self._transport().request("GET", "/projects")

    @patch("clubhouse_sync.api._http_request")
    def test_no_retry(self, mock_req):
        mock_req.side_effect = HTTPError(503, "Unavailable", "")
        with pytest.raises(TransportError):
            self._transport().request("GET", "/projects")
        assert mock_req.call_count == 1


class TestDryRun:
    @patch("clubhouse_sync.api._http_request")
    def test_mutation_logged_not_sent(self, mock_req, capsys):
        t = Transport(CredentialProvider(token="tok"), dry_run=True)
        assert t.request("PUT", "/stories/42", {"name": "x"}) is None
        mock_req.assert_not_called()
        err = capsys.readouterr().err
        assert err.startswith("[DRY-RUN] PUT /stories/42")
        assert '"name": "x"' in err

    @patch("clubhouse_sync.api._http_request")
    def test_reads_still_sent(self, mock_req):
        mock_req.return_value = {"id": 1}
        t = Transport(CredentialProvider(token="tok"), dry_run=True)
        assert t.request("GET", "/stories/1") == {"id": 1}
        mock_req.assert_called_once()

    def test_falls_back_to_runtime_flag(self, monkeypatch):
        monkeypatch.setattr("clubhouse_sync.api.config.RUNTIME_DRY_RUN", True)
        assert Transport(CredentialProvider(token="tok")).dry_run is True

    @patch("clubhouse_sync.api._http_request")
    def test_dry_run_needs_no_token(self, mock_req, monkeypatch):
        monkeypatch.setattr("clubhouse_sync.credentials.config.API_TOKEN", "")
        t = Transport(CredentialProvider(), dry_run=True)
        assert t.request("POST", "/stories", {"name": "n"}) is None
