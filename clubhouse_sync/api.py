"""
HTTP request layer for clubhouse-sync: the transport every remote call goes through.
"""

import hashlib
import json
import sys
import time
import urllib.error
import urllib.parse
import urllib.request
import uuid

from clubhouse_sync import config
from clubhouse_sync.credentials import CredentialProvider
from clubhouse_sync.exceptions import CliError, HTTPError, SetupError, TransportError

# ---------------------------------------------------------------------------
# Logging helpers
# ---------------------------------------------------------------------------


def _log_http_event(**fields):
    """Emit structured HTTP logs to stderr when enabled."""
    if not config.HTTP_LOG_ENABLED:
        return
    print("[HTTP] " + json.dumps(fields, ensure_ascii=False, sort_keys=True), file=sys.stderr)


def _is_sampled_request(request_id):
    """Decide if a request should be logged based on sample rate."""
    rate = config.HTTP_LOG_SAMPLE_RATE
    if rate <= 0:
        return False
    if rate >= 1:
        return True
    if not request_id:
        return False
    digest = hashlib.sha256(request_id.encode("utf-8")).digest()
    bucket = int.from_bytes(digest[:4], "big") / 4294967295.0
    return bucket < rate


def _error_envelope(message, status=None, request_id=None, detail=None):
    """Build a consistent CLI-safe HTTP error message."""
    meta = []
    if status is not None:
        meta.append(f"status={status}")
    if request_id:
        meta.append(f"request_id={request_id}")
    suffix = f" ({', '.join(meta)})" if meta else ""
    body = f"[ERROR] {message}{suffix}"
    if detail:
        body += f"\n{detail}"
    return body


# ---------------------------------------------------------------------------
# HTTP request layer
# ---------------------------------------------------------------------------


def _http_request(url, data=None, headers=None, method="GET"):
    """Make an HTTP request with standard error handling.
    Returns parsed JSON on success, or None for an empty body.
    Raises HTTPError for HTTP errors; code is None when no response arrived
    (timeout or connection failure)."""
    body = json.dumps(data).encode("utf-8") if data is not None else None
    request_id = (headers or {}).get("X-Request-Id")
    sampled = _is_sampled_request(request_id)
    timeout = max(1, config.HTTP_TIMEOUT_SECONDS)
    start = time.perf_counter()
    req = urllib.request.Request(url, data=body, headers=headers or {}, method=method)
    if sampled:
        _log_http_event(
            phase="request",
            method=method,
            url=url,
            request_id=request_id,
            timeout_seconds=timeout,
        )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            content_type = resp.headers.get("Content-Type", "")
            raw = resp.read(config.HTTP_MAX_RESPONSE_BYTES + 1)
            if len(raw) > config.HTTP_MAX_RESPONSE_BYTES:
                raise CliError(
                    "[ERROR] Response too large from Clubhouse API "
                    f"(>{config.HTTP_MAX_RESPONSE_BYTES} bytes)."
                )
            if sampled:
                _log_http_event(
                    phase="response",
                    method=method,
                    url=url,
                    status=getattr(resp, "status", 200),
                    content_type=content_type,
                    bytes=len(raw),
                    latency_ms=round((time.perf_counter() - start) * 1000, 2),
                    request_id=request_id,
                )
            if not raw.strip():
                return None
            try:
                return json.loads(raw.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                if content_type and "json" not in content_type.lower():
                    raise CliError(
                        f"[ERROR] Unexpected Content-Type from server "
                        f"({content_type}). This may be a proxy or "
                        "network issue."
                    ) from None
                raise CliError(
                    "[ERROR] Unexpected response from Clubhouse API (not valid JSON)."
                ) from None
    except urllib.error.HTTPError as e:
        error_body = (
            e.read(config.HTTP_MAX_RESPONSE_BYTES).decode("utf-8", errors="replace")
            if e.fp
            else ""
        )
        if sampled:
            _log_http_event(
                phase="response",
                method=method,
                url=url,
                status=e.code,
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
                request_id=request_id,
            )
        raise HTTPError(e.code, e.reason, error_body, headers=e.headers) from e
    except TimeoutError as e:
        if sampled:
            _log_http_event(
                phase="network_error",
                method=method,
                url=url,
                error="timeout",
                request_id=request_id,
            )
        raise HTTPError(None, f"timed out after {timeout} seconds", "") from e
    except urllib.error.URLError as e:
        if sampled:
            _log_http_event(
                phase="network_error",
                method=method,
                url=url,
                error=f"url_error: {e.reason}",
                request_id=request_id,
            )
        raise HTTPError(None, str(e.reason), "") from e


def _dry_run_log(method, path, body):
    """Print the request that would have been sent."""
    line = f"[DRY-RUN] {method} {path}"
    if body is not None:
        line += " " + json.dumps(body, ensure_ascii=False, sort_keys=True)
    print(line, file=sys.stderr)


class Transport:
    """Authenticated JSON transport for the Clubhouse REST API.

    Every call is synchronous and runs to completion before the next one.
    In dry-run mode mutations are logged instead of sent; reads still go out.
    """

    def __init__(self, credentials=None, *, base_url=None, dry_run=None):
        self.credentials = credentials or CredentialProvider()
        self.base_url = (base_url or config.BASE_URL).rstrip("/")
        self._dry_run = dry_run

    @property
    def dry_run(self):
        if self._dry_run is None:
            return config.RUNTIME_DRY_RUN
        return self._dry_run

    def _url(self, path, query=None):
        url = self.base_url + "/" + path.lstrip("/")
        if query:
            url += "?" + urllib.parse.urlencode(query, doseq=True)
        return url

    def request(self, method, path, body=None, query=None):
        """Send one request and return the decoded JSON response.

        Raises TransportError on any non-2xx response or connection failure,
        SetupError when the service rejects the token.
        """
        method = method.upper()
        if self.dry_run and method != "GET":
            _dry_run_log(method, path, body)
            return None
        headers = {
            "Clubhouse-Token": self.credentials.token(),
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Request-Id": str(uuid.uuid4()),
        }
        try:
            return _http_request(self._url(path, query), body, headers, method)
        except HTTPError as e:
            if e.code in (401, 403):
                raise SetupError(
                    "[TOKEN_EXPIRED] The Clubhouse API rejected the token "
                    f"({method} {path}, HTTP {e.code}). Check CLUBHOUSE_API_TOKEN."
                ) from e
            if e.code is None:
                message = _error_envelope(f"{method} {path} failed: {e.reason}")
            else:
                server_req_id = e.headers.get("X-Request-Id") if e.headers else None
                message = _error_envelope(
                    f"{method} {path} failed: HTTP {e.code} {e.reason}",
                    status=e.code,
                    request_id=server_req_id,
                    detail=e.body,
                )
            raise TransportError(
                message,
                method=method,
                path=path,
                body=body,
                status=e.code,
                response_body=e.body,
            ) from e
