"""
clubhouse-sync exception hierarchy.

All custom exceptions live here to avoid circular imports.
Conflicts and unsaved-edit refusals are not exceptions; see sync.SyncOutcome.
"""


class CliError(Exception):
    """Exit code 1: validation, resolution, network, parse errors."""

    exit_code = 1


class SetupError(CliError):
    """Exit code 2: missing or unusable credentials."""

    exit_code = 2


class HTTPError(Exception):
    """Raised by _http_request for HTTP errors that callers want to handle."""

    def __init__(self, code, reason, body, headers=None):
        self.code = code
        self.reason = reason
        self.body = body
        self.headers = headers or {}


class TransportError(CliError):
    """A request to the remote service failed (non-2xx or no connection)."""

    def __init__(self, message, *, method, path, body=None, status=None, response_body=""):
        super().__init__(message)
        self.method = method
        self.path = path
        self.body = body
        self.status = status
        self.response_body = response_body


class ResolutionError(CliError):
    """A project/epic/state/label reference could not be found."""

    def __init__(self, kind, value, hint=""):
        message = f"[ERROR] Unknown {kind} '{value}'."
        if hint:
            message += f" {hint}"
        super().__init__(message)
        self.kind = kind
        self.value = value
