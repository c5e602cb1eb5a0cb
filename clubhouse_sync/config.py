"""
clubhouse-sync shared configuration, constants, and module-level state.
Standalone module: no imports from other project files.
"""

import os

# ---------------------------------------------------------------------------
# .env path and helpers
# ---------------------------------------------------------------------------

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
_PROJECT_ROOT = os.path.dirname(_PACKAGE_DIR)

ENV_PATH = os.path.join(_PROJECT_ROOT, ".env")

# Keys that may also come from the process environment (overrides .env).
ENV_KEYS = (
    "CLUBHOUSE_API_TOKEN",
    "CLUBHOUSE_TOKEN_FILE",
    "CLUBHOUSE_GPG_PROGRAM",
    "CLUBHOUSE_BASE_URL",
    "CLUBHOUSE_HTTP_TIMEOUT_SECONDS",
    "CLUBHOUSE_HTTP_MAX_RESPONSE_BYTES",
    "CLUBHOUSE_HTTP_LOG",
    "CLUBHOUSE_HTTP_LOG_SAMPLE_RATE",
    "CLUBHOUSE_DEFAULT_STORY_TYPE",
    "CLUBHOUSE_LOG_MARKER",
    "CLUBHOUSE_MCP_RESPONSE_MODE",
)


def load_env():
    env = {}
    if os.path.exists(ENV_PATH):
        with open(ENV_PATH) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, val = line.split("=", 1)
                    env[key.strip()] = val.strip()
    for key in ENV_KEYS:
        if key in os.environ:
            env[key] = os.environ[key]
    return env


def _env_bool(key, default=False):
    """Parse common boolean env formats."""
    raw = env.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(key, default):
    """Parse integer env values with fallback."""
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(key, default):
    """Parse float env values with fallback."""
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VERSION = "0.3.0"
CONTRACT_SCHEMA_VERSION = "1.0"

VALID_STORY_TYPES = {"feature", "bug", "chore"}
REFERENCE_KINDS = ("project", "epic", "label")

# Document rendering
DOCUMENT_TYPE_TAG = "story"
DESCRIPTION_LANGUAGE = "markdown"

# ---------------------------------------------------------------------------
# Module-level state (loaded from .env)
# ---------------------------------------------------------------------------

env = load_env()

API_TOKEN = env.get("CLUBHOUSE_API_TOKEN", "")
TOKEN_FILE = env.get("CLUBHOUSE_TOKEN_FILE", "")
GPG_PROGRAM = env.get("CLUBHOUSE_GPG_PROGRAM", "") or "gpg"
BASE_URL = (env.get("CLUBHOUSE_BASE_URL", "") or "https://api.clubhouse.io/api/v3").rstrip("/")
HTTP_TIMEOUT_SECONDS = _env_int("CLUBHOUSE_HTTP_TIMEOUT_SECONDS", 30)
HTTP_MAX_RESPONSE_BYTES = _env_int("CLUBHOUSE_HTTP_MAX_RESPONSE_BYTES", 5_000_000)
HTTP_LOG_ENABLED = _env_bool("CLUBHOUSE_HTTP_LOG", False)
HTTP_LOG_SAMPLE_RATE = min(1.0, max(0.0, _env_float("CLUBHOUSE_HTTP_LOG_SAMPLE_RATE", 1.0)))
DEFAULT_STORY_TYPE = env.get("CLUBHOUSE_DEFAULT_STORY_TYPE", "") or "feature"
LOG_MARKER = env.get("CLUBHOUSE_LOG_MARKER", "") or ":LOGBOOK:"
MCP_RESPONSE_MODE = env.get("CLUBHOUSE_MCP_RESPONSE_MODE", "") or "legacy"

# ---------------------------------------------------------------------------
# Runtime flags (set by the CLI)
# ---------------------------------------------------------------------------

RUNTIME_DRY_RUN = False
RUNTIME_QUIET = False
