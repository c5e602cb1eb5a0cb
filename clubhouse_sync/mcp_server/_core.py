"""Core helpers: session caching, _call dispatcher, response contract."""

from __future__ import annotations

from clubhouse_sync import (
    CliError,
    ClubhouseClient,
    MemorySurface,
    ReferenceCache,
    SetupError,
    SyncEngine,
    TextCreationSource,
)
from clubhouse_sync.codec import parse_document
from clubhouse_sync.config import CONTRACT_SCHEMA_VERSION, MCP_RESPONSE_MODE


class StorySession:
    """One server process = one session: a shared reference cache and one
    in-memory document per opened story."""

    def __init__(self, client: ClubhouseClient | None = None):
        self.client = client or ClubhouseClient()
        self.cache = ReferenceCache(self.client)
        self.engines: dict[int, SyncEngine] = {}

    def _engine(self, story_id: int) -> SyncEngine:
        if story_id not in self.engines:
            self.engines[story_id] = SyncEngine(self.client, MemorySurface(), self.cache)
        return self.engines[story_id]

    def _open_engine(self, story_id: int) -> SyncEngine:
        engine = self.engines.get(story_id)
        if engine is None or not engine.surface.get_text():
            raise CliError(f"[ERROR] Story {story_id} is not open. Call open_story first.")
        return engine

    def _with_document(self, engine: SyncEngine, outcome) -> dict:
        out = dict(outcome.to_dict())
        out["document"] = engine.surface.get_text()
        out["state"] = engine.state.value
        return out

    def list_pairs(self, kind: str, refresh: bool = False) -> dict:
        pairs = self.cache.refresh(kind) if refresh else self.cache.get(kind)
        return {"kind": kind, "items": [p.to_dict() for p in pairs]}

    def list_workflow_states(self, refresh: bool = False) -> dict:
        if refresh:
            self.cache.refresh("workflow")
        return {"workflows": [w.to_dict() for w in self.cache.get_workflows()]}

    def open_story(self, story_id: int, force: bool = False) -> dict:
        engine = self._engine(story_id)
        if engine.surface.get_text():
            outcome = engine.refresh(force=force, story_id=story_id)
        else:
            outcome = engine.load(story_id)
        return self._with_document(engine, outcome)

    def save_story(self, story_id: int, document: str) -> dict:
        engine = self._open_engine(story_id)
        if parse_document(document).story_id != story_id:
            raise CliError(f"[ERROR] Document does not belong to story {story_id}.")
        engine.surface.edit(document)
        return self._with_document(engine, engine.save())

    def refresh_story(self, story_id: int, force: bool = False) -> dict:
        engine = self._open_engine(story_id)
        return self._with_document(engine, engine.refresh(force=force, story_id=story_id))

    def create_story(self, title: str, description: str = "", **kwargs) -> dict:
        engine = SyncEngine(self.client, MemorySurface(), self.cache)
        return engine.create(TextCreationSource(title, description), **kwargs).to_dict()


_session: StorySession | None = None


def _get_session() -> StorySession:
    """Return the cached StorySession, creating one on first use."""
    global _session
    if _session is None:
        _session = StorySession()
    return _session


def _contract_error(message: str, error_type: str = "error") -> dict:
    """Return a stable MCP error envelope with legacy compatibility fields."""
    return {
        "ok": False,
        "schema_version": CONTRACT_SCHEMA_VERSION,
        "type": error_type,  # legacy
        "error": message,  # legacy
        "error_detail": {
            "type": error_type,
            "message": message,
        },
    }


def _ensure_contract_dict(payload: dict) -> dict:
    """Add stable contract metadata to dict responses."""
    out = dict(payload)
    out.setdefault("schema_version", CONTRACT_SCHEMA_VERSION)
    if out.get("ok") is False and "error" in out:
        error_type = str(out.get("type", "error"))
        error_message = out.get("error", "Unknown error")
        if not isinstance(error_message, str):
            error_message = str(error_message)
            out["error"] = error_message
        out.setdefault(
            "error_detail",
            {
                "type": error_type,
                "message": error_message,
            },
        )
        return out
    out.setdefault("ok", True)
    return out


def _finalize_tool_result(result):
    """Finalize tool response based on configured MCP response mode.

    Modes:
        - legacy (default): dicts gain contract metadata (ok/schema_version).
        - envelope: always return {"ok", "schema_version", "data"} for success.
    """
    if isinstance(result, dict):
        normalized = _ensure_contract_dict(result)
        if "error" in normalized and normalized.get("ok") is False:
            return normalized
        if MCP_RESPONSE_MODE == "envelope":
            data = dict(normalized)
            ok = data.pop("ok", True)
            data.pop("schema_version", None)
            return {
                "ok": ok,
                "schema_version": CONTRACT_SCHEMA_VERSION,
                "data": data,
            }
        return normalized
    if MCP_RESPONSE_MODE == "envelope":
        return {
            "ok": True,
            "schema_version": CONTRACT_SCHEMA_VERSION,
            "data": result,
        }
    return result


_ALLOWED_METHODS = {
    "list_pairs",
    "list_workflow_states",
    "open_story",
    "save_story",
    "refresh_story",
    "create_story",
}


def _call(method_name: str, **kwargs):
    """Call a StorySession method, converting exceptions to error dicts."""
    if method_name not in _ALLOWED_METHODS:
        return _contract_error(f"Unknown method: {method_name}", "error")
    try:
        session = _get_session()
        return getattr(session, method_name)(**kwargs)
    except SetupError as e:
        return _contract_error(str(e), "setup")
    except CliError as e:
        return _contract_error(str(e), "error")
    except Exception as e:
        return _contract_error(f"Unexpected error: {e}", "error")


def _validate_story_id(story_id) -> int:
    """Validate that story_id is a positive integer. Raises CliError otherwise."""
    if isinstance(story_id, bool) or not isinstance(story_id, int) or story_id <= 0:
        raise CliError(f"[ERROR] Invalid story id '{story_id}': expected a positive integer.")
    return story_id
