"""
ClubhouseClient: the remote endpoints clubhouse-sync talks to.

Returns raw JSON (dicts and lists); typed records are built in models.py.
"""

from __future__ import annotations

from typing import Any

from clubhouse_sync.api import Transport
from clubhouse_sync.exceptions import CliError


def _expect_object_response(result, operation):
    """Ensure story endpoints only return JSON objects (dict)."""
    if isinstance(result, dict):
        return result
    raise CliError(
        f"[ERROR] Unexpected {operation} response shape: "
        f"expected JSON object, got {type(result).__name__}."
    )


def _expect_list_response(result, operation):
    """Ensure collection endpoints only return JSON arrays."""
    if isinstance(result, list):
        return result
    raise CliError(
        f"[ERROR] Unexpected {operation} response shape: "
        f"expected JSON array, got {type(result).__name__}."
    )


class ClubhouseClient:
    """Story and reference-collection endpoints of the Clubhouse API."""

    def __init__(self, transport: Transport | None = None):
        self.transport = transport or Transport()

    @property
    def dry_run(self) -> bool:
        return bool(self.transport.dry_run)

    # -------------------------------------------------------------------
    # Stories
    # -------------------------------------------------------------------

    def get_story(self, story_id: int) -> dict[str, Any]:
        result = self.transport.request("GET", f"/stories/{int(story_id)}")
        return _expect_object_response(result, "get story")

    def update_story(self, story_id: int, payload: dict[str, Any]) -> dict[str, Any] | None:
        """PUT a partial update. Returns None in dry-run mode."""
        result = self.transport.request("PUT", f"/stories/{int(story_id)}", payload)
        if result is None and self.dry_run:
            return None
        return _expect_object_response(result, "update story")

    def create_story(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        """POST a new story. Returns None in dry-run mode."""
        result = self.transport.request("POST", "/stories", payload)
        if result is None and self.dry_run:
            return None
        return _expect_object_response(result, "create story")

    # -------------------------------------------------------------------
    # Reference collections
    # -------------------------------------------------------------------

    def list_projects(self) -> list[dict[str, Any]]:
        return _expect_list_response(self.transport.request("GET", "/projects"), "projects")

    def list_epics(self) -> list[dict[str, Any]]:
        return _expect_list_response(self.transport.request("GET", "/epics"), "epics")

    def list_labels(self) -> list[dict[str, Any]]:
        return _expect_list_response(self.transport.request("GET", "/labels"), "labels")

    def list_workflows(self) -> list[dict[str, Any]]:
        return _expect_list_response(self.transport.request("GET", "/workflows"), "workflows")

    def list_collection(self, kind: str) -> list[dict[str, Any]]:
        """Fetch a reference collection by kind name (project, epic, label, workflow)."""
        fetchers = {
            "project": self.list_projects,
            "epic": self.list_epics,
            "label": self.list_labels,
            "workflow": self.list_workflows,
        }
        if kind not in fetchers:
            raise CliError(
                f"[ERROR] Unknown collection '{kind}'. Valid: {', '.join(sorted(fetchers))}"
            )
        return fetchers[kind]()
