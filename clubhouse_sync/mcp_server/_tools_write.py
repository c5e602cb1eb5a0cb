"""Write tools: saving, refreshing, and creating stories (3 tools)."""

from __future__ import annotations

from typing import Literal

from clubhouse_sync import CliError
from clubhouse_sync.mcp_server._core import (
    _call,
    _contract_error,
    _finalize_tool_result,
    _validate_story_id,
)


def save_story(story_id: int, document: str) -> dict:
    """Save an edited org document back to its story.

    The story must have been opened in this session. The save is refused
    (status "conflict") when the story changed remotely after the document's
    LastUpdated; refresh_story with force=True then takes the remote version.

    Args:
        story_id: Numeric story id; must match the document's clubhouse-id.
        document: The full edited document text.
    """
    try:
        _validate_story_id(story_id)
    except CliError as e:
        return _finalize_tool_result(_contract_error(str(e), "error"))
    return _finalize_tool_result(_call("save_story", story_id=story_id, document=document))


def refresh_story(story_id: int, force: bool = False) -> dict:
    """Reload an open story from the service. Refused with "unsaved_edits"
    when the session copy has edits, unless force=True."""
    try:
        _validate_story_id(story_id)
    except CliError as e:
        return _finalize_tool_result(_contract_error(str(e), "error"))
    return _finalize_tool_result(_call("refresh_story", story_id=story_id, force=force))


def create_story(
    title: str,
    project: str,
    description: str = "",
    story_type: Literal["feature", "bug", "chore"] | None = None,
    epic: str | None = None,
    state: str | None = None,
    labels: list[str] | None = None,
) -> dict:
    """Create a story.

    Args:
        title: Story name.
        project: Project name, id, or "id: name".
        description: Org-formatted body; converted to markdown.
        story_type: Defaults to the configured default type.
        epic: Epic name, id, or "id: name".
        state: Workflow state name.
        labels: Label names; unknown names are created by the service.

    Returns:
        Outcome dict with story_id and url of the created story.
    """
    if not title or not title.strip():
        return _finalize_tool_result(_contract_error("[ERROR] Story title is empty.", "error"))
    return _finalize_tool_result(
        _call(
            "create_story",
            title=title.strip(),
            description=description,
            project=project,
            story_type=story_type,
            epic=epic,
            state=state,
            labels=labels,
        )
    )


def register(mcp):
    """Register all write tools with the FastMCP instance."""
    mcp.tool()(save_story)
    mcp.tool()(refresh_story)
    mcp.tool()(create_story)
