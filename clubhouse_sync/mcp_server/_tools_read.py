"""Read tools: reference listings and opening stories (5 tools)."""

from __future__ import annotations

from clubhouse_sync import CliError
from clubhouse_sync.mcp_server._core import (
    _call,
    _contract_error,
    _finalize_tool_result,
    _validate_story_id,
)


def list_projects(refresh: bool = False) -> dict:
    """List non-archived projects as id/name pairs.

    Args:
        refresh: True to refetch instead of using the session cache.
    """
    return _finalize_tool_result(_call("list_pairs", kind="project", refresh=refresh))


def list_epics(refresh: bool = False) -> dict:
    """List non-archived epics as id/name pairs."""
    return _finalize_tool_result(_call("list_pairs", kind="epic", refresh=refresh))


def list_labels(refresh: bool = False) -> dict:
    """List non-archived labels as id/name pairs."""
    return _finalize_tool_result(_call("list_pairs", kind="label", refresh=refresh))


def list_workflow_states(refresh: bool = False) -> dict:
    """List workflows with their states. State names are what the document's
    ``:state:`` property accepts."""
    return _finalize_tool_result(_call("list_workflow_states", refresh=refresh))


def open_story(story_id: int, force: bool = False) -> dict:
    """Open a story as an org document.

    Reopening an already-open story reloads it, unless the session copy has
    unsaved edits (then status is "unsaved_edits" and the copy is kept).

    Args:
        story_id: Numeric story id.
        force: True to discard unsaved edits when reopening.

    Returns:
        Outcome dict (action, status, story_id, message, url) plus
        ``document`` (the org text) and ``state`` (clean/dirty/conflict).
    """
    try:
        _validate_story_id(story_id)
    except CliError as e:
        return _finalize_tool_result(_contract_error(str(e), "error"))
    return _finalize_tool_result(_call("open_story", story_id=story_id, force=force))


def register(mcp):
    """Register all read tools with the FastMCP instance."""
    mcp.tool()(list_projects)
    mcp.tool()(list_epics)
    mcp.tool()(list_labels)
    mcp.tool()(list_workflow_states)
    mcp.tool()(open_story)
