"""MCP server exposing story documents and reference data as tools.

Package structure:
  __init__.py       FastMCP init, register() calls, re-exports
  __main__.py       ``python -m clubhouse_sync.mcp_server`` entry point
  _core.py          StorySession caching, _call dispatcher, response contract
  _tools_read.py    reference listings and open_story
  _tools_write.py   save_story, refresh_story, create_story

Run: python -m clubhouse_sync.mcp_server
Requires: pip install .[mcp]
"""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from clubhouse_sync.mcp_server import _tools_read, _tools_write

mcp = FastMCP(
    "clubhouse",
    instructions=(
        "Clubhouse story tools. Stories are edited as org documents: call "
        "open_story, edit the returned document text, then save_story with the "
        "whole document. Keep the :clubhouse-id: and :LastUpdated: properties "
        "untouched. A save refused with status 'conflict' means the story "
        "changed remotely; use refresh_story with force=True to take the remote "
        "version. Reference data is cached per session; pass refresh=True to "
        "the list_* tools for fresh data."
    ),
)

for _mod in [_tools_read, _tools_write]:
    _mod.register(mcp)

# ---------------------------------------------------------------------------
# Re-exports (tests import via mcp_mod.xxx)
# ---------------------------------------------------------------------------

# _core
from clubhouse_sync.mcp_server._core import (  # noqa: E402, F401
    MCP_RESPONSE_MODE,
    StorySession,
    _call,
    _contract_error,
    _ensure_contract_dict,
    _finalize_tool_result,
    _get_session,
    _validate_story_id,
)

# _tools_read
from clubhouse_sync.mcp_server._tools_read import (  # noqa: E402, F401
    list_epics,
    list_labels,
    list_projects,
    list_workflow_states,
    open_story,
)

# _tools_write
from clubhouse_sync.mcp_server._tools_write import (  # noqa: E402, F401
    create_story,
    refresh_story,
    save_story,
)


def main():
    """Run the MCP server (stdio transport)."""
    mcp.run()
