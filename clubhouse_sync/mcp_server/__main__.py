"""Allow ``python -m clubhouse_sync.mcp_server``."""

from clubhouse_sync.mcp_server import main

main()
