"""back-agent-mcp: run coding-agent CLI tasks on behalf of MCP clients."""
