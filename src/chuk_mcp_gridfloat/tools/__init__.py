"""MCP tool registrations for chuk-mcp-gridfloat."""
