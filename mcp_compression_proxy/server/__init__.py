"""MCP server front: stdio app, request handlers, sessions and management API."""
