"""MCP server exposing vault sync operations as tools."""
