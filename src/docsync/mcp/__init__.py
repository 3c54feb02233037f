"""MCP stdio server exposing repository sync and document history tools."""
