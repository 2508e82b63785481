"""MCP server exposing deal tools."""
