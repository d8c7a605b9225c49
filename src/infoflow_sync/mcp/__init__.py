"""MCP stdio server exposing the InfoFlow vault sync commands as tools."""
