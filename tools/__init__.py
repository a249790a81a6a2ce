"""
Tool calling support for mcp-chat.

This package provides:
- Tool definitions discovered from the MCP server and their function schemas
- Tool execution through the MCP client
"""
