"""
Tool execution through the MCP server.

This module dispatches tool calls detected in the model's output to the
tool server and renders the outcome as the text of a conversation turn.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from transport.errors import RemoteError

logger = logging.getLogger(__name__)


def _content_texts(result: Dict[str, Any]) -> List[str]:
    texts = []
    for item in result.get("content") or []:
        if isinstance(item, dict) and isinstance(item.get("text"), str):
            texts.append(item["text"])
    return texts


def format_tool_output(name: str, result: Dict[str, Any]) -> Dict[str, Any]:
    """Render a `tools/call` result as turn text.

    Returns:
        Dict with 'content' (the turn text) and 'error' when the tool failed
    """
    texts = _content_texts(result)
    if not result.get("isError"):
        return {"content": f"Tool {name} output:\n" + "\n".join(texts)}

    error_msg = texts[0] if texts else "unknown error"
    return {"error": error_msg, "content": f"Tool {name} error: {error_msg}"}


class ToolExecutor:
    """Executes tool calls requested by the model via an McpStdioClient."""

    def __init__(self, client):
        """
        Initialize the tool executor.

        Args:
            client: Started McpStdioClient (anything with call_tool)
        """
        self.client = client

    def execute_tool(self, tool_name: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute a tool call and return the result.

        Remote (protocol-level) errors become an error result so the model
        can correct itself; transport failures propagate to the caller.

        Args:
            tool_name: Name of the tool to execute
            parameters: Arguments for the tool call

        Returns:
            Dict containing the turn text under 'content' and optionally 'error'
        """
        logger.info("Tool Used: %s %s", tool_name, parameters)
        try:
            result = self.client.call_tool(tool_name, parameters)
        except RemoteError as e:
            logger.info("tool error %s", e.message)
            return {"error": e.message, "content": f"Tool {tool_name} error: {e.message}"}

        rendered = format_tool_output(tool_name, result)
        if "error" in rendered:
            logger.info("tool error %s", rendered["error"])
        else:
            logger.info("tool success")
        return rendered
