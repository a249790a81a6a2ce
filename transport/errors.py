"""Error types raised by the tool server transport."""

from __future__ import annotations

from typing import Any, Optional


class McpClientError(Exception):
    """Base class for tool server client failures."""


class SpawnError(McpClientError):
    """The tool server executable could not be launched."""


class TransportStartError(McpClientError):
    """The channel did not become ready (process died or handshake failed)."""


class TransportError(McpClientError):
    """The channel failed or closed while a request was outstanding."""


class RemoteError(McpClientError):
    """The peer answered a request with a JSON-RPC error object."""

    def __init__(self, code: Optional[int], message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"MCP Error {code}: {message}" if code is not None else f"MCP Error: {message}")

    @classmethod
    def from_payload(cls, error: Any) -> "RemoteError":
        """Build from the `error` member of a response; tolerates odd shapes."""
        if isinstance(error, dict):
            code = error.get("code")
            return cls(
                code if isinstance(code, int) else None,
                str(error.get("message") or "unknown error"),
                error.get("data"),
            )
        return cls(None, str(error))
