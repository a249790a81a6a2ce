"""Stdio JSON-RPC transport for talking to an MCP tool server process."""

from transport.client import McpStdioClient, PendingRequest
from transport.errors import (
    McpClientError,
    RemoteError,
    SpawnError,
    TransportError,
    TransportStartError,
)
from transport.process import ChildProcessChannel
from transport.stdio import StdioTransport

__all__ = [
    "ChildProcessChannel",
    "McpClientError",
    "McpStdioClient",
    "PendingRequest",
    "RemoteError",
    "SpawnError",
    "StdioTransport",
    "TransportError",
    "TransportStartError",
]
