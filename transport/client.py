"""Correlated JSON-RPC client for an MCP server on stdio.

Every request gets a unique id and a PendingRequest. One long-lived handler
on the transport routes each response to the PendingRequest with the same id,
so any number of requests can be in flight and answers may arrive in any
order.
"""

from __future__ import annotations

import itertools
import logging
import time
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from transport.errors import RemoteError, TransportError, TransportStartError
from transport.process import ChildProcessChannel
from transport.stdio import StdioTransport

logger = logging.getLogger(__name__)

RequestId = Union[int, str]

PROTOCOL_VERSION = "2024-11-05"
CLIENT_NAME = "mcp-chat"
CLIENT_VERSION = "0.1.0"

METHOD_NOT_FOUND = -32601

_DEFAULT = object()


@dataclass
class PendingRequest:
    """One in-flight request awaiting its response."""
    request_id: RequestId
    method: str
    future: Future = field(default_factory=Future)
    created_at: float = field(default_factory=time.monotonic)


class McpStdioClient:
    """Sends requests to the tool server and matches responses by id."""

    def __init__(
        self,
        transport: StdioTransport,
        *,
        request_timeout: Optional[float] = None,
        start_timeout: float = 10.0,
        handshake: bool = True,
    ):
        self.transport = transport
        self.request_timeout = request_timeout
        self.start_timeout = start_timeout
        self.handshake = handshake
        self.server_info: Dict[str, Any] = {}
        self._pending: Dict[RequestId, PendingRequest] = {}
        self._ids = itertools.count(1)
        self._closed_error: Optional[TransportError] = None

        transport.set_message_handler(self._dispatch)
        transport.set_close_handler(self._on_transport_closed)

    @classmethod
    def from_config(cls, config) -> "McpStdioClient":
        """Build a client (not yet started) for the server described by an AgentConfig."""
        channel = ChildProcessChannel(
            config.server_command,
            config.script_path,
            config.allowed_directories,
            args=config.server_args,
        )
        return cls(
            StdioTransport(channel),
            request_timeout=config.request_timeout,
            start_timeout=config.start_timeout,
        )

    # ---------------- lifecycle ----------------
    def start(self) -> None:
        """Start the transport and perform the MCP initialize handshake.

        Raises:
            SpawnError: if the server executable cannot be launched
            TransportStartError: if the server is not ready within start_timeout
        """
        try:
            self.transport.start()
        except TransportStartError:
            self.transport.stop()
            raise
        if not self.handshake:
            return

        try:
            result = self.request(
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": CLIENT_NAME, "version": CLIENT_VERSION},
                },
                timeout=self.start_timeout,
            )
            self.notify("notifications/initialized")
        except (TransportError, RemoteError) as e:
            self.stop()
            raise TransportStartError(f"Failed to start MCP transport: {e}") from e

        if isinstance(result, dict):
            self.server_info = result.get("serverInfo") or {}
        logger.info("MCP Stdio Client connected to server %s", self.server_info.get("name", "?"))

    def stop(self) -> None:
        """Stop the server; every outstanding request fails with TransportError."""
        self.transport.stop()

    def __enter__(self) -> "McpStdioClient":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    @property
    def outstanding(self) -> List[RequestId]:
        return list(self._pending)

    # ---------------- requests ----------------
    def send_message(self, message: dict) -> Future:
        """Send a request and return a future for its result.

        The message's ``id`` is used when present, otherwise one is assigned.
        The future resolves to the response's ``result``, or fails with
        RemoteError (peer error reply) or TransportError (channel failure).

        Raises:
            ValueError: if the supplied id is already outstanding
        """
        return self._send(message).future

    def request(self, method: str, params: Optional[dict] = None, *, timeout: Any = _DEFAULT) -> Any:
        """Send a request and block until its result arrives.

        Raises:
            RemoteError: the peer answered with an error
            TransportError: the channel failed, or the request timed out
        """
        pending = self._send({"jsonrpc": "2.0", "method": method, "params": params or {}})
        wait = self.request_timeout if timeout is _DEFAULT else timeout
        try:
            return pending.future.result(timeout=wait)
        except FutureTimeoutError:
            if self._pending.pop(pending.request_id, None) is None:
                # resolved between the timeout and the pop
                return pending.future.result()
            raise TransportError(f"Request {pending.request_id} ({method}) timed out after {wait}s") from None
        except KeyboardInterrupt:
            self._pending.pop(pending.request_id, None)
            raise

    def notify(self, method: str, params: Optional[dict] = None) -> None:
        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        self.transport.send(message)

    def list_tools(self) -> List[dict]:
        """Return the server's tool descriptions (`tools/list`)."""
        result = self.request("tools/list", {})
        tools = result.get("tools") if isinstance(result, dict) else None
        return list(tools or [])

    def call_tool(self, name: str, arguments: Dict[str, Any], *, timeout: Any = _DEFAULT) -> dict:
        """Invoke a tool (`tools/call`) and return its result object.

        The result carries its own ``isError`` flag and ``content`` list;
        only protocol and channel failures raise.
        """
        result = self.request("tools/call", {"name": name, "arguments": arguments}, timeout=timeout)
        return result if isinstance(result, dict) else {"isError": False, "content": []}

    def _send(self, message: dict) -> PendingRequest:
        message = dict(message)
        message.setdefault("jsonrpc", "2.0")
        request_id = message.get("id")
        if request_id is None:
            request_id = next(self._ids)
            while request_id in self._pending:
                request_id = next(self._ids)
            message["id"] = request_id
        elif request_id in self._pending:
            raise ValueError(f"Request id {request_id!r} is already outstanding")

        pending = PendingRequest(request_id=request_id, method=str(message.get("method", "")))
        if self._closed_error is not None:
            pending.future.set_exception(self._closed_error)
            return pending

        self._pending[request_id] = pending
        try:
            self.transport.send(message)
        except TransportError as e:
            if self._pending.pop(request_id, None) is not None:
                pending.future.set_exception(e)
        return pending

    # ---------------- inbound ----------------
    def _dispatch(self, message: dict) -> None:
        """Route one inbound message; runs on the transport's reader thread."""
        if "method" in message:
            if "id" in message:
                self._reject_server_request(message)
            else:
                logger.debug("MCP notification: %s", message.get("method"))
            return

        request_id = message.get("id")
        # pop() makes resolution single-shot even if the close path races us
        pending = self._pending.pop(request_id, None)
        if pending is None:
            logger.warning("Dropping MCP response with unknown id %r", request_id)
            return

        error = message.get("error")
        if error is not None:
            pending.future.set_exception(RemoteError.from_payload(error))
        else:
            pending.future.set_result(message.get("result"))

    def _reject_server_request(self, message: dict) -> None:
        logger.debug("Rejecting server request %s", message.get("method"))
        try:
            self.transport.send({
                "jsonrpc": "2.0",
                "id": message["id"],
                "error": {"code": METHOD_NOT_FOUND, "message": f"Method not found: {message.get('method')}"},
            })
        except TransportError as e:
            logger.warning("Could not answer server request: %s", e)

    def _on_transport_closed(self, error: Optional[TransportError]) -> None:
        self._closed_error = error or TransportError("MCP transport closed")
        while self._pending:
            try:
                _, pending = self._pending.popitem()
            except KeyError:
                break
            pending.future.set_exception(self._closed_error)
