"""Newline-delimited JSON-RPC framing over a child process's stdio pipes."""

from __future__ import annotations

import json
import logging
import subprocess
import threading
from typing import Callable, Optional

from transport.errors import TransportError, TransportStartError
from transport.process import ChildProcessChannel

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict], None]
CloseHandler = Callable[[Optional[TransportError]], None]

# How long start() gives a freshly spawned process to crash before calling it ready
STARTUP_PROBE_SECONDS = 0.1
READER_JOIN_TIMEOUT = 5.0


class _StdoutReader(threading.Thread):
    """Background thread that turns stdout lines into messages."""

    def __init__(self, transport: "StdioTransport"):
        super().__init__(name="mcp-stdout-reader", daemon=True)
        self.transport = transport

    def run(self):
        stream = self.transport.channel.stdout
        error: Optional[Exception] = None
        try:
            for raw in iter(stream.readline, b""):
                self.transport._handle_line(raw)
        except (OSError, ValueError) as e:
            error = e
        self.transport._reader_finished(error)


class StdioTransport:
    """Frames one JSON object per line on the channel's pipes.

    Inbound messages are delivered to the single handler installed with
    ``set_message_handler``. When the stream ends the close handler is called
    once: with ``None`` after a requested stop, or with a ``TransportError``
    when the process went away on its own.
    """

    def __init__(self, channel: ChildProcessChannel):
        channel.bind(self)
        self.channel = channel
        self._on_message: Optional[MessageHandler] = None
        self._on_close: Optional[CloseHandler] = None
        self._reader: Optional[_StdoutReader] = None
        self._write_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = False
        self._started = False
        self._stopping = False

    def set_message_handler(self, handler: Optional[MessageHandler]) -> None:
        self._on_message = handler

    def set_close_handler(self, handler: Optional[CloseHandler]) -> None:
        self._on_close = handler

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Spawn the process (if needed) and begin reading its output.

        Raises:
            SpawnError: if the executable cannot be launched
            TransportStartError: if the process exits straight away
        """
        if self._started:
            raise RuntimeError("Transport already started")
        self._started = True
        if not self.channel.started:
            self.channel.start()

        try:
            code = self.channel.wait(timeout=STARTUP_PROBE_SECONDS)
        except subprocess.TimeoutExpired:
            code = None  # still running
        if code is not None:
            self._closed = True
            raise TransportStartError(f"MCP server exited during startup with code {code}")

        self._reader = _StdoutReader(self)
        self._reader.start()

    def send(self, message: dict) -> None:
        """Serialize and write one message.

        Raises:
            TransportError: if the stream is closed or the write fails
        """
        if self._closed or not self._started:
            raise TransportError("Transport is not open")
        data = (json.dumps(message, ensure_ascii=False) + "\n").encode("utf-8")
        with self._write_lock:
            try:
                stdin = self.channel.stdin
                stdin.write(data)
                stdin.flush()
            except (OSError, ValueError) as e:
                raise TransportError(f"Failed to write to MCP server: {e}") from e

    def stop(self) -> None:
        """Close the pipes and terminate the process; safe to call repeatedly."""
        first_stop = not self._stopping
        self._stopping = True
        if self._started and first_stop:
            try:
                self.channel.stdin.close()
            except (OSError, ValueError, RuntimeError):
                pass  # already closed
        self.channel.stop()
        reader = self._reader
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=READER_JOIN_TIMEOUT)
            if reader.is_alive():
                logger.warning("MCP stdout reader did not exit within %.1fs", READER_JOIN_TIMEOUT)
        # a reader still blocked in readline holds the stream's lock
        if self._started and (reader is None or reader is threading.current_thread() or not reader.is_alive()):
            try:
                self.channel.stdout.close()
            except (OSError, ValueError, RuntimeError):
                pass
        self._fire_close(None)

    # ---------------- reader thread callbacks ----------------
    def _handle_line(self, raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            return
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Ignoring non-JSON line from MCP server: %.200s", line)
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object message from MCP server: %.200s", line)
            return

        handler = self._on_message
        if handler is None:
            logger.debug("No handler installed; dropping message %s", message.get("id"))
            return
        try:
            handler(message)
        except Exception:
            logger.exception("MCP message handler failed")

    def _reader_finished(self, error: Optional[Exception]) -> None:
        if self._stopping or self.channel.stopping:
            self._fire_close(None)
            return

        try:
            code = self.channel.wait(timeout=READER_JOIN_TIMEOUT)
        except subprocess.TimeoutExpired:
            code = None
        if error is not None:
            reason = f"MCP server stream failed: {error}"
        elif code is None:
            reason = "MCP server closed its output stream"
        else:
            reason = f"MCP server exited with code {code}"
        logger.error(reason)
        self._fire_close(TransportError(reason))

    def _fire_close(self, error: Optional[TransportError]) -> None:
        with self._close_lock:
            if self._closed and self._on_close is None:
                return
            self._closed = True
            handler, self._on_close = self._on_close, None
        if handler is not None:
            handler(error)
