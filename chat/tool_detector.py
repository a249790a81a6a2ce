"""Incremental detection of fenced JSON tool calls in a model's token stream.

The model asks for a tool by writing a block like::

    ```json
    {"name": "read_file", "arguments": {"path": "notes.txt"}}
    ```

Tokens are fed one at a time. A block is examined as soon as its closing
fence has arrived, so the caller can stop the stream without waiting for the
model to finish. Each fenced block is examined once.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

OPEN_FENCE = "```json"
CLOSE_FENCE = "```"


class MalformedToolCallError(ValueError):
    """A fenced block could not be read as a tool call."""


class DetectorState(str, Enum):
    SCANNING = "scanning"
    DISPATCHING = "dispatching"
    DONE = "done"


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


def parse_tool_call(body: str) -> Optional[ToolCall]:
    """Interpret the text between the fences.

    Returns:
        ToolCall, or None when the JSON is not shaped like a tool call
        (an incidental code sample, for instance)

    Raises:
        MalformedToolCallError: invalid JSON, or a call with unusable fields
    """
    try:
        obj = json.loads(body)
    except json.JSONDecodeError as e:
        raise MalformedToolCallError(f"Error parsing JSON: {e}") from e

    if not isinstance(obj, dict) or "name" not in obj or "arguments" not in obj:
        return None
    return _build_call(obj.get("name"), obj.get("arguments"))


def _build_call(name: Any, arguments: Any) -> ToolCall:
    if isinstance(arguments, str):
        # Some models double-encode the arguments object
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as e:
            raise MalformedToolCallError(f"Tool arguments are not valid JSON: {e}") from e
    if arguments is None:
        arguments = {}
    if not isinstance(name, str) or not name.strip():
        raise MalformedToolCallError(f"Tool name must be a non-empty string, got {name!r}")
    if not isinstance(arguments, dict):
        raise MalformedToolCallError(f"Tool arguments must be an object, got {type(arguments).__name__}")
    return ToolCall(name=name.strip(), arguments=arguments)


class ToolCallDetector:
    """Watches one model invocation's output for a tool call.

    SCANNING until either a qualifying block is seen (DISPATCHING, with
    ``tool_call`` set) or the stream ends (DONE). On dispatch ``text`` ends
    at the closing fence; tokens fed after DISPATCHING are ignored.
    """

    def __init__(self):
        self.state = DetectorState.SCANNING
        self.tool_call: Optional[ToolCall] = None
        self.errors: List[MalformedToolCallError] = []
        self._buffer = ""
        self._scan_from = 0

    @property
    def text(self) -> str:
        """Everything accepted so far in this invocation."""
        return self._buffer

    def feed(self, token: str) -> DetectorState:
        if self.state is not DetectorState.SCANNING or not token:
            return self.state
        self._buffer += token
        self._scan()
        return self.state

    def offer(self, name: Any, arguments: Any) -> DetectorState:
        """Accept a tool call the provider delivered as structured data."""
        if self.state is not DetectorState.SCANNING:
            return self.state
        try:
            call = _build_call(name, arguments)
        except MalformedToolCallError as e:
            self._record_error(e)
            return self.state
        self._dispatch(call)
        return self.state

    def finish(self) -> DetectorState:
        """Mark the end of the stream."""
        if self.state is DetectorState.SCANNING:
            self.state = DetectorState.DONE
        return self.state

    def _scan(self) -> None:
        while self.state is DetectorState.SCANNING:
            start = self._buffer.find(OPEN_FENCE, self._scan_from)
            if start < 0:
                return
            body_start = start + len(OPEN_FENCE)
            end = self._buffer.find(CLOSE_FENCE, body_start)
            if end < 0:
                return  # wait for the closing fence
            body = self._buffer[body_start:end]
            self._scan_from = end + len(CLOSE_FENCE)

            try:
                call = parse_tool_call(body)
            except MalformedToolCallError as e:
                self._record_error(e)
                continue
            if call is not None:
                # text after the closing fence belongs to the discarded remainder
                self._buffer = self._buffer[:self._scan_from]
                self._dispatch(call)

    def _dispatch(self, call: ToolCall) -> None:
        self.tool_call = call
        self.state = DetectorState.DISPATCHING

    def _record_error(self, error: MalformedToolCallError) -> None:
        logger.warning("Ignoring malformed tool call: %s", error)
        self.errors.append(error)
