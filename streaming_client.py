"""StreamingClient for handling streamed chat responses."""

from __future__ import annotations

import json
import logging
from contextlib import closing
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional

import requests
from requests.exceptions import ConnectTimeout, ReadTimeout, RequestException

from chat.tool_detector import DetectorState, ToolCall, ToolCallDetector

logger = logging.getLogger(__name__)


@dataclass
class StreamResult:
    """Result from streaming one model invocation."""
    text: str
    tokens: int = 0
    tool_call: Optional[ToolCall] = None
    model_name: Optional[str] = None
    error: Optional[str] = None


@dataclass
class StreamEvent:
    """Individual event from the stream."""
    kind: str
    value: Optional[str] = None


class StreamingClient:
    """Streams chat responses and watches them for tool calls."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 300.0):
        self.session = session
        self.timeout = timeout

    def iter_stream_lines(
        self,
        url: str,
        *,
        json: Optional[dict] = None,
        params: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> Iterator[str]:
        """Yield non-empty lines from a streamed POST response.

        Works for NDJSON bodies and strips a leading "data:" prefix so SSE
        endpoints work too.
        """
        http = session or self.session or requests.Session()
        with http.post(url, json=json, params=params, stream=True, timeout=timeout or self.timeout) as r:
            r.raise_for_status()
            for raw in r.iter_lines(decode_unicode=True):
                if not raw:
                    continue
                yield raw[5:].lstrip() if raw.startswith("data:") else raw

    def send_message(
        self,
        url: str,
        payload: dict,
        *,
        mapper,
        detector: Optional[ToolCallDetector] = None,
        on_text: Optional[Callable[[str], None]] = None,
    ) -> StreamResult:
        """Send a chat request and stream the response.

        Reading stops as soon as the detector reports a tool call; the rest
        of the model's output for this invocation is dropped, including any
        text after the closing fence. Ctrl+C propagates as KeyboardInterrupt
        and closes the response.

        Args:
            url: The chat endpoint URL
            payload: The request payload
            mapper: Provider-specific event mapper function
            detector: Tool-call detector for this invocation (a fresh one if omitted)
            on_text: Called with the text the detector accepted from each chunk

        Returns:
            StreamResult with the accumulated text and any detected tool call
        """
        detector = detector or ToolCallDetector()
        model_name: Optional[str] = None
        tokens = 0

        def result(**extra) -> StreamResult:
            return StreamResult(
                text=detector.text,
                tokens=tokens,
                tool_call=detector.tool_call,
                model_name=model_name,
                **extra,
            )

        try:
            with closing(self._stream_events(url, payload, mapper)) as events:
                for event in events:
                    if event.kind == "model":
                        model_name = event.value or model_name

                    elif event.kind == "text":
                        before = len(detector.text)
                        detector.feed(event.value or "")
                        accepted = detector.text[before:]
                        if on_text and accepted:
                            on_text(accepted)

                    elif event.kind == "tool_call":
                        try:
                            call = json.loads(event.value or "{}")
                        except json.JSONDecodeError:
                            logger.warning("Ignoring undecodable native tool call: %.200s", event.value)
                            continue
                        detector.offer(call.get("name"), call.get("arguments"))

                    elif event.kind == "tokens":
                        total = (event.value or "").split("|")[0]
                        tokens = int(total) if total.isdigit() else 0

                    elif event.kind == "error":
                        return result(error=f"Model error: {event.value}")

                    elif event.kind == "done":
                        break

                    if detector.state is DetectorState.DISPATCHING:
                        break

        except (ReadTimeout, ConnectTimeout) as e:
            return result(error=f"Request timed out: {e}")
        except RequestException as e:
            return result(error=f"Network error: {e}")

        detector.finish()
        return result()

    def _stream_events(self, url: str, payload: dict, mapper) -> Iterator[StreamEvent]:
        """Stream and map provider events."""
        for kind, value in mapper(self.iter_stream_lines(url, json=payload)):
            yield StreamEvent(kind=kind, value=value)
