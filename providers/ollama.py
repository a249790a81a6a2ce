from __future__ import annotations

import json
from typing import Dict, Iterator, List, Optional, Tuple

Event = Tuple[str, Optional[str]]  # ("model"|"text"|"tool_call"|"tokens"|"error"|"done", value)


def build_payload(
    messages: List[dict], *, model: Optional[str] = None, tools: Optional[List[dict]] = None, temperature: Optional[float] = None, **_: dict
) -> dict:
    """Construct an Ollama `/api/chat` streaming payload.

    Args:
        messages: Conversation history as {"role", "content"} dicts
        model: Model name (e.g., "qwen2.5-coder:7b")
        tools: Function schemas (see tools.definitions.to_function_schemas)
        temperature: Optional sampling temperature

    Returns:
        Ollama-compatible request payload with `stream: true`
    """
    body: Dict = {
        "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
        "stream": True,
    }
    if model is not None:
        body["model"] = model
    if tools:
        body["tools"] = tools
    if temperature is not None:
        body["options"] = {"temperature": temperature}
    return body


def map_events(lines: Iterator[str]) -> Iterator[Event]:
    """Map Ollama NDJSON chat chunks to unified events.

    Emits:
    - ("model", name) on the first chunk carrying `model`
    - ("text", delta) for each non-empty `message.content`
    - ("tool_call", json) for each native `message.tool_calls` entry,
      serialized as {"name", "arguments"}
    - ("error", message) when the server reports an error, then stops
    - ("tokens", "total|prompt|completion") and ("done", None) on the final chunk
    """
    sent_model = False
    for data in lines:
        try:
            evt: Dict = json.loads(data)
        except json.JSONDecodeError:
            continue
        if not isinstance(evt, dict):
            continue

        if evt.get("error"):
            yield ("error", str(evt["error"]))
            return

        model = evt.get("model")
        if not sent_model and isinstance(model, str) and model:
            yield ("model", model)
            sent_model = True

        message = evt.get("message") or {}
        content = message.get("content")
        if isinstance(content, str) and content:
            yield ("text", content)

        for call in message.get("tool_calls") or []:
            fn = (call or {}).get("function") or {}
            if fn.get("name"):
                yield ("tool_call", json.dumps({"name": fn["name"], "arguments": fn.get("arguments", {})}))

        if evt.get("done"):
            prompt_tokens = int(evt.get("prompt_eval_count") or 0)
            completion_tokens = int(evt.get("eval_count") or 0)
            yield ("tokens", f"{prompt_tokens + completion_tokens}|{prompt_tokens}|{completion_tokens}")
            yield ("done", None)
            return
