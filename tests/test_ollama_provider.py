import json

from providers import get_provider
from providers.ollama import build_payload, map_events


def test_get_provider_ollama():
    assert get_provider("Ollama").map_events is map_events


def test_build_payload_copies_role_and_content_only():
    history = [
        {"role": "user", "content": "hi"},
        {"role": "user", "content": "Tool x output:\nok", "tool_result": True},
    ]
    tools = [{"type": "function", "function": {"name": "x"}}]
    body = build_payload(history, model="qwen2.5-coder:7b", tools=tools)

    assert body["model"] == "qwen2.5-coder:7b"
    assert body["stream"] is True
    assert body["tools"] == tools
    assert body["messages"][1] == {"role": "user", "content": "Tool x output:\nok"}


def test_build_payload_without_tools():
    body = build_payload([{"role": "user", "content": "hi"}], model="m", tools=[])
    assert "tools" not in body


def test_map_events_text_and_tokens():
    lines = [
        '{"model":"qwen","message":{"role":"assistant","content":"Hel"},"done":false}',
        "not json",
        '{"model":"qwen","message":{"role":"assistant","content":"lo"},"done":false}',
        '{"model":"qwen","message":{"role":"assistant","content":""},"done":true,"prompt_eval_count":10,"eval_count":5}',
        '{"model":"qwen","message":{"content":"after done"},"done":false}',
    ]
    events = list(map_events(iter(lines)))
    assert events == [
        ("model", "qwen"),
        ("text", "Hel"),
        ("text", "lo"),
        ("tokens", "15|10|5"),
        ("done", None),
    ]


def test_map_events_native_tool_calls():
    line = json.dumps({
        "model": "qwen",
        "message": {"content": "", "tool_calls": [{"function": {"name": "read_file", "arguments": {"path": "a"}}}]},
        "done": False,
    })
    events = list(map_events(iter([line])))
    assert events[0] == ("model", "qwen")
    kind, value = events[1]
    assert kind == "tool_call"
    assert json.loads(value) == {"name": "read_file", "arguments": {"path": "a"}}


def test_map_events_error_stops():
    events = list(map_events(iter(['{"error":"model not found"}', '{"message":{"content":"x"}}'])))
    assert events == [("error", "model not found")]
