#!/usr/bin/env python3
"""
Tests for the chat session's tool loop with a scripted model and tool server.
"""

import io
import json

import pytest
from rich.console import Console

from chat.session import ChatSession
from config import AgentConfig
from streaming_client import StreamingClient
from transport import RemoteError, TransportError

TOOLS = [{
    "name": "x",
    "description": "Test tool",
    "inputSchema": {"type": "object", "properties": {"a": {"type": "number", "minimum": 0}}, "required": ["a"]},
}]


def _chunk(text, done=False):
    return json.dumps({"model": "qwen", "message": {"role": "assistant", "content": text}, "done": done})


def _call_tokens(name="x", arguments=None):
    block = "```json\n" + json.dumps({"name": name, "arguments": arguments or {}}) + "\n```"
    # split into small pieces like a real token stream
    return [_chunk("Using a tool.\n")] + [_chunk(block[i:i + 3]) for i in range(0, len(block), 3)]


def _answer_tokens(text):
    return [_chunk(text), _chunk("", done=True)]


class FakeMcp:
    def __init__(self, results=None, error=None):
        self.results = list(results or [])
        self.error = error
        self.calls = []

    def list_tools(self):
        return TOOLS

    def call_tool(self, name, arguments):
        self.calls.append((name, arguments))
        if self.error:
            raise self.error
        return self.results.pop(0) if self.results else {"isError": False, "content": [{"text": "ok"}]}


class ScriptedModel:
    """Replaces StreamingClient.iter_stream_lines with one scripted response per call."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.payloads = []

    def __call__(self, url, json=None, params=None, timeout=None, session=None):
        self.payloads.append(json)
        frames = self.responses.pop(0)
        for line in frames:
            yield line


def make_session(responses, mcp=None, console=None, **config):
    model = ScriptedModel(responses)
    streaming = StreamingClient()
    streaming.iter_stream_lines = model
    session = ChatSession(
        AgentConfig(model="qwen", **config),
        mcp or FakeMcp(),
        streaming_client=streaming,
        console=console,
    )
    session.load_tools()
    return session, model


def test_tool_round_trip_appends_output_turn():
    mcp = FakeMcp(results=[{"isError": False, "content": [{"text": "ok"}]}])
    session, model = make_session([_call_tokens("x", {"a": 1}), _answer_tokens("All done.")], mcp)

    result = session.respond("run x")

    assert mcp.calls == [("x", {"a": 1})]
    assert result.text == "All done."
    contents = [m["content"] for m in session.conversation.history]
    assert contents == ["run x", "Tool x output:\nok", "All done."]
    assert [m["role"] for m in session.conversation.history] == ["user", "user", "assistant"]


def test_every_invocation_sees_full_history_and_tools():
    session, model = make_session([_call_tokens(), _answer_tokens("fine")])
    session.respond("go")

    first, second = model.payloads
    assert [m["content"] for m in first["messages"]] == ["go"]
    assert [m["content"] for m in second["messages"]] == ["go", "Tool x output:\nok"]
    params = second["tools"][0]["function"]["parameters"]
    assert params["properties"]["a"] == {"type": "number"}
    assert params["required"] == ["a"]


def test_multiple_text_items_are_joined():
    mcp = FakeMcp(results=[{"isError": False, "content": [{"text": "one"}, {"text": "two"}]}])
    session, _ = make_session([_call_tokens(), _answer_tokens("ok")], mcp)
    session.respond("go")
    assert session.conversation.history[1]["content"] == "Tool x output:\none\ntwo"


def test_tool_error_result_becomes_error_turn():
    mcp = FakeMcp(results=[{"isError": True, "content": [{"text": "it broke"}]}])
    session, _ = make_session([_call_tokens(), _answer_tokens("Sorry.")], mcp)

    session.respond("go")
    assert session.conversation.history[1]["content"] == "Tool x error: it broke"


def test_remote_error_becomes_error_turn():
    mcp = FakeMcp(error=RemoteError(-32602, "Unknown tool: x"))
    session, _ = make_session([_call_tokens(), _answer_tokens("Let me retry differently.")], mcp)

    result = session.respond("go")
    assert session.conversation.history[1]["content"] == "Tool x error: Unknown tool: x"
    assert result.text == "Let me retry differently."


def test_transport_error_is_fatal():
    mcp = FakeMcp(error=TransportError("MCP server exited with code 1"))
    session, _ = make_session([_call_tokens()], mcp)

    with pytest.raises(TransportError):
        session.respond("go")


def test_max_tool_rounds_fails_closed():
    session, _ = make_session([_call_tokens() for _ in range(3)], max_tool_rounds=2)

    result = session.respond("loop forever")

    assert len(session.mcp_client.calls) == 2
    assert result.text == "Maximum tool rounds (2) exceeded; stopping."
    last = session.conversation.history[-1]
    assert last == {"role": "assistant", "content": "Maximum tool rounds (2) exceeded; stopping."}


def test_zero_tool_rounds_never_dispatches():
    session, model = make_session([_call_tokens()], max_tool_rounds=0)
    session.respond("go")
    assert session.mcp_client.calls == []
    assert "tools" not in model.payloads[0]


def _interrupted():
    yield _chunk("Partial answ")
    raise KeyboardInterrupt


def test_interrupt_drops_the_unanswered_input():
    session, _ = make_session([_answer_tokens("Hi."), _call_tokens(), _interrupted()])
    session.respond("hello")

    with pytest.raises(KeyboardInterrupt):
        session.respond("do something slow")

    assert session.conversation.history == [
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "Hi."},
    ]
    assert len(session.mcp_client.calls) == 1


def test_model_error_adds_no_assistant_turn():
    session, _ = make_session([['{"error": "model not found"}']])

    result = session.respond("hello")
    assert result.error == "Model error: model not found"
    assert session.conversation.history == [{"role": "user", "content": "hello"}]


def test_plain_answer_without_tools():
    session, _ = make_session([_answer_tokens("Hi there!")])
    result = session.respond("hello")

    assert result.tool_call is None
    assert session.conversation.history[-1] == {"role": "assistant", "content": "Hi there!"}
    assert session.mcp_client.calls == []


def test_console_shows_stream_and_tool_use():
    buf = io.StringIO()
    console = Console(file=buf, width=120, color_system=None)
    session, _ = make_session([_call_tokens(), _answer_tokens("Finished.")], console=console)

    session.respond("go")
    out = buf.getvalue()
    assert "LLM Response: " in out
    assert "Using x tool" in out
    assert "Finished." in out
