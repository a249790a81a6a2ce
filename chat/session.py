"""Chat session orchestration: model invocations and the tool-call loop."""

from __future__ import annotations

import logging
from typing import List, Optional

from rich.console import Console
from rich.text import Text

from chat.conversation import ConversationManager
from chat.tool_detector import ToolCallDetector
from chat.tool_workflow import process_tool_execution
from config import AgentConfig
from providers import get_provider
from streaming_client import StreamingClient, StreamResult
from tools.definitions import ToolDefinition, get_tool_names, load_tool_definitions, to_function_schemas
from tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


class ChatSession:
    """Drives one conversation against the model and the MCP tool server.

    Each user input is answered by repeated model invocations: whenever the
    model's output contains a tool call, the call is executed, its output is
    appended to the history and the model is asked again, up to
    ``config.max_tool_rounds`` calls per input.
    """

    def __init__(self, config: AgentConfig, mcp_client, *, provider=None,
                 streaming_client: Optional[StreamingClient] = None,
                 conversation: Optional[ConversationManager] = None,
                 tool_executor: Optional[ToolExecutor] = None,
                 console: Optional[Console] = None):
        self.config = config
        self.mcp_client = mcp_client
        self.provider = provider or get_provider("ollama")
        self.streaming_client = streaming_client or StreamingClient(timeout=config.stream_timeout)
        self.conversation = conversation or ConversationManager()
        self.tool_executor = tool_executor or ToolExecutor(mcp_client)
        self.console = console
        self.tools: List[ToolDefinition] = []
        self._function_schemas: List[dict] = []

    def load_tools(self) -> List[ToolDefinition]:
        """Fetch the server's tools once and convert them for the model."""
        self.tools = load_tool_definitions(self.mcp_client.list_tools())
        self._function_schemas = to_function_schemas(self.tools)
        logger.info("Loaded %d tools: %s", len(self.tools), ", ".join(get_tool_names(self.tools)))
        return self.tools

    def send_message(self) -> StreamResult:
        """Run one model invocation over the full history with a fresh detector.

        Tools are not advertised when max_tool_rounds is 0.
        """
        payload = self.provider.build_payload(
            self.conversation.get_history(),
            model=self.config.model,
            tools=self._function_schemas if self.config.max_tool_rounds > 0 else [],
        )
        if self.console is not None:
            self.console.print(Text("LLM Response: ", style="cyan"), end="", soft_wrap=True)
        result = self.streaming_client.send_message(
            self.config.chat_url,
            payload,
            mapper=self.provider.map_events,
            detector=ToolCallDetector(),
            on_text=self._echo if self.console is not None else None,
        )
        if self.console is not None:
            self.console.print()
        return result

    def respond(self, user_input: str) -> StreamResult:
        """Answer one user input, executing tool calls until a final answer.

        A KeyboardInterrupt removes every turn this input added before it
        propagates, so the history never holds an unanswered user turn.

        Raises:
            TransportError: if the tool server fails mid-call (fatal)
        """
        mark = len(self.conversation.history)
        self.conversation.add_user_message(user_input)
        try:
            return self._run_tool_loop()
        except KeyboardInterrupt:
            self.conversation.truncate(mark)
            raise

    def _run_tool_loop(self) -> StreamResult:
        rounds = 0
        while True:
            result = self.send_message()
            if result.error:
                return result

            if result.tool_call is None:
                self.conversation.add_assistant_message(result.text)
                return result

            if rounds >= self.config.max_tool_rounds:
                notice = f"Maximum tool rounds ({self.config.max_tool_rounds}) exceeded; stopping."
                logger.warning(notice)
                self.conversation.add_assistant_message(notice)
                if self.console is not None:
                    self.console.print(Text(notice, style="yellow"))
                return StreamResult(text=notice, tokens=result.tokens, model_name=result.model_name)

            rounds += 1
            call = result.tool_call
            if self.console is not None:
                self.console.print(Text(f"⚙ Using {call.name} tool...", style="yellow"))
            outcome = process_tool_execution(call, self.conversation, self.tool_executor)
            if self.console is not None:
                if "error" in outcome:
                    self.console.print(Text(f"Tool error: {outcome['error']}", style="red"))
                else:
                    self.console.print(Text(f"✓ {call.name} done", style="green"))

    def _echo(self, chunk: str) -> None:
        self.console.print(Text(chunk), end="", soft_wrap=True)
