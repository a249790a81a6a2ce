#!/usr/bin/env python3
"""
mcp-chat: streaming chat CLI that lets a local model call MCP server tools

Features
- Streams model output as it arrives
- Spawns an MCP tool server on stdio and lists its tools once per session
- Detects ```json {"name": ..., "arguments": ...}``` blocks in the stream,
  runs the tool and feeds its output back to the model
- Bounded tool rounds per input; Ctrl+C aborts a stream, /exit leaves

Requirements
    pip install rich requests prompt_toolkit
"""
from __future__ import annotations

import argparse
import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.text import Text

from chat.session import ChatSession
from config import AgentConfig
from transport import McpClientError, McpStdioClient
from util.input_helpers import parse_command, should_exit_from_input
from util.line_input import LineReader

console = Console()


def setup_logging(level: str = "WARNING") -> None:
    """Route log records through rich on the shared console."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def build_config(args: argparse.Namespace) -> AgentConfig:
    return AgentConfig.from_env(
        model=args.model,
        host=args.host,
        script_path=args.script,
        allowed_directories=tuple(args.allow) if args.allow else None,
        server_command=args.server_command,
        max_tool_rounds=args.max_tool_rounds,
        request_timeout=args.request_timeout,
    )


def handle_command(cmd: str, session: ChatSession) -> bool:
    """Handle a slash command locally. Returns True when consumed."""
    if cmd == "/clear":
        session.conversation.clear_history()
        console.print("[dim]History cleared[/dim]")
        return True
    if cmd == "/tools":
        if not session.tools:
            console.print("[dim]No tools available[/dim]")
        for tool in session.tools:
            console.print(Text.assemble((tool.name, "bold cyan"), " ", (tool.description, "dim")))
        return True
    if cmd == "/help":
        console.print("[dim]/tools list tools • /clear reset history • /exit leave[/dim]")
        return True
    return False


def repl(session: ChatSession, reader: LineReader) -> int:
    """Interactive chat loop; one input is answered completely before the next.

    Returns: Exit code (0 for success)

    Raises:
        McpClientError: when the tool server fails (fatal for the session)
    """
    console.rule(f"[bold cyan]MCP Chat • {escape(session.config.model)}")
    console.print(Text(f"CLI Chat App started! Using model: {session.config.model}", style="dim"))
    console.print(Text("Type '/help' for commands or '/exit' to leave. Ctrl+C aborts a response.", style="dim"))

    while True:
        user_input = reader.read()
        if should_exit_from_input(user_input):
            console.print("[dim]Exiting CLI Chat App. Goodbye![/dim]")
            return 0
        if user_input is None:
            continue

        cmd = parse_command(user_input)
        if cmd and handle_command(cmd, session):
            continue

        try:
            result = session.respond(user_input)
        except KeyboardInterrupt:
            console.print("\n[dim]Aborted[/dim]")
            continue

        if result.error:
            console.print(f"[red]Error[/red]: {escape(result.error)}")
        elif not result.text.strip():
            console.print("[dim]Note: Empty response received[/dim]")


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point with argument parsing."""
    parser = argparse.ArgumentParser(prog="mcp-chat", description="Chat with a local model that can call MCP server tools")
    parser.add_argument("--model", help="Model name (env MCP_CHAT_MODEL)")
    parser.add_argument("--host", help="Chat service URL (env OLLAMA_HOST)")
    parser.add_argument("--script", help="MCP server entry script (env MCP_SERVER_SCRIPT)")
    parser.add_argument("--allow", action="append", metavar="DIR", help="Directory the server may access; repeatable (env MCP_ALLOWED_DIRS)")
    parser.add_argument("--server-command", help="Executable that runs the script (env MCP_SERVER_COMMAND, default deno)")
    parser.add_argument("--max-tool-rounds", type=int, help="Tool calls allowed per input (default 8)")
    parser.add_argument("--request-timeout", type=float, help="Seconds to wait for a tool result (default 120)")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default WARNING)")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    try:
        config = build_config(args)
    except ValueError as e:
        parser.error(str(e))

    client = McpStdioClient.from_config(config)
    try:
        client.start()
        session = ChatSession(config, client, console=console)
        session.load_tools()
        return repl(session, LineReader())
    except McpClientError as e:
        console.print(f"[red]Error[/red]: {escape(str(e))}")
        return 1
    finally:
        client.stop()


if __name__ == "__main__":
    raise SystemExit(main())
