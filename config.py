"""Static configuration for an mcp-chat session."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

DEFAULT_MODEL = "qwen2.5-coder:7b"
DEFAULT_HOST = "http://localhost:11434/"
DEFAULT_SCRIPT = "index.ts"
DEFAULT_SERVER_COMMAND = "deno"
DEFAULT_SERVER_ARGS: Tuple[str, ...] = ("run", "-A")
DEFAULT_MAX_TOOL_ROUNDS = 8
DEFAULT_REQUEST_TIMEOUT = 120.0


def _env_dirs() -> Tuple[str, ...]:
    raw = os.getenv("MCP_ALLOWED_DIRS", "")
    return tuple(p for p in raw.split(os.pathsep) if p)


@dataclass(frozen=True)
class AgentConfig:
    """Everything a session needs; passed explicitly, never read from globals."""
    model: str = DEFAULT_MODEL
    host: str = DEFAULT_HOST
    script_path: str = DEFAULT_SCRIPT
    allowed_directories: Tuple[str, ...] = ()
    server_command: str = DEFAULT_SERVER_COMMAND
    server_args: Tuple[str, ...] = DEFAULT_SERVER_ARGS
    max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS
    request_timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT
    start_timeout: float = 10.0
    stream_timeout: float = 300.0

    def __post_init__(self):
        if self.max_tool_rounds < 0:
            raise ValueError("max_tool_rounds must be >= 0")

    @property
    def chat_url(self) -> str:
        """Ollama chat endpoint derived from the host URL."""
        host = self.host if "://" in self.host else f"http://{self.host}"
        return host.rstrip("/") + "/api/chat"

    @classmethod
    def from_env(cls, **overrides) -> "AgentConfig":
        """Defaults from MCP_CHAT_MODEL, OLLAMA_HOST, MCP_SERVER_SCRIPT, MCP_ALLOWED_DIRS and MCP_SERVER_COMMAND."""
        values = dict(
            model=os.getenv("MCP_CHAT_MODEL", DEFAULT_MODEL),
            host=os.getenv("OLLAMA_HOST", DEFAULT_HOST),
            script_path=os.getenv("MCP_SERVER_SCRIPT", DEFAULT_SCRIPT),
            allowed_directories=_env_dirs(),
            server_command=os.getenv("MCP_SERVER_COMMAND", DEFAULT_SERVER_COMMAND),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
