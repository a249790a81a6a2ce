"""Conversation history management."""

from typing import List


class ConversationManager:
    """Append-only conversation history shared by every model invocation."""

    def __init__(self):
        self.history: List[dict] = []

    def add_user_message(self, content: str) -> None:
        """Add a user message to conversation history."""
        self.history.append({"role": "user", "content": content})

    def add_assistant_message(self, content: str) -> None:
        """Add an assistant message to conversation history."""
        if content and content.strip():  # Only add non-empty responses
            self.history.append({"role": "assistant", "content": content})

    def add_tool_result(self, content: str) -> None:
        """Add a tool output (or tool error) turn; the model sees it as user input."""
        self.history.append({"role": "user", "content": content, "tool_result": True})

    def clear_history(self) -> None:
        """Clear the conversation history."""
        self.history = []

    def truncate(self, length: int) -> None:
        """Drop every turn after the first ``length``."""
        del self.history[length:]

    def get_history(self) -> List[dict]:
        """Snapshot of the history to send with a model request."""
        return list(self.history)
