"""
Line input for the chat REPL using prompt-toolkit.

Enter submits, Ctrl+J inserts a new line, Up/Down walk the in-memory history
of previous inputs.
"""
from __future__ import annotations

from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings

from util.input_helpers import EXIT_SIGNAL


def _create_key_bindings() -> KeyBindings:
    bindings = KeyBindings()

    @bindings.add('c-j', eager=True)
    def handle_ctrl_j_new_line(event):
        """Handle Ctrl+J key press - add a new line to current input."""
        event.current_buffer.insert_text('\n')

    return bindings


class LineReader:
    """Reads one user input at a time; returns EXIT_SIGNAL on Ctrl+C / Ctrl+D."""

    def __init__(self, prompt_text: str = "You: "):
        self.prompt_text = prompt_text
        self.session = PromptSession(history=InMemoryHistory(), key_bindings=_create_key_bindings())

    def read(self) -> Optional[str]:
        """
        Prompt for input.

        Returns:
            The entered text, None for blank input, or EXIT_SIGNAL
        """
        try:
            text = self.session.prompt(HTML(f"<ansigreen><b>{self.prompt_text}</b></ansigreen>"))
        except (KeyboardInterrupt, EOFError):
            return EXIT_SIGNAL
        if not text or not text.strip():
            return None
        return text
