"""Input handling utilities."""

from typing import Optional

EXIT_SIGNAL = "__EXIT__"


def should_exit_from_input(user_input: Optional[str]) -> bool:
    """Check if user input indicates they want to exit."""
    if user_input == EXIT_SIGNAL:
        return True
    if user_input and user_input.strip().lower() == "/exit":
        return True
    return False


def parse_command(user_input: Optional[str]) -> Optional[str]:
    """Return the lower-cased slash command ("/clear", "/tools", ...) or None for chat text."""
    if not user_input:
        return None
    stripped = user_input.strip()
    if not stripped.startswith("/"):
        return None
    return stripped.split()[0].lower()
