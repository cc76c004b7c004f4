from __future__ import annotations

from typing import Optional

NAVIGATION_COMMANDS = ("/point", "/wayfind")
NO_CHARACTER_MESSAGE = "Navigation commands require a character to be selected."


def parse_navigation_command(directive: str | None) -> Optional[tuple[str, str]]:
    """Split ``/point market`` into ``("/point", "market")``.

    Returns ``None`` for anything that is not a navigation helper.
    """
    text = (directive or "").strip()
    if not text.startswith("/"):
        return None
    head, _, rest = text.partition(" ")
    command = head.lower()
    if command not in NAVIGATION_COMMANDS:
        return None
    return command, rest.strip()


def usage(command: str) -> str:
    return f"Usage: {command} <destination>"
