from __future__ import annotations

import asyncio
import logging
from typing import Callable

_APPROVE_ANSWERS = {"", "y", "yes"}


class ConsoleOperator:
    """Operator display through logging, with an optional stdin approval gate."""

    def __init__(
        self,
        *,
        prompt: Callable[[str], str] = input,
        logger: logging.Logger | None = None,
    ):
        self._prompt = prompt
        self._logger = logger or logging.getLogger("mud_agent.operator")

    @staticmethod
    def format_panel(label: str, text: str) -> str:
        body = text.rstrip("\n") or "<blank line>"
        return f"=== {label} ===\n{body}"

    def show(self, label: str, text: str) -> None:
        self._logger.info(self.format_panel(label, text))

    def warn(self, text: str) -> None:
        self._logger.warning(text)

    async def approve(self, directive: str) -> bool:
        shown = directive.strip() or "<blank line>"
        try:
            answer = await asyncio.to_thread(self._prompt, f"Send {shown!r}? [Y/n] ")
        except EOFError:
            return True
        return answer.strip().lower() in _APPROVE_ANSWERS


class ConsoleSession:
    """Session transport that reads session text from a line source.

    Used by ``--dry-run``: nothing leaves the machine, directives are only
    logged. A blank input line ends one chunk; EOF ends the session.
    """

    def __init__(
        self,
        *,
        readline: Callable[[], str],
        logger: logging.Logger | None = None,
    ):
        self._readline = readline
        self._logger = logger or logging.getLogger(__name__)
        self.sent: list[str] = []

    async def connect(self) -> None:
        self._logger.info("Dry run: reading session text from the console")

    async def chunks(self):
        lines: list[str] = []
        while True:
            line = await asyncio.to_thread(self._readline)
            if not line:
                if lines:
                    yield "\n".join(lines)
                return
            line = line.rstrip("\n")
            if line.strip():
                lines.append(line)
                continue
            if lines:
                yield "\n".join(lines)
                lines = []

    async def send(self, text: str) -> None:
        self.sent.append(text)
        self._logger.info("Dry run, not sent: %r", text)

    async def close(self) -> None:
        return None
