from __future__ import annotations

import logging
from typing import Iterator

from .tokens import TokenCounter, word_token_count
from .types import Message, Role


class Transcript:
    """Ordered conversation log with a fixed instruction prefix.

    Message 0 is always the instruction and is never evicted. ``compact``
    trims the oldest other messages once the estimated cost exceeds
    ``budget``, stopping at ``SAFETY_MARGIN`` of the budget so the next turn
    does not immediately compact again.
    """

    SAFETY_MARGIN = 0.9

    def __init__(
        self,
        instruction: str,
        *,
        budget: int = 100_000,
        token_count: TokenCounter = word_token_count,
        logger: logging.Logger | None = None,
    ):
        if budget <= 0:
            raise ValueError("budget must be positive")
        self._messages: list[Message] = [Message(Role.INSTRUCTION, instruction)]
        self._budget = budget
        self._token_count = token_count
        self._logger = logger or logging.getLogger(__name__)

    @property
    def budget(self) -> int:
        return self._budget

    @property
    def instruction(self) -> str:
        return self._messages[0].content

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def append(self, role: Role, content: str) -> Message:
        if role is Role.INSTRUCTION:
            raise ValueError("transcript holds exactly one instruction message")
        message = Message(role, content)
        self._messages.append(message)
        return message

    def cost(self, message: Message) -> int:
        return self._token_count(message.content)

    def total_cost(self) -> int:
        return sum(self.cost(m) for m in self._messages)

    def compact(self) -> int:
        """Drop oldest non-instruction messages; return how many were removed."""
        total = self.total_cost()
        if total <= self._budget:
            return 0

        target = self._budget * self.SAFETY_MARGIN
        instruction, rest = self._messages[0], self._messages[1:]
        removed = 0
        while rest and total > target:
            dropped = rest.pop(0)
            total -= self.cost(dropped)
            removed += 1
            self._logger.debug("Dropped %s message (%d tokens)", dropped.role.value, self.cost(dropped))

        self._messages = [instruction, *rest]
        self._logger.debug(
            "Compacted transcript: removed=%d messages=%d tokens=%d budget=%d",
            removed,
            len(self._messages),
            total,
            self._budget,
        )
        return removed
