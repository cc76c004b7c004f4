from __future__ import annotations

from typing import AsyncIterator, Protocol, Sequence

from .types import Message


class AgentPort(Protocol):
    async def complete(self, messages: Sequence[Message]) -> str:
        ...


class SessionPort(Protocol):
    async def send(self, text: str) -> None:
        ...


class SessionTransport(SessionPort, Protocol):
    async def connect(self) -> None:
        ...

    def chunks(self) -> AsyncIterator[str]:
        ...

    async def close(self) -> None:
        ...


class ApprovalPort(Protocol):
    async def approve(self, directive: str) -> bool:
        ...


class OperatorPort(Protocol):
    def show(self, label: str, text: str) -> None:
        ...

    def warn(self, text: str) -> None:
        ...
