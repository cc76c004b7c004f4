from __future__ import annotations

import asyncio
import logging
from typing import Any

from .core.coordinator import CONNECTED_NOTE, TurnCoordinator
from .core.ports import SessionTransport


class SessionRunner:
    """Pumps transport chunks into a coordinator, one task per chunk.

    Tasks are created in arrival order and each runs synchronously up to its
    first await, so the coordinator sees chunks in the order they arrived.
    """

    def __init__(
        self,
        transport: SessionTransport,
        coordinator: TurnCoordinator,
        *,
        initial_wait_seconds: float = 5.0,
        connect_note: str = CONNECTED_NOTE,
        logger: logging.Logger | None = None,
    ):
        self._transport = transport
        self._coordinator = coordinator
        self._initial_wait = initial_wait_seconds
        self._connect_note = connect_note
        self._logger = logger or logging.getLogger(__name__)
        self._tasks: set[asyncio.Task[Any]] = set()
        self.chunks_received = 0

    def _dispatch(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._logger.error("Turn task failed", exc_info=task.exception())

    async def run(self) -> None:
        await self._transport.connect()
        stream = self._transport.chunks().__aiter__()
        try:
            first = asyncio.ensure_future(stream.__anext__())
            done, _ = await asyncio.wait({first}, timeout=self._initial_wait)
            if not done:
                self._logger.info("No banner after %.1fs; starting the agent anyway", self._initial_wait)
                self._dispatch(self._coordinator.kickoff(self._connect_note))
            try:
                chunk = await first
            except StopAsyncIteration:
                return
            self._receive(chunk)

            async for chunk in stream:
                self._receive(chunk)
        finally:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await self._transport.close()

    def _receive(self, chunk: str) -> None:
        self.chunks_received += 1
        self._logger.debug("Session chunk %d (%d chars)", self.chunks_received, len(chunk))
        self._dispatch(self._coordinator.on_session_text(chunk))
