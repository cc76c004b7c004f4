from __future__ import annotations

import asyncio

from mud_agent.core.coordinator import CONNECTED_NOTE, TurnCoordinator
from mud_agent.core.transcript import Transcript
from mud_agent.core.types import Role
from mud_agent.runner import SessionRunner


class ScriptedTransport:
    def __init__(self, chunks, delay_first=0.0):
        self._chunks = list(chunks)
        self._delay_first = delay_first
        self.sent = []
        self.connected = False
        self.closed = False

    async def connect(self):
        self.connected = True

    async def chunks(self):
        if self._delay_first:
            await asyncio.sleep(self._delay_first)
        for chunk in self._chunks:
            yield chunk
            await asyncio.sleep(0)

    async def send(self, text):
        self.sent.append(text)

    async def close(self):
        self.closed = True


class EchoCommandAgent:
    def __init__(self):
        self.calls = []

    async def complete(self, messages):
        self.calls.append(list(messages))
        await asyncio.sleep(0)
        return "<command>look</command>"


def test_runner_feeds_chunks_in_order_and_closes_transport():
    async def run_test():
        transport = ScriptedTransport(["banner", "room one", "room two"])
        agent = EchoCommandAgent()
        coordinator = TurnCoordinator(agent, transport, Transcript("instruction"))
        runner = SessionRunner(transport, coordinator, initial_wait_seconds=1.0)

        await runner.run()

        assert transport.connected and transport.closed
        assert runner.chunks_received == 3
        texts = [m.content for m in coordinator.transcript.messages if m.role is Role.SESSION_TEXT]
        lines = [line for text in texts for line in text.split("\n")]
        assert lines + coordinator.pending == ["banner", "room one", "room two"]
        assert transport.sent

    asyncio.run(run_test())


def test_runner_kicks_off_when_no_banner_arrives():
    async def run_test():
        transport = ScriptedTransport([], delay_first=0.05)
        agent = EchoCommandAgent()
        coordinator = TurnCoordinator(agent, transport, Transcript("instruction"))
        runner = SessionRunner(transport, coordinator, initial_wait_seconds=0.01)

        await runner.run()

        assert agent.calls[0][-1].content == CONNECTED_NOTE
        assert transport.sent == ["look"]
        assert transport.closed

    asyncio.run(run_test())
