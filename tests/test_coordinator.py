from __future__ import annotations

import asyncio
import random

import pytest

from mud_agent.core.coordinator import (
    BLANK_DIRECTIVE,
    CoordinatorState,
    TurnCoordinator,
    TurnEvent,
    transition,
)
from mud_agent.core.errors import AgentCallError, SessionClosedError
from mud_agent.core.transcript import Transcript
from mud_agent.core.types import NewCharacterRequest, Role

TEMPLE = "Temple of Midgaard\nYou are in the temple.\n\n56H 118V 1499X 0.00% 0C T:60 Exits:NS"
GATE = "City Gate\nThe gate looms.\n\n56H 118V 1499X 0.00% 0C T:60 Exits:SW"


class StubAgent:
    def __init__(self, replies=None, default="<command>look</command>", yields=0, gate=None):
        self.replies = list(replies or [])
        self.default = default
        self.yields = yields
        self.gate = gate
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def complete(self, messages):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.calls.append(list(messages))
        try:
            if self.gate is not None:
                await self.gate.wait()
            for _ in range(self.yields):
                await asyncio.sleep(0)
        finally:
            self.active -= 1
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


class StubSession:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send(self, text):
        if self.fail:
            raise SessionClosedError("closed")
        self.sent.append(text)


class StubOperator:
    def __init__(self):
        self.shown = []
        self.warnings = []

    def show(self, label, text):
        self.shown.append((label, text))

    def warn(self, text):
        self.warnings.append(text)


class StubApproval:
    def __init__(self, answers):
        self.answers = list(answers)
        self.asked = []

    async def approve(self, directive):
        self.asked.append(directive)
        return self.answers.pop(0)


def _coordinator(agent, session=None, **kwargs):
    return TurnCoordinator(agent, session or StubSession(), Transcript("instruction"), **kwargs)


def _session_texts(coordinator):
    return [m.content for m in coordinator.transcript.messages if m.role is Role.SESSION_TEXT]


def test_transition_rejects_invalid_events():
    assert transition(CoordinatorState.IDLE, TurnEvent.TURN_STARTED) is CoordinatorState.REQUEST_IN_FLIGHT
    assert transition(CoordinatorState.AWAITING_ECHO, TurnEvent.ECHO_RECEIVED) is CoordinatorState.IDLE
    with pytest.raises(ValueError):
        transition(CoordinatorState.IDLE, TurnEvent.DIRECTIVE_SENT)
    with pytest.raises(ValueError):
        transition(CoordinatorState.REQUEST_IN_FLIGHT, TurnEvent.TURN_STARTED)


def test_chunks_during_request_are_queued_and_joined_in_order():
    async def run_test():
        gate = asyncio.Event()
        agent = StubAgent(gate=gate)
        session = StubSession()
        coordinator = _coordinator(agent, session)

        first = asyncio.create_task(coordinator.on_session_text("A"))
        await asyncio.sleep(0)
        assert coordinator.state is CoordinatorState.REQUEST_IN_FLIGHT

        assert await coordinator.on_session_text("B") is None
        assert await coordinator.on_session_text("C") is None
        assert coordinator.pending == ["B", "C"]
        assert len(agent.calls) == 1

        gate.set()
        result = await first
        assert result.status == "sent"
        assert session.sent == ["look"]
        assert coordinator.state is CoordinatorState.AWAITING_ECHO

        await coordinator.on_session_text("D")
        assert len(agent.calls) == 2
        assert agent.calls[1][-1].content == "B\nC\nD"
        assert coordinator.pending == []

    asyncio.run(run_test())


def test_single_flight_under_random_interleavings():
    async def run_scenario(seed):
        rng = random.Random(seed)
        agent = StubAgent(yields=rng.randint(1, 4))
        coordinator = _coordinator(agent)
        chunks = [f"chunk-{i}" for i in range(30)]

        tasks = []
        for chunk in chunks:
            tasks.append(asyncio.create_task(coordinator.on_session_text(chunk)))
            for _ in range(rng.randint(0, 5)):
                await asyncio.sleep(0)
        await asyncio.gather(*tasks)

        assert agent.max_active == 1
        delivered = [line for text in _session_texts(coordinator) for line in text.split("\n")]
        assert delivered + coordinator.pending == chunks

    async def run_test():
        for seed in range(25):
            await run_scenario(seed)

    asyncio.run(run_test())


def test_agent_failure_falls_back_to_look_without_retry():
    async def run_test():
        agent = StubAgent(replies=[AgentCallError("connection refused")])
        session = StubSession()
        operator = StubOperator()
        coordinator = _coordinator(agent, session, operator=operator)

        result = await coordinator.on_session_text("Welcome!")

        assert result.status == "fallback"
        assert session.sent == ["look"]
        assert len(agent.calls) == 1
        assert coordinator.state is CoordinatorState.AWAITING_ECHO
        assert any("connection refused" in w for w in operator.warnings)

    asyncio.run(run_test())


def test_unexpected_agent_error_also_falls_back():
    async def run_test():
        agent = StubAgent(replies=[RuntimeError("boom")])
        session = StubSession()
        coordinator = _coordinator(agent, session)

        result = await coordinator.on_session_text("Welcome!")

        assert result.status == "fallback"
        assert session.sent == ["look"]

    asyncio.run(run_test())


def test_missing_or_multiline_command_sends_blank_line():
    async def run_test():
        agent = StubAgent(replies=["I am thinking.", "<command>\nnorth\nsouth\n</command>"])
        session = StubSession()
        operator = StubOperator()
        coordinator = _coordinator(agent, session, operator=operator)

        first = await coordinator.on_session_text("one")
        second = await coordinator.on_session_text("two")

        assert session.sent == [BLANK_DIRECTIVE, BLANK_DIRECTIVE]
        assert first.status == "blank"
        assert second.reason.startswith("REJECTED: Command contains multiple lines")
        assert len(operator.warnings) == 2
        roles = [m.role for m in coordinator.transcript.messages]
        assert roles == [Role.INSTRUCTION, Role.SESSION_TEXT, Role.AGENT_TEXT, Role.SESSION_TEXT, Role.AGENT_TEXT]

    asyncio.run(run_test())


def test_send_failure_returns_to_idle():
    async def run_test():
        coordinator = _coordinator(StubAgent(), StubSession(fail=True))

        result = await coordinator.on_session_text("hello")

        assert result.status == "send_failed"
        assert coordinator.state is CoordinatorState.IDLE

    asyncio.run(run_test())


def test_kickoff_starts_a_turn_without_session_text():
    async def run_test():
        agent = StubAgent()
        session = StubSession()
        coordinator = _coordinator(agent, session)

        await coordinator.kickoff("Connected to MUD. Waiting for server response...")

        assert agent.calls[0][-1].content == "Connected to MUD. Waiting for server response..."
        assert session.sent == ["look"]
        assert await coordinator.kickoff() is None

    asyncio.run(run_test())


def test_new_character_acks_are_fed_back_and_character_becomes_current(book):
    async def run_test():
        reply = '<new-character>{"name": "Aria"}</new-character><command>Aria</command>'
        agent = StubAgent(replies=[reply])
        coordinator = _coordinator(agent, book=book)

        result = await coordinator.on_session_text("By what name do you wish to be known?")

        assert result.responses == ["OK - Character recorded: Aria"]
        assert coordinator.character_id == "char-1"
        messages = coordinator.transcript.messages
        assert messages[-2].role is Role.AGENT_TEXT
        assert messages[-1].role is Role.SESSION_TEXT
        assert messages[-1].content == "OK - Character recorded: Aria"

    asyncio.run(run_test())


def test_navigation_helper_is_answered_locally_and_movement_recorded(book):
    async def run_test():
        record, _ = book.create_character(NewCharacterRequest(name="Aria"))
        book.observe(record.id, TEMPLE)
        book.record_movement(record.id, "north", GATE)

        agent = StubAgent(replies=["<command>/point temple</command>", "<command>s</command>"])
        session = StubSession()
        operator = StubOperator()
        coordinator = _coordinator(agent, session, book=book, character_id=record.id, operator=operator)

        result = await coordinator.on_session_text("You feel rested.")

        assert session.sent == ["s"]
        assert result.directive == "s"
        assert len(agent.calls) == 2
        assert agent.calls[1][-1].content == 'Next step to reach "temple": S'
        assert ("Navigation", 'Next step to reach "temple": S') in operator.shown

        await coordinator.on_session_text(TEMPLE)

        assert record.current_room_id == "temple_of_midgaard_NS"
        assert record.movements[-1].direction == "S"
        assert record.movements[-1].result == "success"

    asyncio.run(run_test())


def test_declined_directive_is_fed_back_instead_of_sent():
    async def run_test():
        agent = StubAgent(replies=["<command>kill guard</command>", "<command>flee</command>"])
        session = StubSession()
        approval = StubApproval([False, True])
        coordinator = _coordinator(agent, session, approval=approval)

        await coordinator.on_session_text("A guard blocks the way.")

        assert approval.asked == ["kill guard", "flee"]
        assert session.sent == ["flee"]
        assert agent.calls[1][-1].content == "Command not sent, operator declined: kill guard"

    asyncio.run(run_test())


def test_transcript_is_compacted_before_each_agent_call():
    async def run_test():
        agent = StubAgent(default="<command>look</command> " + "word " * 20)
        coordinator = TurnCoordinator(agent, StubSession(), Transcript("instruction", budget=50))

        for i in range(10):
            await coordinator.on_session_text(f"chunk {i} " + "x " * 10)

        for call in agent.calls:
            assert call[0].role is Role.INSTRUCTION
            assert sum(len(m.content.split()) for m in call) <= 50

    asyncio.run(run_test())


def test_out_of_range_level_in_new_character_still_sends_command(book):
    async def run_test():
        agent = StubAgent(replies=['<new-character>{"name": "Aria", "level": 1e999}</new-character><command>look</command>'])
        session = StubSession()
        coordinator = _coordinator(agent, session, book=book)

        result = await coordinator.on_session_text("By what name do you wish to be known?")

        assert session.sent == ["look"]
        assert result.responses == ["OK - Character recorded: Aria"]
        assert book.get(coordinator.character_id).level == 1

    asyncio.run(run_test())


def test_out_of_range_new_level_in_memory_still_sends_command(book):
    async def run_test():
        record, _ = book.create_character(NewCharacterRequest(name="Aria", level=3))
        reply = (
            '<record-memory>{"summary": "lvl", "type": "level_up", "details": {"newLevel": 1e999}}</record-memory>'
            "<command>look</command>"
        )
        session = StubSession()
        coordinator = _coordinator(StubAgent(replies=[reply]), session, book=book, character_id=record.id)

        result = await coordinator.on_session_text("You raise a level!")

        assert session.sent == ["look"]
        assert result.responses == ["OK - Memory recorded"]
        assert record.level == 3
        assert record.memories[-1].summary == "lvl"

    asyncio.run(run_test())


class ExplodingBook:
    def process_agent_reply(self, text, current_character_id=None):
        raise RuntimeError("corrupt record")

    def answer_navigation(self, directive, character_id):
        return None


def test_character_directive_failure_does_not_stall_the_session():
    async def run_test():
        session = StubSession()
        coordinator = _coordinator(StubAgent(), session, book=ExplodingBook())

        result = await coordinator.on_session_text("hello")

        assert result.status == "sent"
        assert session.sent == ["look"]
        assert coordinator.state is CoordinatorState.AWAITING_ECHO

    asyncio.run(run_test())


def test_repeated_local_answers_fall_back_to_blank_line(book):
    async def run_test():
        record, _ = book.create_character(NewCharacterRequest(name="Aria"))
        agent = StubAgent(default="<command>/point temple</command>")
        session = StubSession()
        coordinator = _coordinator(agent, session, book=book, character_id=record.id, max_follow_ups=3)

        result = await coordinator.on_session_text("You feel rested.")

        assert len(agent.calls) == 4
        assert session.sent == [BLANK_DIRECTIVE]
        assert result.status == "blank"
        assert coordinator.state is CoordinatorState.AWAITING_ECHO

    asyncio.run(run_test())
