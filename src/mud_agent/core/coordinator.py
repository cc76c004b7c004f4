from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .characters import CharacterBook
from .errors import AgentCallError, MudAgentError
from .extract import extract_plan, parse_command
from .normalize import parse_direction
from .ports import AgentPort, ApprovalPort, OperatorPort, SessionPort
from .room_rules import movement_failed
from .transcript import Transcript
from .types import Role, TurnResult

FALLBACK_DIRECTIVE = "look"
BLANK_DIRECTIVE = "\n"
CONNECTED_NOTE = "Connected to MUD. Waiting for server response..."
MAX_LOCAL_FOLLOW_UPS = 5


class CoordinatorState(str, Enum):
    IDLE = "idle"
    REQUEST_IN_FLIGHT = "request_in_flight"
    AWAITING_ECHO = "awaiting_echo"


class TurnEvent(str, Enum):
    TURN_STARTED = "turn_started"
    TEXT_QUEUED = "text_queued"
    FOLLOW_UP = "follow_up"
    DIRECTIVE_SENT = "directive_sent"
    TURN_ABORTED = "turn_aborted"
    ECHO_RECEIVED = "echo_received"


_TRANSITIONS: dict[tuple[CoordinatorState, TurnEvent], CoordinatorState] = {
    (CoordinatorState.IDLE, TurnEvent.TURN_STARTED): CoordinatorState.REQUEST_IN_FLIGHT,
    (CoordinatorState.REQUEST_IN_FLIGHT, TurnEvent.TEXT_QUEUED): CoordinatorState.REQUEST_IN_FLIGHT,
    (CoordinatorState.REQUEST_IN_FLIGHT, TurnEvent.FOLLOW_UP): CoordinatorState.REQUEST_IN_FLIGHT,
    (CoordinatorState.REQUEST_IN_FLIGHT, TurnEvent.DIRECTIVE_SENT): CoordinatorState.AWAITING_ECHO,
    (CoordinatorState.REQUEST_IN_FLIGHT, TurnEvent.TURN_ABORTED): CoordinatorState.IDLE,
    (CoordinatorState.AWAITING_ECHO, TurnEvent.ECHO_RECEIVED): CoordinatorState.IDLE,
}


def transition(state: CoordinatorState, event: TurnEvent) -> CoordinatorState:
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise ValueError(f"invalid turn event {event.value!r} in state {state.value!r}") from None


class TurnCoordinator:
    """Single-flight relay between a session and an agent.

    All state changes happen synchronously between awaits, so concurrent
    ``on_session_text`` tasks on one event loop never start a second agent
    call: text that arrives while a request is outstanding is queued and
    folded into the next turn in arrival order.
    """

    def __init__(
        self,
        agent: AgentPort,
        session: SessionPort,
        transcript: Transcript,
        book: CharacterBook | None = None,
        *,
        character_id: str | None = None,
        operator: OperatorPort | None = None,
        approval: ApprovalPort | None = None,
        fallback_directive: str = FALLBACK_DIRECTIVE,
        max_follow_ups: int = MAX_LOCAL_FOLLOW_UPS,
        logger: logging.Logger | None = None,
    ):
        self._agent = agent
        self._session = session
        self._transcript = transcript
        self._book = book
        self._character_id = character_id
        self._operator = operator
        self._approval = approval
        self._fallback = fallback_directive
        self._max_follow_ups = max_follow_ups
        self._logger = logger or logging.getLogger(__name__)
        self._state = CoordinatorState.IDLE
        self._pending: list[str] = []
        self._pending_move: Optional[str] = None
        self._agent_calls = 0

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    @property
    def character_id(self) -> str | None:
        return self._character_id

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def agent_calls(self) -> int:
        return self._agent_calls

    def _apply(self, event: TurnEvent) -> None:
        previous = self._state
        self._state = transition(previous, event)
        self._logger.debug("Coordinator %s --%s--> %s", previous.value, event.value, self._state.value)

    def _warn(self, text: str) -> None:
        self._logger.warning(text)
        if self._operator is not None:
            self._operator.warn(text)

    def _show(self, label: str, text: str) -> None:
        if self._operator is not None:
            self._operator.show(label, text)

    def _take_pending(self, text: str) -> str:
        parts = [*self._pending, text]
        self._pending.clear()
        return "\n".join(parts)

    async def on_session_text(self, text: str) -> TurnResult | None:
        """Handle one inbound chunk; returns the turn result, or ``None`` if queued."""
        self._observe(text)

        if self._state is CoordinatorState.REQUEST_IN_FLIGHT:
            self._pending.append(text)
            self._apply(TurnEvent.TEXT_QUEUED)
            self._logger.debug("Agent request pending; queued chunk (%d queued)", len(self._pending))
            return None

        if self._state is CoordinatorState.AWAITING_ECHO:
            self._apply(TurnEvent.ECHO_RECEIVED)
        return await self._run_turn(self._take_pending(text))

    async def kickoff(self, note: str = CONNECTED_NOTE) -> TurnResult | None:
        """Start a turn without session text, e.g. when no banner arrived."""
        if self._state is not CoordinatorState.IDLE:
            return None
        return await self._run_turn(self._take_pending(note))

    def _observe(self, text: str) -> None:
        if self._book is None or self._character_id is None:
            self._pending_move = None
            return
        move, self._pending_move = self._pending_move, None
        try:
            if move is not None:
                self._book.record_movement(self._character_id, move, text, success=not movement_failed(text))
            else:
                self._book.observe(self._character_id, text)
        except Exception:
            self._logger.exception("Map update failed; continuing without it")

    async def _run_turn(self, turn_input: str) -> TurnResult:
        self._apply(TurnEvent.TURN_STARTED)
        try:
            return await self._turn_loop(turn_input)
        finally:
            if self._state is CoordinatorState.REQUEST_IN_FLIGHT:
                self._apply(TurnEvent.TURN_ABORTED)

    async def _turn_loop(self, turn_input: str) -> TurnResult:
        follow_ups = 0
        while True:
            self._transcript.append(Role.SESSION_TEXT, turn_input)
            removed = self._transcript.compact()
            if removed:
                self._logger.debug("Transcript compacted: %d messages removed", removed)

            self._agent_calls += 1
            try:
                reply = await self._agent.complete(self._transcript.messages)
            except AgentCallError as exc:
                self._warn(f"Agent call failed, sending fallback {self._fallback!r}: {exc}")
                return await self._send(self._fallback, status="fallback", reason=str(exc))
            except Exception as exc:
                self._logger.exception("Unexpected agent failure")
                return await self._send(self._fallback, status="fallback", reason=str(exc))

            self._transcript.append(Role.AGENT_TEXT, reply)
            responses = self._apply_character_directives(reply)

            plan = extract_plan(reply)
            if plan:
                self._show("Plan", plan)

            extraction = parse_command(reply)
            if extraction.directive is None:
                self._warn(f"{extraction.rejected_reason}; sending a blank line to continue")
                return await self._send(
                    BLANK_DIRECTIVE,
                    status="blank",
                    reply=reply,
                    responses=responses,
                    reason=extraction.rejected_reason,
                )

            directive = extraction.directive
            local = self._answer_locally(directive)
            if local is not None:
                self._show("Navigation", local)
            elif self._approval is not None and not await self._approval.approve(directive):
                local = f"Command not sent, operator declined: {directive}"
                self._warn(local)
            if local is not None and follow_ups >= self._max_follow_ups:
                reason = f"{follow_ups} local answers in one turn; sending a blank line to continue"
                self._warn(reason)
                return await self._send(BLANK_DIRECTIVE, status="blank", reply=reply, responses=responses, reason=reason)
            if local is not None:
                follow_ups += 1
                turn_input = self._take_pending(local)
                self._apply(TurnEvent.FOLLOW_UP)
                continue

            return await self._send(directive, status="sent", reply=reply, responses=responses)

    def _apply_character_directives(self, reply: str) -> list[str]:
        if self._book is None:
            return []
        try:
            outcome = self._book.process_agent_reply(reply, self._character_id)
        except Exception:
            self._logger.exception("Character directives failed; continuing with the command")
            return []
        if outcome.character_id != self._character_id:
            self._logger.info("Current character is now %s", outcome.character_id)
            self._character_id = outcome.character_id
        for response in outcome.responses:
            self._show("Character System", response)
            self._transcript.append(Role.SESSION_TEXT, response)
        return outcome.responses

    def _answer_locally(self, directive: str) -> str | None:
        if self._book is None:
            return None
        return self._book.answer_navigation(directive, self._character_id)

    async def _send(
        self,
        directive: str,
        *,
        status: str,
        reply: str | None = None,
        responses: list[str] | None = None,
        reason: str | None = None,
    ) -> TurnResult:
        self._pending_move = parse_direction(directive)
        try:
            await self._session.send(directive)
        except (MudAgentError, OSError) as exc:
            self._pending_move = None
            self._logger.warning("Failed to send %r to session: %s", directive, exc)
            self._apply(TurnEvent.TURN_ABORTED)
            return TurnResult(status="send_failed", directive=directive, reply=reply, responses=responses or [], reason=str(exc))

        self._apply(TurnEvent.DIRECTIVE_SENT)
        self._logger.info("Sent directive %r", directive)
        self._show("Command", directive)
        return TurnResult(status=status, directive=directive, reply=reply, responses=responses or [], reason=reason)
