from __future__ import annotations

import asyncio
import logging

from mud_agent.core.characters import CharacterBook
from mud_agent.core.coordinator import TurnCoordinator
from mud_agent.core.prompts import build_instruction
from mud_agent.core.transcript import Transcript
from mud_agent.persistence.sqlalchemy import (
    SQLAlchemyUnitOfWork,
    build_engine,
    build_session_factory,
    create_schema,
)

SESSION_SCRIPT = [
    "Welcome to the realm!\nBy what name do you wish to be known?",
    "Temple of Midgaard\nYou are in the southern end of the temple hall.\n\n"
    "56H 118V 1499X 0.00% 0C T:60 Exits:NS",
    "Market Square\nTraders shout their prices.\n\n"
    "Obvious exits:\nNorth - Temple of Midgaard\nEast - Too dark to tell\n\n"
    "56H 116V 1499X 0.00% 0C T:58 Exits:NE",
    "You feel rested.",
]

AGENT_SCRIPT = [
    '<plan>Create a character</plan>\n<new-character>{"name": "Aria", "class": "cleric", "race": "elf"}</new-character>\n'
    "<command>Aria</command>",
    "<plan>Explore south</plan>\n<command>south</command>",
    '<record-path>{"from": "Temple of Midgaard", "to": "Market Square", "directions": ["S"]}</record-path>\n'
    "<command>/wayfind temple</command>",
    "<command>north</command>",
    "<command>look</command>",
]


class ScriptedAgent:
    def __init__(self, replies: list[str]):
        self._replies = list(replies)

    async def complete(self, messages):
        return self._replies.pop(0) if self._replies else "<command>look</command>"


class PrintingSession:
    async def send(self, text: str) -> None:
        print(f"> {text!r}")


def make_book() -> CharacterBook:
    engine = build_engine("sqlite+pysqlite:///:memory:")
    create_schema(engine)
    session_factory = build_session_factory(engine)
    return CharacterBook(lambda: SQLAlchemyUnitOfWork(session_factory))


async def main() -> None:
    book = make_book()
    coordinator = TurnCoordinator(
        ScriptedAgent(AGENT_SCRIPT),
        PrintingSession(),
        Transcript(build_instruction(), budget=4_000),
        book,
    )
    for chunk in SESSION_SCRIPT:
        print(chunk)
        await coordinator.on_session_text(chunk)

    record = book.get(coordinator.character_id)
    print(book.navigation_context(record))
    print(book.find_full_path(record.id, "market"))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
