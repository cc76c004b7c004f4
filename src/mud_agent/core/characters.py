from __future__ import annotations

import logging
import uuid
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from .errors import PersistenceError
from .extract import parse_new_character, parse_record_memory, parse_record_path
from .navigation import NO_CHARACTER_MESSAGE, parse_navigation_command, usage
from .normalize import dump_json, parse_json_dict, parse_json_list, parse_direction, utc_timestamp
from .room_graph import RoomGraphBuilder, find_route
from .types import (
    CharacterContext,
    CharacterRecord,
    DirectiveOutcome,
    KeyMemory,
    MemoryRequest,
    MovementRecord,
    NewCharacterRequest,
    PathMemory,
    RoomNode,
)

if TYPE_CHECKING:
    from ..persistence.interfaces import UnitOfWork

MAX_MEMORIES = 20
MAX_PATHS = 20
MAX_MOVEMENTS = 50
EXCERPT_CHARS = 200
CONTEXT_MEMORIES = 5
CONTEXT_ITEMS = 3

NO_NAVIGATION_DATA = "No navigation data available"


def _room_from_dict(room_id: str, data: dict[str, Any]) -> RoomNode:
    return RoomNode(
        id=str(data.get("id") or room_id),
        name=str(data.get("name") or ""),
        exits=[str(e) for e in data.get("exits") or []],
        closed_exits=[str(e) for e in data.get("closed_exits") or []],
        connections={str(k): str(v) for k, v in (data.get("connections") or {}).items() if v},
        visited_count=int(data.get("visited_count") or 0),
        first_seen=data.get("first_seen"),
    )


def record_from_row(row: Any) -> CharacterRecord:
    rooms = {
        room_id: _room_from_dict(room_id, data)
        for room_id, data in parse_json_dict(row.rooms_json).items()
        if isinstance(data, dict)
    }
    movements = [
        MovementRecord(
            direction=str(m.get("direction", "")),
            result="success" if m.get("result") == "success" else "failed",
            timestamp=str(m.get("timestamp", "")),
            excerpt=str(m.get("excerpt", "")),
        )
        for m in parse_json_list(row.movements_json)
        if isinstance(m, dict)
    ]
    paths = [
        PathMemory(
            from_location=str(p.get("from_location", "")),
            to_location=str(p.get("to_location", "")),
            directions=[str(d) for d in p.get("directions") or []],
            recorded_at=p.get("recorded_at"),
        )
        for p in parse_json_list(row.paths_json)
        if isinstance(p, dict)
    ]
    memories = [
        KeyMemory(
            summary=str(m.get("summary", "")),
            type=str(m.get("type") or "exploration"),
            details=m.get("details") if isinstance(m.get("details"), dict) else {},
            timestamp=m.get("timestamp"),
        )
        for m in parse_json_list(row.memories_json)
        if isinstance(m, dict)
    ]
    return CharacterRecord(
        id=row.id,
        name=row.name,
        password=row.password or "",
        character_class=row.character_class or "unknown",
        race=row.race or "unknown",
        level=int(row.level or 1),
        location=row.location or "unknown",
        rooms=rooms,
        current_room_id=row.current_room_id,
        movements=movements,
        paths=paths,
        memories=memories,
        created_at=row.first_created,
        last_played=row.last_played,
    )


class CharacterBook:
    """In-memory character records backed by a unit of work.

    Every mutation is applied to the cached record first and then persisted.
    A failed write leaves the in-memory change in place and surfaces as a
    ``PersistenceError`` to the caller, which decides whether to report it.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        graph: RoomGraphBuilder | None = None,
        clock: Callable[[], str] | None = None,
        id_factory: Callable[[], str] | None = None,
        logger: logging.Logger | None = None,
    ):
        self._uow_factory = uow_factory
        self._clock = clock or utc_timestamp
        self._graph = graph or RoomGraphBuilder(clock=self._clock)
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._logger = logger or logging.getLogger(__name__)
        self._records: dict[str, CharacterRecord] = {}
        self._loaded = False

    def load(self) -> list[CharacterRecord]:
        with self._uow_factory() as uow:
            rows = uow.characters.list_all()
            self._records = {row.id: record_from_row(row) for row in rows}
        self._loaded = True
        self._logger.debug("Loaded %d characters", len(self._records))
        return list(self._records.values())

    def list_characters(self) -> list[CharacterRecord]:
        if not self._loaded:
            self.load()
        return list(self._records.values())

    def get(self, character_id: str | None) -> CharacterRecord | None:
        if not character_id:
            return None
        if not self._loaded:
            self.load()
        return self._records.get(character_id)

    def find_by_name(self, name: str) -> CharacterRecord | None:
        needle = (name or "").strip().lower()
        for record in self.list_characters():
            if record.name.lower() == needle:
                return record
        return None

    def _persist(self, record: CharacterRecord) -> None:
        try:
            with self._uow_factory() as uow:
                uow.characters.save(
                    character_id=record.id,
                    name=record.name,
                    character_class=record.character_class,
                    race=record.race,
                    level=record.level,
                    location=record.location,
                    password=record.password,
                    current_room_id=record.current_room_id,
                    rooms_json=dump_json({room_id: asdict(node) for room_id, node in record.rooms.items()}),
                    movements_json=dump_json([asdict(m) for m in record.movements]),
                    paths_json=dump_json([asdict(p) for p in record.paths]),
                    memories_json=dump_json([asdict(m) for m in record.memories]),
                    created_at=record.created_at,
                    last_played=record.last_played,
                )
                uow.commit()
        except Exception as exc:
            self._logger.warning(
                "Character %s changed in memory but was not saved (durability risk): %s",
                record.id,
                exc,
            )
            raise PersistenceError(f"failed to save character {record.id}") from exc

    def _persist_quietly(self, record: CharacterRecord) -> bool:
        try:
            self._persist(record)
        except PersistenceError:
            return False
        return True

    def create_character(self, request: NewCharacterRequest) -> tuple[CharacterRecord, str | None]:
        if not self._loaded:
            self.load()
        now = self._clock()
        record = CharacterRecord(
            id=self._id_factory(),
            name=request.name,
            password=request.password,
            character_class=request.character_class,
            race=request.race,
            level=request.level,
            location=request.location,
            created_at=now,
            last_played=now,
        )
        self._records[record.id] = record
        self._logger.info("Character created: %s (%s)", record.name, record.id)
        if not self._persist_quietly(record):
            return record, "Failed to save character data"
        return record, None

    def record_memory(self, character_id: str, request: MemoryRequest) -> str | None:
        """Append a memory; return an error message or ``None``."""
        record = self.get(character_id)
        if record is None:
            return "Character not found"

        now = self._clock()
        record.memories.append(
            KeyMemory(summary=request.summary, type=request.type, details=dict(request.details), timestamp=now)
        )
        record.last_played = now

        new_level = request.details.get("newLevel")
        if new_level:
            try:
                record.level = int(new_level)
            except (TypeError, ValueError, OverflowError):
                self._logger.debug("Ignoring unusable newLevel %r", new_level)
        location = request.details.get("location")
        if location:
            record.location = str(location)

        if len(record.memories) > MAX_MEMORIES:
            record.memories = record.memories[-MAX_MEMORIES:]

        if not self._persist_quietly(record):
            return "Failed to save memory data"
        return None

    def record_path(
        self,
        character_id: str,
        from_location: str,
        to_location: str,
        directions: Sequence[str],
    ) -> str | None:
        record = self.get(character_id)
        if record is None:
            return "Character not found"

        entry = PathMemory(
            from_location=from_location,
            to_location=to_location,
            directions=list(directions),
            recorded_at=self._clock(),
        )
        for index, existing in enumerate(record.paths):
            if existing.from_location == from_location and existing.to_location == to_location:
                record.paths[index] = entry
                break
        else:
            record.paths.append(entry)
            if len(record.paths) > MAX_PATHS:
                record.paths = record.paths[-MAX_PATHS:]

        if not self._persist_quietly(record):
            return "Failed to save path data"
        return None

    def record_movement(
        self,
        character_id: str,
        direction: str,
        text: str,
        success: bool = True,
    ) -> MovementRecord | None:
        record = self.get(character_id)
        if record is None:
            return None

        move = MovementRecord(
            direction=parse_direction(direction) or direction,
            result="success" if success else "failed",
            timestamp=self._clock(),
            excerpt=(text or "")[:EXCERPT_CHARS],
        )
        record.movements.append(move)
        if len(record.movements) > MAX_MOVEMENTS:
            record.movements = record.movements[-MAX_MOVEMENTS:]
        record.last_played = move.timestamp

        self._graph.update(record, text, move=move)
        self._logger.debug("Movement %s -> %s (room=%s)", move.direction, move.result, record.current_room_id)
        self._persist_quietly(record)
        return move

    def observe(self, character_id: str, text: str) -> Optional[str]:
        """Fold session text into the map without an associated move."""
        record = self.get(character_id)
        if record is None:
            return None
        before = record.current_room_id
        room_id = self._graph.update(record, text)
        if room_id is not None:
            if room_id != before:
                self._logger.debug("Current room is now %s", room_id)
            self._persist_quietly(record)
        return room_id

    def process_agent_reply(self, text: str, current_character_id: str | None = None) -> DirectiveOutcome:
        responses: list[str] = []
        character_id = current_character_id

        request, error = parse_new_character(text)
        if error is not None:
            responses.append(f"ERROR - {error}")
        elif request is not None:
            record, save_error = self.create_character(request)
            # Kept in memory even when the write failed, so later directives still apply.
            character_id = record.id
            if save_error is None:
                responses.append(f"OK - Character recorded: {record.name}")
            else:
                responses.append(f"ERROR - {save_error}")

        memory, error = parse_record_memory(text)
        if error is not None:
            responses.append(f"ERROR - {error}")
        elif memory is not None:
            if character_id is None:
                responses.append("ERROR - Character not found")
            else:
                save_error = self.record_memory(character_id, memory)
                responses.append("OK - Memory recorded" if save_error is None else f"ERROR - {save_error}")

        path, error = parse_record_path(text)
        if error is not None:
            responses.append(f"ERROR - {error}")
        elif path is not None:
            if character_id is None:
                responses.append("ERROR - Character not found")
            else:
                save_error = self.record_path(character_id, path.from_location, path.to_location, path.directions)
                if save_error is None:
                    responses.append(f"OK - Path recorded: {path.from_location} -> {path.to_location}")
                else:
                    responses.append(f"ERROR - {save_error}")

        return DirectiveOutcome(responses=responses, character_id=character_id)

    def navigation_context(self, record: CharacterRecord) -> str:
        lines: list[str] = []
        current = record.rooms.get(record.current_room_id or "")
        if current is not None:
            lines.append(f"Current room: {current.name}")
            if current.exits:
                lines.append(f"Available exits: {', '.join(current.exits)}")
        if record.movements:
            recent = "; ".join(f"{m.direction} -> {m.result}" for m in record.movements[-CONTEXT_ITEMS:])
            lines.append(f"Recent movements: {recent}")
        if record.paths:
            known = "; ".join(
                f"{p.from_location} to {p.to_location}: {' '.join(p.directions)}" for p in record.paths[-CONTEXT_ITEMS:]
            )
            lines.append(f"Known paths: {known}")
        if record.rooms:
            lines.append(f"Explored {len(record.rooms)} rooms")
        return "\n".join(lines) if lines else NO_NAVIGATION_DATA

    def character_context(self, character_id: str | None) -> CharacterContext | None:
        record = self.get(character_id)
        if record is None:
            return None
        memories = "\n".join(f"- {m.summary}" for m in record.memories[-CONTEXT_MEMORIES:])
        return CharacterContext(
            name=record.name,
            password=record.password,
            character_class=record.character_class,
            race=record.race,
            level=record.level,
            location=record.location,
            memories=memories,
            navigation=self.navigation_context(record),
        )

    def _route(self, character_id: str | None, destination: str) -> tuple[CharacterRecord | None, list[str] | None]:
        record = self.get(character_id)
        if record is None:
            return None, None
        return record, find_route(record, destination)

    @staticmethod
    def _no_route(destination: str) -> str:
        return (
            f'No path found to "{destination}". '
            "Make sure you've explored the area and the destination exists."
        )

    def find_next_step(self, character_id: str | None, destination: str) -> str:
        record, route = self._route(character_id, destination)
        if record is None:
            return "Error: Character not found."
        if route is None:
            return self._no_route(destination)
        if not route:
            return f'You are already at or very close to "{destination}".'
        return f'Next step to reach "{destination}": {route[0]}'

    def find_full_path(self, character_id: str | None, destination: str) -> str:
        record, route = self._route(character_id, destination)
        if record is None:
            return "Error: Character not found."
        if route is None:
            return self._no_route(destination)
        if not route:
            return f'You are already at or very close to "{destination}".'
        return f'Full path to "{destination}": {" ".join(route)} ({len(route)} steps)'

    def answer_navigation(self, directive: str, character_id: str | None) -> str | None:
        """Answer ``/point`` and ``/wayfind`` locally; ``None`` for anything else."""
        parsed = parse_navigation_command(directive)
        if parsed is None:
            return None
        command, destination = parsed
        if not destination:
            return usage(command)
        if self.get(character_id) is None:
            return NO_CHARACTER_MESSAGE
        if command == "/point":
            return self.find_next_step(character_id, destination)
        return self.find_full_path(character_id, destination)
