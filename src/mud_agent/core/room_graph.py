from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Optional

from .normalize import build_room_id, normalize_text_for_id, opposite_direction, utc_timestamp
from .room_rules import (
    ROOM_RULES,
    ExitList,
    RoomHeading,
    RoomRule,
    VerboseExitBlock,
    parse_fragment,
)
from .types import CharacterRecord, MovementRecord, RoomNode

_STOP_WORDS = frozenset({"a", "an", "the", "of", "to", "in", "on", "at", "by", "for", "with", "from"})


def _significant_words(name: str) -> set[str]:
    return {w for w in name.lower().split() if len(w) > 2 and w not in _STOP_WORDS}


def names_overlap(left: str, right: str) -> bool:
    left_words = _significant_words(left)
    right_words = _significant_words(right)
    if not left_words or not right_words:
        return normalize_text_for_id(left) == normalize_text_for_id(right)
    return bool(left_words & right_words)


class RoomGraphBuilder:
    """Incrementally folds session text into a character's room graph.

    ``update`` is best-effort: text the rules cannot read leaves the graph
    as it was. When ``move`` is a fresh successful movement the previous
    room is linked to the one just observed, correcting any stale
    prediction left by an earlier ``Obvious exits`` listing.
    """

    def __init__(
        self,
        *,
        rules: tuple[RoomRule, ...] = ROOM_RULES,
        clock: Callable[[], str] = utc_timestamp,
        logger: logging.Logger | None = None,
    ):
        self._rules = rules
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    def update(
        self,
        record: CharacterRecord,
        text: str | None,
        move: MovementRecord | None = None,
    ) -> Optional[str]:
        observations = parse_fragment(text, self._rules)
        heading = next((o for o in observations if isinstance(o, RoomHeading)), None)

        if heading is None:
            verbose = next((o for o in observations if isinstance(o, VerboseExitBlock)), None)
            current = record.rooms.get(record.current_room_id or "")
            if verbose is not None and current is not None:
                self._apply_verbose(record, current, verbose)
                self._logger.debug("Annotated current room %s with exit listing", current.id)
                return current.id
            return None

        if heading.line_index > 0:
            # Exit information belongs to the room whose heading precedes it.
            tail = "\n".join((text or "").split("\n")[heading.line_index:])
            observations = parse_fragment(tail, self._rules)
        exit_list = next((o for o in observations if isinstance(o, ExitList)), None)
        verbose = next((o for o in observations if isinstance(o, VerboseExitBlock)), None)

        if verbose is not None:
            exits = list(verbose.exits)
        elif exit_list is not None:
            exits = list(exit_list.exits)
        else:
            exits = []
        closed = [d for d in (exit_list.closed if exit_list else ()) if d in exits]

        room_id = build_room_id(heading.name, exits)
        if not room_id:
            return None

        node = record.rooms.get(room_id)
        if node is None:
            node = RoomNode(
                id=room_id,
                name=heading.name,
                exits=exits,
                closed_exits=closed,
                visited_count=1,
                first_seen=self._clock(),
            )
            record.rooms[room_id] = node
            self._logger.debug("New room encountered: %r (id=%s)", heading.name, room_id)
        else:
            node.visited_count += 1
            if exits:
                node.exits = exits
                node.closed_exits = closed

        if verbose is not None:
            self._apply_verbose(record, node, verbose)

        previous_id = record.current_room_id
        if (
            move is not None
            and move.result == "success"
            and previous_id is not None
            and previous_id != room_id
            and previous_id in record.rooms
        ):
            self._link_after_move(record, record.rooms[previous_id], node, move.direction)

        record.current_room_id = room_id
        record.location = heading.name
        return room_id

    def _apply_verbose(self, record: CharacterRecord, node: RoomNode, block: VerboseExitBlock) -> None:
        for entry in block.entries:
            if entry.direction not in node.exits:
                node.exits.append(entry.direction)
            if entry.destination is None:
                continue

            existing = record.rooms.get(node.connections.get(entry.direction, ""))
            if existing is not None and normalize_text_for_id(existing.name) == normalize_text_for_id(entry.destination):
                continue

            destination_id = build_room_id(entry.destination)
            if not destination_id or destination_id == node.id:
                continue
            destination = record.rooms.get(destination_id)
            if destination is None:
                destination = RoomNode(
                    id=destination_id,
                    name=entry.destination,
                    visited_count=0,
                    first_seen=self._clock(),
                )
                record.rooms[destination_id] = destination

            node.connections[entry.direction] = destination_id
            reverse = opposite_direction(entry.direction)
            if reverse is not None:
                destination.connections.setdefault(reverse, node.id)

    def _link_after_move(
        self,
        record: CharacterRecord,
        previous: RoomNode,
        current: RoomNode,
        direction: str,
    ) -> None:
        self._resolve_edge(record, previous, direction, current, observed=True)
        reverse = opposite_direction(direction)
        if reverse is not None:
            self._resolve_edge(record, current, reverse, previous, observed=False)

    def _resolve_edge(
        self,
        record: CharacterRecord,
        source: RoomNode,
        direction: str,
        target: RoomNode,
        *,
        observed: bool,
    ) -> None:
        predicted = source.connections.get(direction)
        if predicted is None:
            source.connections[direction] = target.id
            return
        if predicted == target.id:
            return
        stale = record.rooms.get(predicted)
        # An inferred back edge only replaces a glimpsed node describing the same place.
        if not observed and stale is not None and (stale.visited_count > 0 or not names_overlap(stale.name, target.name)):
            return
        self._correct(record, source, direction, predicted, target)

    def _correct(
        self,
        record: CharacterRecord,
        source: RoomNode,
        direction: str,
        stale_id: str,
        actual: RoomNode,
    ) -> None:
        source.connections[direction] = actual.id
        stale = record.rooms.get(stale_id)
        same_place = stale is not None and names_overlap(stale.name, actual.name)

        if same_place:
            for other in record.rooms.values():
                for exit_dir, target in list(other.connections.items()):
                    if target == stale_id:
                        other.connections[exit_dir] = actual.id
            for exit_dir, target in stale.connections.items():
                if target not in (stale_id, actual.id):
                    actual.connections.setdefault(exit_dir, target)

        if stale is not None and (same_place or stale.visited_count == 0) and not self._is_referenced(record, stale_id):
            del record.rooms[stale_id]
            self._logger.debug("Room id corrected from %s to %s", stale_id, actual.id)

    @staticmethod
    def _is_referenced(record: CharacterRecord, room_id: str) -> bool:
        if record.current_room_id == room_id:
            return True
        for node in record.rooms.values():
            if node.id == room_id:
                continue
            if room_id in node.connections.values():
                return True
        return False


def find_route(record: CharacterRecord, destination: str) -> Optional[list[str]]:
    """Shortest list of direction codes from the current room to ``destination``.

    ``destination`` matches any room whose name contains it, case-insensitive.
    Returns ``[]`` when the current room already matches and ``None`` when
    nothing matches or no connected route exists.
    """
    start = record.current_room_id
    needle = (destination or "").strip().lower()
    if not start or not needle:
        return None

    targets = {room_id for room_id, node in record.rooms.items() if node.name and needle in node.name.lower()}
    if not targets:
        return None
    if start in targets:
        return []

    queue: deque[tuple[str, list[str]]] = deque([(start, [])])
    visited = {start}
    while queue:
        room_id, path = queue.popleft()
        node = record.rooms.get(room_id)
        if node is None:
            continue
        for direction, neighbour in node.connections.items():
            if not neighbour or neighbour in visited:
                continue
            step = [*path, direction]
            if neighbour in targets:
                return step
            visited.add(neighbour)
            queue.append((neighbour, step))
    return None
