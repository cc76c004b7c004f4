"""Heuristic pattern rules over raw session text.

Each rule looks at one fragment and yields a typed partial result, or
``Unmatched``. The room graph builder composes the results; nothing here
touches graph state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Union

DARKNESS_SENTINEL = "too dark to tell"

_DIRECTION_NAMES = {
    "north": "N",
    "south": "S",
    "east": "E",
    "west": "W",
    "up": "U",
    "down": "D",
}

MOVEMENT_REFUSALS = (
    "you can't go that way",
    "you cannot go that way",
    "alas, you cannot go that way",
    "you can't go there",
    "is closed",
    "you are too exhausted",
    "you would need to swim",
    "you need a boat",
)

_STATUS_LINE_RE = re.compile(r"\b\d+H\s+\d+V\b")
_EXIT_TOKEN_RE = re.compile(r"Exits:\s*([NSEWUD(), ]+)")
_EXIT_LETTER_RE = re.compile(r"\(([NSEWUD])\)|([NSEWUD])")
_VERBOSE_HEADER_RE = re.compile(r"^\s*Obvious exits:\s*$", re.IGNORECASE | re.MULTILINE)
_VERBOSE_ENTRY_RE = re.compile(r"^(North|South|East|West|Up|Down)\s*-\s*(.+)$", re.IGNORECASE)

_HEADING_SKIP_WORDS = ("walk", "move", "climb")
_HEADING_REJECT_MARKERS = (
    "Exits:",
    "Obvious exits:",
    "You are",
    "arrives",
    "This is",
    " - ",
    "    ",
    ".",
    "?",
    "!",
)


@dataclass(frozen=True)
class RoomHeading:
    name: str
    line_index: int


@dataclass(frozen=True)
class ExitList:
    exits: tuple[str, ...]
    closed: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExitEntry:
    direction: str
    # None when the session says it is too dark to tell.
    destination: Optional[str]


@dataclass(frozen=True)
class VerboseExitBlock:
    entries: tuple[ExitEntry, ...]

    @property
    def exits(self) -> tuple[str, ...]:
        return tuple(entry.direction for entry in self.entries)


@dataclass(frozen=True)
class Unmatched:
    text: str


RoomObservation = Union[RoomHeading, ExitList, VerboseExitBlock, Unmatched]
RoomRule = Callable[[str], RoomObservation]


def is_status_line(line: str) -> bool:
    return bool(_STATUS_LINE_RE.search(line))


def looks_like_heading(line: str) -> bool:
    clean = line.strip()
    if not clean or is_status_line(clean):
        return False
    if clean.startswith("You ") or clean.startswith(">"):
        return False
    if any(word in clean for word in _HEADING_SKIP_WORDS):
        return False
    if not 3 < len(clean) < 80:
        return False
    if any(marker in clean for marker in _HEADING_REJECT_MARKERS):
        return False
    return clean[0].isupper() or clean[0].isdigit()


def match_room_heading(text: str) -> RoomObservation:
    for index, line in enumerate(text.split("\n")):
        if looks_like_heading(line):
            return RoomHeading(name=line.strip(), line_index=index)
    return Unmatched(text)


def match_exit_list(text: str) -> RoomObservation:
    match = _EXIT_TOKEN_RE.search(text)
    if match is None:
        return Unmatched(text)
    exits: list[str] = []
    closed: list[str] = []
    for door, open_exit in _EXIT_LETTER_RE.findall(match.group(1)):
        letter = door or open_exit
        if letter in exits:
            continue
        exits.append(letter)
        if door:
            closed.append(letter)
    if not exits:
        return Unmatched(text)
    return ExitList(exits=tuple(exits), closed=tuple(closed))


def match_verbose_exits(text: str) -> RoomObservation:
    header = _VERBOSE_HEADER_RE.search(text)
    if header is None:
        return Unmatched(text)

    entries: list[ExitEntry] = []
    seen: set[str] = set()
    started = False
    for line in text[header.end():].split("\n"):
        clean = line.strip()
        if not clean:
            if started:
                break
            continue
        started = True
        match = _VERBOSE_ENTRY_RE.match(clean)
        if match is None:
            continue
        direction = _DIRECTION_NAMES[match.group(1).lower()]
        if direction in seen:
            continue
        seen.add(direction)
        destination = match.group(2).strip()
        if destination.rstrip(".").strip().lower() == DARKNESS_SENTINEL:
            entries.append(ExitEntry(direction, None))
        else:
            entries.append(ExitEntry(direction, destination))
    if not entries:
        return Unmatched(text)
    return VerboseExitBlock(entries=tuple(entries))


ROOM_RULES: tuple[RoomRule, ...] = (
    match_verbose_exits,
    match_exit_list,
    match_room_heading,
)


def parse_fragment(text: str | None, rules: tuple[RoomRule, ...] = ROOM_RULES) -> list[RoomObservation]:
    """Run every rule in order and return the matched partial results."""
    if not text or not text.strip():
        return []
    observations: list[RoomObservation] = []
    for rule in rules:
        result = rule(text)
        if not isinstance(result, Unmatched):
            observations.append(result)
    return observations


def movement_failed(text: str | None) -> bool:
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in MOVEMENT_REFUSALS)
