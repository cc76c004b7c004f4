from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional


class Role(str, Enum):
    INSTRUCTION = "instruction"
    SESSION_TEXT = "session_text"
    AGENT_TEXT = "agent_text"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str


DIRECTION_CODES: tuple[str, ...] = ("N", "S", "E", "W", "U", "D")

OPPOSITE_DIRECTIONS: dict[str, str] = {
    "N": "S",
    "S": "N",
    "E": "W",
    "W": "E",
    "U": "D",
    "D": "U",
}

MovementResult = Literal["success", "failed"]

MEMORY_TYPES: tuple[str, ...] = (
    "level_up",
    "social",
    "combat",
    "exploration",
    "quest",
    "pathfinding",
)


@dataclass
class RoomNode:
    id: str
    name: str
    exits: list[str] = field(default_factory=list)
    closed_exits: list[str] = field(default_factory=list)
    connections: dict[str, str] = field(default_factory=dict)
    visited_count: int = 1
    first_seen: Optional[str] = None


@dataclass
class MovementRecord:
    direction: str
    result: MovementResult
    timestamp: str
    excerpt: str = ""


@dataclass
class PathMemory:
    from_location: str
    to_location: str
    directions: list[str]
    recorded_at: Optional[str] = None


@dataclass
class KeyMemory:
    summary: str
    type: str = "exploration"
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[str] = None


@dataclass
class CharacterRecord:
    id: str
    name: str
    password: str = ""
    character_class: str = "unknown"
    race: str = "unknown"
    level: int = 1
    location: str = "unknown"
    rooms: dict[str, RoomNode] = field(default_factory=dict)
    current_room_id: Optional[str] = None
    movements: list[MovementRecord] = field(default_factory=list)
    paths: list[PathMemory] = field(default_factory=list)
    memories: list[KeyMemory] = field(default_factory=list)
    created_at: Optional[str] = None
    last_played: Optional[str] = None


@dataclass
class NewCharacterRequest:
    name: str
    character_class: str = "unknown"
    race: str = "unknown"
    password: str = ""
    level: int = 1
    location: str = "unknown"


@dataclass
class MemoryRequest:
    summary: str
    type: str = "exploration"
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class PathRequest:
    from_location: str
    to_location: str
    directions: list[str]


@dataclass
class CommandExtraction:
    directive: Optional[str]
    rejected_reason: Optional[str] = None


@dataclass
class CharacterContext:
    name: str
    password: str
    character_class: str
    race: str
    level: int
    location: str
    memories: str
    navigation: str


@dataclass
class DirectiveOutcome:
    responses: list[str] = field(default_factory=list)
    character_id: Optional[str] = None


@dataclass
class TurnResult:
    status: str
    directive: Optional[str] = None
    reply: Optional[str] = None
    responses: list[str] = field(default_factory=list)
    reason: Optional[str] = None
