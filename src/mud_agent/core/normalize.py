from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Iterable

from .types import DIRECTION_CODES, OPPOSITE_DIRECTIONS

_DIRECTION_WORDS = {
    "n": "N",
    "north": "N",
    "s": "S",
    "south": "S",
    "e": "E",
    "east": "E",
    "w": "W",
    "west": "W",
    "u": "U",
    "up": "U",
    "d": "D",
    "down": "D",
}


def normalize_text_for_id(value: str | None) -> str:
    if not value:
        return ""
    words = [w for w in value.lower().split() if re.search(r"[a-z0-9]", w)]
    return "_".join(words)


def exit_signature(exits: Iterable[str]) -> str:
    return "".join(sorted(e.strip("()") for e in exits))


def build_room_id(name: str, exits: Iterable[str] = ()) -> str:
    parts = [normalize_text_for_id(name), exit_signature(exits)]
    return "_".join(part for part in parts if part)


def parse_direction(command: str | None) -> str | None:
    """Map a movement command to a direction code, or ``None``.

    Only the six compass codes are addressable; ``ne``, ``in`` and friends
    are not movement as far as the map is concerned.
    """
    text = (command or "").strip().lower()
    if text.startswith("go "):
        text = text[3:].strip()
    return _DIRECTION_WORDS.get(text)


def normalize_direction_code(value: object) -> str | None:
    text = str(value or "").strip()
    if text.upper() in DIRECTION_CODES:
        return text.upper()
    return parse_direction(text)


def opposite_direction(direction: str) -> str | None:
    return OPPOSITE_DIRECTIONS.get(direction)


def parse_json_dict(text: str | None) -> dict[str, Any]:
    if not text:
        return {}
    try:
        data = json.loads(text)
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def parse_json_list(text: str | None) -> list[Any]:
    if not text:
        return []
    try:
        data = json.loads(text)
    except Exception:
        return []
    return data if isinstance(data, list) else []


def dump_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=True, separators=(",", ":"))


def utc_timestamp(value: datetime | None = None) -> str:
    moment = value or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
