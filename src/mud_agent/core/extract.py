"""Parsing of agent replies.

The agent answers in free text. Exactly one ``<command>`` block carries the
directive for the session; optional JSON blocks carry character bookkeeping
(``<new-character>``, ``<record-memory>``, ``<record-path>``) and an optional
``<plan>`` block is surfaced to the operator.
"""

from __future__ import annotations

import json
import re
from typing import Any

from .normalize import normalize_direction_code
from .types import (
    DIRECTION_CODES,
    MEMORY_TYPES,
    CommandExtraction,
    MemoryRequest,
    NewCharacterRequest,
    PathRequest,
)

NEWLINE_ALIASES = {"return", "enter"}

_COMMAND_RE = re.compile(r"<command>\s*(.*?)\s*</command>", re.DOTALL | re.IGNORECASE)
_PLAN_RE = re.compile(r"<plan>\s*(.*?)\s*</plan>", re.DOTALL | re.IGNORECASE)
_PLAN_MARKDOWN_RE = re.compile(r"\*\*Plan\*\*:?\s*(.*?)(?=\n|$)", re.IGNORECASE)


def _block_re(tag: str) -> re.Pattern[str]:
    return re.compile(rf"<{tag}>\s*([\s\S]*?)\s*</{tag}>", re.IGNORECASE)


_NEW_CHARACTER_RE = _block_re("new-character")
_RECORD_MEMORY_RE = _block_re("record-memory")
_RECORD_PATH_RE = _block_re("record-path")


def parse_command(text: str | None) -> CommandExtraction:
    match = _COMMAND_RE.search(text or "")
    if match is None:
        return CommandExtraction(directive=None, rejected_reason="No command found in <command> block")

    command = match.group(1).strip()
    if not command:
        return CommandExtraction(directive=None, rejected_reason="Empty <command> block")

    lines = [line for line in command.split("\n") if line.strip()]
    if len(lines) > 1:
        return CommandExtraction(
            directive=None,
            rejected_reason=f"REJECTED: Command contains multiple lines: {command}",
        )

    if command.lower() in NEWLINE_ALIASES:
        return CommandExtraction(directive="\n")
    return CommandExtraction(directive=command)


def extract_command(text: str | None) -> str | None:
    return parse_command(text).directive


def extract_plan(text: str | None) -> str | None:
    text = text or ""
    match = _PLAN_RE.search(text)
    if match:
        return match.group(1).strip() or None
    match = _PLAN_MARKDOWN_RE.search(text)
    if match:
        return match.group(1).strip() or None
    return None


def _load_block(pattern: re.Pattern[str], text: str | None) -> tuple[Any, str | None, bool]:
    match = pattern.search(text or "")
    if match is None:
        return None, None, False
    try:
        return json.loads(match.group(1).strip()), None, True
    except json.JSONDecodeError as exc:
        return None, str(exc), True


def _coerce_level(value: object, default: int = 1) -> int:
    if isinstance(value, bool):
        return default
    try:
        level = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return default
    return level if level > 0 else default


def _optional_str(raw: dict[str, Any], key: str, default: str) -> str:
    value = raw.get(key)
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def parse_new_character(text: str | None) -> tuple[NewCharacterRequest | None, str | None]:
    """Return ``(request, None)``, ``(None, error)`` or ``(None, None)`` if absent."""
    data, decode_error, present = _load_block(_NEW_CHARACTER_RE, text)
    if not present:
        return None, None
    if decode_error is not None:
        return None, f"Failed to parse character data: {decode_error}"
    if not isinstance(data, dict):
        return None, "Failed to parse character data: expected a JSON object"

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return None, "Character name is required and must be a string"

    return (
        NewCharacterRequest(
            name=name.strip(),
            character_class=_optional_str(data, "class", "unknown"),
            race=_optional_str(data, "race", "unknown"),
            password=_optional_str(data, "password", ""),
            level=_coerce_level(data.get("level")),
            location=_optional_str(data, "location", "unknown"),
        ),
        None,
    )


def parse_record_memory(text: str | None) -> tuple[MemoryRequest | None, str | None]:
    data, decode_error, present = _load_block(_RECORD_MEMORY_RE, text)
    if not present:
        return None, None
    if decode_error is not None:
        return None, f"Failed to parse memory data: {decode_error}"
    if not isinstance(data, dict):
        return None, "Failed to parse memory data: expected a JSON object"

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        return None, "Memory summary is required and must be a string"

    memory_type = data.get("type") or "exploration"
    if memory_type not in MEMORY_TYPES:
        return None, f"Invalid memory type. Must be one of: {', '.join(MEMORY_TYPES)}"

    details = data.get("details")
    return (
        MemoryRequest(
            summary=summary.strip(),
            type=memory_type,
            details=details if isinstance(details, dict) else {},
        ),
        None,
    )


def parse_record_path(text: str | None) -> tuple[PathRequest | None, str | None]:
    data, decode_error, present = _load_block(_RECORD_PATH_RE, text)
    if not present:
        return None, None
    if decode_error is not None:
        return None, f"Failed to parse path data: {decode_error}"
    if not isinstance(data, dict):
        return None, "Failed to parse path data: expected a JSON object"

    from_location = data.get("from")
    to_location = data.get("to")
    if not isinstance(from_location, str) or not from_location.strip():
        return None, "Path 'from' and 'to' are required and must be strings"
    if not isinstance(to_location, str) or not to_location.strip():
        return None, "Path 'from' and 'to' are required and must be strings"

    raw_directions = data.get("directions")
    allowed = ", ".join(DIRECTION_CODES)
    if not isinstance(raw_directions, list) or not raw_directions:
        return None, f"Path directions must be a non-empty list of {allowed}"

    directions: list[str] = []
    for raw in raw_directions:
        code = normalize_direction_code(raw)
        if code is None:
            return None, f"Invalid direction '{raw}'. Must be one of: {allowed}"
        directions.append(code)

    return PathRequest(from_location.strip(), to_location.strip(), directions), None
