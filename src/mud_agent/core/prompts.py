from __future__ import annotations

from .types import CharacterContext, MEMORY_TYPES

BASE_INSTRUCTION = """\
You are an experienced player of a Diku-style MUD, connected over telnet.
Create a character, advance it, and make friends with other players along
the way.

**Commands**
The game is keyword driven, not a natural language parser. Commands are
ACTION [TARGET] [TOPIC], using nouns that appear in room, item and NPC
descriptions, or global commands listed by "help".

Good: "look", "north", "get sword", "attack orc", "ask girl guide",
"say hello", "give sword girl".
Bad: "ask girl for guide", "please give me the sword", full sentences,
and diagonal directions such as "ne" or "nw".

**Status line**
Before each prompt the game prints a status line such as:
"56H 118V 1499X 0.00% 0C T:60 Exits:NSEW"
- H: hit points
- V: movement points
- X: experience points
- %: progress towards the next level
- C: coins carried
- T: seconds until the next game tick
- Exits: one letter per open direction (N, S, E, W, U, D); a letter in
  parentheses is behind a closed door.

**Each reply**
1. Show a short plan in a <plan>...</plan> block.
2. Send exactly one command in a <command>...</command> block. The block
   must hold a single line; multi-line commands are rejected. Use
   <command>return</command> to send an empty line.

**Rules**
- Always include a <command> block.
- If the game answers "Huh?!" the command was invalid; use "help".
- Never repeat a failed command twice in a row.
- Directions are the compass points N, S, E, W, U, D only.
- Use "look <npc>" before talking to an NPC, "cons <target>" before a
  fight and "get all corpse" after one.
- Eat and drink when hungry or thirsty; "rent" at an inn before leaving.
"""

NAVIGATION_HELP = """\
**Navigation Helper Commands**
These are answered locally from your map instead of being sent to the game:
- <command>/point <destination></command> gives the next step towards a room.
- <command>/wayfind <destination></command> gives the full route.
Destinations match partial room names, case-insensitive.

**Pathfinding Tips**
- Move with single compass letters so the map can follow you.
- Use "exits" in a new room to reveal where each direction leads.
- Record routes worth remembering:
<record-path>
{"from": "Temple", "to": "Market", "directions": ["S", "S", "E"]}
</record-path>
"""

MEMORY_BLOCK = """\
<record-memory>
{
  "summary": "Brief description",
  "type": "%s",
  "details": { "key": "value" }
}
</record-memory>""" % "|".join(MEMORY_TYPES)

NEW_CHARACTER_BLOCK = """\
<new-character>
{
  "name": "YourCharacterName",
  "class": "chosen_class",
  "race": "chosen_race",
  "password": "your_password",
  "level": 1,
  "location": "current_location"
}
</new-character>"""


def _contact_rule(contact_email: str | None) -> str:
    if not contact_email:
        return ""
    return f"- If the game asks for an email address, use {contact_email}.\n"


def _character_section(context: CharacterContext) -> str:
    memories = context.memories or "- none yet"
    return (
        "**Character Context**\n"
        f"Continuing as: {context.name} (Level {context.level} {context.character_class}, {context.race})\n\n"
        f"Character password: {context.password}\n"
        f"Last location: {context.location}\n"
        f"Recent memories:\n{memories}\n\n"
        f"Navigation:\n{context.navigation}\n\n"
        "Login: send the character name by itself as the first command and the "
        "password by itself as the second.\n\n"
        f"Record important experiences:\n{MEMORY_BLOCK}\n\n"
        "Continue with this character's goals and relationships."
    )


def _creation_section() -> str:
    return (
        "**Character Creation**\n"
        "First command: <command>start</command>\n\n"
        f"After creating your character, record it:\n{NEW_CHARACTER_BLOCK}\n\n"
        f"You may record significant experiences:\n{MEMORY_BLOCK}\n\n"
        'The system answers these blocks with "OK" or "ERROR - message".'
    )


def build_instruction(context: CharacterContext | None = None, *, contact_email: str | None = None) -> str:
    """Compose the fixed instruction message for a session."""
    base = BASE_INSTRUCTION + _contact_rule(contact_email)
    section = _character_section(context) if context is not None else _creation_section()
    return f"{base}\n{NAVIGATION_HELP}\n{section}"
