from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Character


class CharacterRepo:
    def __init__(self, session: Session):
        self.session = session

    def get(self, character_id: str) -> Character | None:
        return self.session.get(Character, character_id)

    def list_all(self) -> list[Character]:
        stmt = select(Character).order_by(Character.created_at.asc(), Character.id.asc())
        return list(self.session.execute(stmt).scalars().all())

    def save(
        self,
        character_id: str,
        name: str,
        character_class: str,
        race: str,
        level: int,
        location: str,
        password: str,
        current_room_id: str | None,
        rooms_json: str,
        movements_json: str,
        paths_json: str,
        memories_json: str,
        created_at: str | None,
        last_played: str | None,
    ) -> Character:
        row = self.get(character_id)
        if row is None:
            row = Character(id=character_id)
            self.session.add(row)
        row.name = name
        row.name_normalized = name.strip().lower()
        row.character_class = character_class
        row.race = race
        row.level = level
        row.location = location
        row.password = password
        row.current_room_id = current_room_id
        row.rooms_json = rooms_json
        row.movements_json = movements_json
        row.paths_json = paths_json
        row.memories_json = memories_json
        row.first_created = created_at
        row.last_played = last_played
        self.session.flush()
        return row
