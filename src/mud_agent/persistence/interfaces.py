from __future__ import annotations

from typing import Any, Protocol


class CharacterRepo(Protocol):
    def get(self, character_id: str): ...
    def list_all(self) -> list[Any]: ...
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
    ): ...


class UnitOfWork(Protocol):
    characters: CharacterRepo

    def commit(self) -> None: ...
    def rollback(self) -> None: ...

    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
