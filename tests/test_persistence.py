from __future__ import annotations

import pytest

from mud_agent.persistence.sqlalchemy.db import build_engine, build_session_factory, create_schema
from mud_agent.persistence.sqlalchemy.uow import SQLAlchemyUnitOfWork


def _save(uow, character_id="c1", name="Aria"):
    return uow.characters.save(
        character_id=character_id,
        name=name,
        character_class="cleric",
        race="elf",
        level=1,
        location="unknown",
        password="",
        current_room_id=None,
        rooms_json="{}",
        movements_json="[]",
        paths_json="[]",
        memories_json="[]",
        created_at="2024-01-01T00:00:00Z",
        last_played=None,
    )


def test_uncommitted_write_is_rolled_back(uow_factory):
    with uow_factory() as uow:
        _save(uow)

    with uow_factory() as uow:
        assert uow.characters.list_all() == []


def test_error_inside_unit_of_work_discards_changes(uow_factory):
    with pytest.raises(RuntimeError):
        with uow_factory() as uow:
            _save(uow)
            raise RuntimeError("boom")

    with uow_factory() as uow:
        assert uow.characters.get("c1") is None


def test_save_upserts_existing_row(uow_factory):
    with uow_factory() as uow:
        _save(uow, name="Aria")
        uow.commit()
    with uow_factory() as uow:
        _save(uow, name="Aria the Bold")
        uow.commit()

    with uow_factory() as uow:
        rows = uow.characters.list_all()
        assert [(r.id, r.name, r.name_normalized) for r in rows] == [("c1", "Aria the Bold", "aria the bold")]


def test_file_database_directory_is_created(tmp_path):
    target = tmp_path / "nested" / "characters.db"
    engine = build_engine(f"sqlite:///{target}")
    create_schema(engine)
    session_factory = build_session_factory(engine)

    with SQLAlchemyUnitOfWork(session_factory) as uow:
        _save(uow)
        uow.commit()

    assert target.exists()
    engine.dispose()
