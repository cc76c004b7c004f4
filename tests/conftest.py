from __future__ import annotations

import itertools

import pytest

from mud_agent.core.characters import CharacterBook
from mud_agent.persistence.sqlalchemy.db import build_engine, build_session_factory, create_schema
from mud_agent.persistence.sqlalchemy.uow import SQLAlchemyUnitOfWork


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    create_schema(engine)
    return build_session_factory(engine)


@pytest.fixture()
def uow_factory(session_factory):
    def _factory():
        return SQLAlchemyUnitOfWork(session_factory)

    return _factory


@pytest.fixture()
def clock():
    counter = itertools.count()

    def _clock():
        return f"2024-01-01T00:00:{next(counter) % 60:02d}Z"

    return _clock


@pytest.fixture()
def book(uow_factory, clock):
    ids = itertools.count(1)
    return CharacterBook(uow_factory, clock=clock, id_factory=lambda: f"char-{next(ids)}")
