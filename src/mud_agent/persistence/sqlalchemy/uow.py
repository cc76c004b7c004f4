from __future__ import annotations

import logging

from sqlalchemy.orm import Session, sessionmaker

from .repos import CharacterRepo

logger = logging.getLogger(__name__)


class SQLAlchemyUnitOfWork:
    """One session per character write; anything not committed is rolled back."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self.session: Session | None = None
        self._committed = False

    def __enter__(self) -> "SQLAlchemyUnitOfWork":
        self.session = self._session_factory()
        self.characters = CharacterRepo(self.session)
        self._committed = False
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.session is None:
            return
        try:
            if exc_type is not None:
                logger.debug("Rolling back character session after %s", exc_type.__name__)
                self.rollback()
            elif not self._committed:
                self.rollback()
        finally:
            self.session.close()
            self.session = None

    def commit(self) -> None:
        if self.session is None:
            raise RuntimeError("unit of work is not active")
        self.session.commit()
        self._committed = True

    def rollback(self) -> None:
        if self.session is None:
            raise RuntimeError("unit of work is not active")
        self.session.rollback()
