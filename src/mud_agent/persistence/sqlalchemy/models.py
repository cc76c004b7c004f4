from __future__ import annotations

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Character(TimestampMixin, Base):
    __tablename__ = "mud_characters"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    name_normalized: Mapped[str] = mapped_column(String(128), nullable=False)
    character_class: Mapped[str] = mapped_column(String(64), nullable=False, default="unknown")
    race: Mapped[str] = mapped_column(String(64), nullable=False, default="unknown")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    location: Mapped[str] = mapped_column(String(256), nullable=False, default="unknown")
    password: Mapped[str] = mapped_column(String(128), nullable=False, default="")

    current_room_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    rooms_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    movements_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    paths_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    memories_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    # ISO-8601 strings as shown to the agent; row timestamps live in the mixin.
    first_created: Mapped[str | None] = mapped_column(String(40), nullable=True)
    last_played: Mapped[str | None] = mapped_column(String(40), nullable=True)

    __table_args__ = (
        Index("ix_mud_characters_name_normalized", "name_normalized"),
    )
