from .config import AppConfig, load_config
from .core.characters import CharacterBook
from .core.coordinator import TurnCoordinator
from .core.room_graph import RoomGraphBuilder
from .core.tokens import word_token_count
from .core.transcript import Transcript
from .runner import SessionRunner

__all__ = [
    "AppConfig",
    "load_config",
    "CharacterBook",
    "TurnCoordinator",
    "RoomGraphBuilder",
    "Transcript",
    "SessionRunner",
    "word_token_count",
]
