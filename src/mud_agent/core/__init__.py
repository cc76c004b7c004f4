from .characters import CharacterBook
from .coordinator import CoordinatorState, TurnCoordinator, TurnEvent, transition
from .errors import AgentCallError, ConfigError, MudAgentError, PersistenceError, SessionClosedError
from .extract import extract_command, extract_plan, parse_command
from .ports import AgentPort, ApprovalPort, OperatorPort, SessionPort, SessionTransport
from .prompts import build_instruction
from .room_graph import RoomGraphBuilder, find_route
from .tokens import TokenCounter, word_token_count
from .transcript import Transcript
from .types import (
    CharacterContext,
    CharacterRecord,
    KeyMemory,
    Message,
    MovementRecord,
    PathMemory,
    Role,
    RoomNode,
    TurnResult,
)

__all__ = [
    "CharacterBook",
    "CoordinatorState",
    "TurnCoordinator",
    "TurnEvent",
    "transition",
    "AgentCallError",
    "ConfigError",
    "MudAgentError",
    "PersistenceError",
    "SessionClosedError",
    "extract_command",
    "extract_plan",
    "parse_command",
    "AgentPort",
    "ApprovalPort",
    "OperatorPort",
    "SessionPort",
    "SessionTransport",
    "build_instruction",
    "RoomGraphBuilder",
    "find_route",
    "TokenCounter",
    "word_token_count",
    "Transcript",
    "CharacterContext",
    "CharacterRecord",
    "KeyMemory",
    "Message",
    "MovementRecord",
    "PathMemory",
    "Role",
    "RoomNode",
    "TurnResult",
]
