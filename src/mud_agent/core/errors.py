from __future__ import annotations


class MudAgentError(Exception):
    pass


class AgentCallError(MudAgentError):
    """The chat-completion backend could not be reached or replied with garbage."""


class PersistenceError(MudAgentError):
    pass


class ConfigError(MudAgentError):
    pass


class SessionClosedError(MudAgentError):
    pass
