from .chat_http import ChatCompletionClient
from .console import ConsoleOperator, ConsoleSession
from .telnet import TelnetSession

__all__ = ["ChatCompletionClient", "ConsoleOperator", "ConsoleSession", "TelnetSession"]
