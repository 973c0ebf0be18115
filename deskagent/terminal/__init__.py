"""Terminal sessions for agents: host service, origin registry and tools."""

from deskagent.terminal.registry import OriginRegistry
from deskagent.terminal.service import LocalShellService, TerminalService
from deskagent.terminal.tools import TERMINAL_TOOL_NAMES, TerminalToolFamily, is_terminal_tool

__all__ = [
    "OriginRegistry",
    "LocalShellService",
    "TerminalService",
    "TerminalToolFamily",
    "TERMINAL_TOOL_NAMES",
    "is_terminal_tool",
]
