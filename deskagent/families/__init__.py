"""Handler families for tool dispatch.

Each family module exposes ``TOOL_DEFINITIONS``, ``TOOL_NAMES``, an
``is_<family>_tool`` predicate and an async ``execute_<family>_tool``
handler taking ``(name, args, ctx)``.
"""

from deskagent.families.base import FamilyResult, ToolContext, require_arg

__all__ = ["FamilyResult", "ToolContext", "require_arg"]
