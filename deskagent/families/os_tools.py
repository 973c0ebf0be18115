"""
OS integration tools: reveal files and re-index the file system.
"""

from typing import Any

from .base import FamilyResult, ToolContext, require_arg

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "open_file_explorer",
        "description": (
            "Open the system file explorer (Finder, Explorer, etc.) at a specific path. Use "
            'this when the user asks to "show me the file" or "open the folder".'
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The file or directory path to reveal"},
            },
            "required": ["path"],
        },
    },
    {
        "name": "trigger_indexing",
        "description": (
            "Manually trigger a re-indexing of the file system. Use this if the user "
            "complains that search results are outdated or missing new files."
        ),
        "parameters": {"type": "object", "properties": {}, "required": []},
    },
]

TOOL_NAMES = frozenset(t["name"] for t in TOOL_DEFINITIONS)


def is_os_tool(name: str) -> bool:
    return name in TOOL_NAMES


async def execute_os_tool(name: str, args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    if name == "open_file_explorer":
        path = require_arg(args, "path")
        result = await ctx.services.require("backend").open_file_location(path)
        if result.get("success"):
            return FamilyResult.ok(f"Opened file explorer at: {path}")
        return FamilyResult.failure(result.get("message") or "Failed to open file location")

    if name == "trigger_indexing":
        await ctx.services.require("backend").start_indexing()
        return FamilyResult.ok("Indexing triggered successfully")

    return FamilyResult.failure(f"Unknown OS tool: {name}", error_type="unknown_tool")
