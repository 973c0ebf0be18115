"""
System tools: disk usage analysis and machine information.
"""

from typing import Any

from .base import FamilyResult, ToolContext

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "analyze_disk_usage",
        "description": (
            "Analyze disk usage to find space consumers. Returns detailed analysis of file "
            "and directory sizes, helpful for cleaning up disk space."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to analyze (default: current directory)",
                },
                "max_depth": {
                    "type": "number",
                    "description": "Maximum depth to traverse (default: 2)",
                },
                "top_n": {
                    "type": "number",
                    "description": "Number of top consumers to return (default: 10)",
                },
            },
            "required": [],
        },
    },
    {
        "name": "get_cleanup_suggestions",
        "description": (
            "Get AI-powered suggestions for cleaning up disk space. Identifies cache files, "
            "temporary directories, and large unused files."
        ),
        "parameters": {"type": "object", "properties": {}, "required": []},
    },
    {
        "name": "get_system_info",
        "description": (
            "Get comprehensive system information including disk space, memory usage, and "
            "OS details."
        ),
        "parameters": {"type": "object", "properties": {}, "required": []},
    },
    {
        "name": "get_storage_breakdown",
        "description": (
            "Get storage usage broken down by category (e.g., Documents, Images, Code, etc.)."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to analyze (default: current directory)",
                },
            },
            "required": [],
        },
    },
]

TOOL_NAMES = frozenset(t["name"] for t in TOOL_DEFINITIONS)


def is_system_tool(name: str) -> bool:
    return name in TOOL_NAMES


async def execute_system_tool(name: str, args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    if name not in TOOL_NAMES:
        return FamilyResult.failure(f"Unknown system tool: {name}", error_type="unknown_tool")

    backend = ctx.services.require("backend")
    if name == "analyze_disk_usage":
        analysis = await backend.analyze_disk(
            path=args.get("path"), max_depth=args.get("max_depth"), top_n=args.get("top_n")
        )
        return FamilyResult.ok(analysis)
    if name == "get_cleanup_suggestions":
        return FamilyResult.ok(await backend.cleanup_suggestions())
    if name == "get_system_info":
        return FamilyResult.ok({"disks": await backend.disk_info()})
    return FamilyResult.ok(await backend.storage_categories(path=args.get("path")))
