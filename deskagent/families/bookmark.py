"""
Bookmark tools: save, list and remove notes and snippets.
"""

import time
from typing import Any

from .base import FamilyResult, ToolContext, require_arg

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "create_bookmark",
        "description": (
            "Create a new bookmark for a note, snippet, or important piece of information. "
            'Use this when the user asks to "bookmark this" or "save this note".'
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "content": {"type": "string", "description": "The content to bookmark"},
                "tags": {"type": "string", "description": "Comma-separated tags for organization"},
                "notes": {"type": "string", "description": "Additional notes about the bookmark"},
            },
            "required": ["content"],
        },
    },
    {
        "name": "list_bookmarks",
        "description": (
            "List recent bookmarks or filter by search query. Use this to browse saved items."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "limit": {
                    "type": "number",
                    "description": "Number of bookmarks to return (default: 10)",
                },
            },
            "required": [],
        },
    },
    {
        "name": "delete_bookmark",
        "description": "Delete a bookmark by its ID.",
        "parameters": {
            "type": "object",
            "properties": {
                "bookmarkId": {"type": "string", "description": "The ID of the bookmark to delete"},
            },
            "required": ["bookmarkId"],
        },
    },
]

TOOL_NAMES = frozenset(t["name"] for t in TOOL_DEFINITIONS)


def is_bookmark_tool(name: str) -> bool:
    return name in TOOL_NAMES


async def execute_bookmark_tool(
    name: str, args: dict[str, Any], ctx: ToolContext
) -> FamilyResult:
    if name not in TOOL_NAMES:
        return FamilyResult.failure(f"Unknown bookmark tool: {name}", error_type="unknown_tool")

    bookmarks = ctx.services.require("bookmarks")

    if name == "create_bookmark":
        # Tool-created bookmarks are not tied to a chat message.
        bookmark = await bookmarks.create(
            message_id=f"tool_gen_{int(time.time() * 1000)}",
            session_id=ctx.session_id,
            content=require_arg(args, "content"),
            tags=args.get("tags"),
            notes=args.get("notes"),
        )
        return FamilyResult.ok(f"Bookmark created with ID: {bookmark.get('id')}")

    if name == "list_bookmarks":
        return FamilyResult.ok(await bookmarks.list(ctx.session_id, int(args.get("limit") or 10)))

    bookmark_id = require_arg(args, "bookmarkId")
    await bookmarks.delete(bookmark_id)
    return FamilyResult.ok(f"Bookmark {bookmark_id} deleted successfully")
