"""
Memory tools: explicit long-term memory management.
"""

from typing import Any

from .base import FamilyResult, ToolContext, require_arg

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "add_memory",
        "description": (
            "Explicitly store a fact, preference, or piece of information in long-term "
            'memory. Use this when the user says "Remember that..." or shares critical '
            "information that should persist."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "content": {"type": "string", "description": "The information to remember"},
                "category": {
                    "type": "string",
                    "description": 'Category for the memory (e.g., "user_preference", '
                    '"project_details", "decision")',
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Tags to help categorize and retrieve the memory",
                },
                "importance": {
                    "type": "string",
                    "enum": ["low", "medium", "high"],
                    "description": "Importance level of the memory",
                },
            },
            "required": ["content"],
        },
    },
    {
        "name": "delete_memory",
        "description": (
            "Delete a specific memory by its ID. Use this when information becomes obsolete "
            "or incorrect."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "memoryId": {"type": "string", "description": "The ID of the memory to delete"},
            },
            "required": ["memoryId"],
        },
    },
    {
        "name": "update_memory",
        "description": "Update an existing memory with new content or metadata.",
        "parameters": {
            "type": "object",
            "properties": {
                "memoryId": {"type": "string", "description": "The ID of the memory to update"},
                "content": {
                    "type": "string",
                    "description": "New content for the memory (optional)",
                },
                "category": {"type": "string", "description": "New category (optional)"},
                "notes": {"type": "string", "description": "Additional notes (optional)"},
            },
            "required": ["memoryId"],
        },
    },
    {
        "name": "list_recent_memories",
        "description": (
            "List the most recently created memories. Useful for reviewing what was just learned."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "limit": {
                    "type": "number",
                    "description": "Number of memories to return (default: 10)",
                },
            },
            "required": [],
        },
    },
]

TOOL_NAMES = frozenset(t["name"] for t in TOOL_DEFINITIONS)


def is_memory_tool(name: str) -> bool:
    return name in TOOL_NAMES


async def execute_memory_tool(name: str, args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    if name not in TOOL_NAMES:
        return FamilyResult.failure(f"Unknown memory tool: {name}", error_type="unknown_tool")

    memories = ctx.services.require("memories")

    if name == "add_memory":
        memory = await memories.create(
            content=require_arg(args, "content"),
            session_id=ctx.session_id,
            metadata={
                "category": args.get("category"),
                "tags": args.get("tags"),
                "importance": args.get("importance"),
                "source": "agent",
            },
        )
        return FamilyResult.ok(f"Memory added with ID: {memory.get('id')}")

    if name == "delete_memory":
        memory_id = require_arg(args, "memoryId")
        await memories.delete(memory_id)
        return FamilyResult.ok(f"Memory {memory_id} deleted successfully")

    if name == "update_memory":
        memory_id = require_arg(args, "memoryId")
        updated = await memories.update(
            memory_id,
            content=args.get("content"),
            metadata={"category": args.get("category")},
            notes=args.get("notes"),
        )
        if updated:
            return FamilyResult.ok(f"Memory {memory_id} updated successfully")
        return FamilyResult.failure(f"Memory {memory_id} not found", error_type="not_found")

    return FamilyResult.ok(await memories.recent(int(args.get("limit") or 10), ctx.session_id))
