"""
Backup tools: list, restore, delete and create file backups.
"""

import logging
import shlex
from typing import Any

from .base import FamilyResult, ToolContext, require_arg

logger = logging.getLogger("deskagent.families.backup")

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "list_backups",
        "description": (
            "List all available backup files. Returns a list of backups with their original "
            "paths, sizes, and archive dates. Use this to see what files can be restored."
        ),
        "parameters": {"type": "object", "properties": {}, "required": []},
    },
    {
        "name": "restore_backup",
        "description": (
            "Restore a file from a backup. This will overwrite the current file with the "
            "backup version. Use list_backups first to find the correct backup ID."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "backupId": {
                    "type": "string",
                    "description": "The ID of the backup to restore (usually the full path to "
                    "the backup file)",
                },
            },
            "required": ["backupId"],
        },
    },
    {
        "name": "delete_backup",
        "description": "Delete a backup file. Use this to free up space or remove old backups.",
        "parameters": {
            "type": "object",
            "properties": {
                "backupId": {"type": "string", "description": "The ID of the backup to delete"},
            },
            "required": ["backupId"],
        },
    },
    {
        "name": "create_backup",
        "description": (
            "Create a backup of a file immediately. Supports compression (zstd/gzip) for "
            "efficient storage."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to the file to backup"},
            },
            "required": ["path"],
        },
    },
]

TOOL_NAMES = frozenset(t["name"] for t in TOOL_DEFINITIONS)


def backup_strategies(source: str) -> list[tuple[str, str, str]]:
    """Ordered (command, destination, label) attempts for backing up ``source``."""
    src = shlex.quote(source)
    zstd_dest = f"{source}.backup.zst"
    gzip_dest = f"{source}.backup.gz"
    copy_dest = f"{source}.backup"
    return [
        (f"zstd -q -f {src} -o {shlex.quote(zstd_dest)}", zstd_dest, "zstd compressed"),
        (f"gzip -c {src} > {shlex.quote(gzip_dest)}", gzip_dest, "gzip compressed"),
        (f"cp {src} {shlex.quote(copy_dest)}", copy_dest, "uncompressed"),
    ]


def _shell_succeeded(result: dict[str, Any]) -> bool:
    if "success" in result:
        return bool(result["success"])
    return result.get("exit_code", result.get("exitCode", 1)) == 0


async def _create_backup(source: str, ctx: ToolContext) -> FamilyResult:
    backend = ctx.services.require("backend")
    last: dict[str, Any] = {}
    for command, dest, label in backup_strategies(source):
        last = await backend.execute_shell(command)
        if _shell_succeeded(last):
            return FamilyResult.ok(f"Backup created: {dest} ({label})")
        logger.debug(f"Backup attempt failed for {source}: {command}")
    message = f"Failed to create backup for {source}"
    if last.get("stderr"):
        message = f"{message}: {last['stderr']}"
    return FamilyResult.failure(message)


def is_backup_tool(name: str) -> bool:
    return name in TOOL_NAMES


async def execute_backup_tool(name: str, args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    if name == "list_backups":
        return FamilyResult.ok(await ctx.services.require("backups").list())

    if name == "restore_backup":
        backup_id = require_arg(args, "backupId")
        if await ctx.services.require("backups").restore(backup_id):
            return FamilyResult.ok(f"Successfully restored backup: {backup_id}")
        return FamilyResult.failure(f"Failed to restore backup: {backup_id}")

    if name == "delete_backup":
        backup_id = require_arg(args, "backupId")
        if await ctx.services.require("backups").delete(backup_id):
            return FamilyResult.ok(f"Successfully deleted backup: {backup_id}")
        return FamilyResult.failure(f"Failed to delete backup: {backup_id}")

    if name == "create_backup":
        return await _create_backup(require_arg(args, "path"), ctx)

    return FamilyResult.failure(f"Unknown backup tool: {name}", error_type="unknown_tool")
