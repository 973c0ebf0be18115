"""
Core tools: shell, files, search, web and agent management.

Each handler returns a FamilyResult whose ``data`` becomes the tool output.
Backend and store errors propagate to the dispatcher, which reports them.
"""

import logging
from typing import Any, Awaitable, Callable

from .base import FamilyResult, ToolContext, require_arg

logger = logging.getLogger("deskagent.families.core")

CoreHandler = Callable[[dict[str, Any], ToolContext], Awaitable[FamilyResult]]


async def shell(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    result = await ctx.services.require("backend").execute_shell(
        require_arg(args, "command"),
        workdir=args.get("workdir") or ctx.workspace_root,
        timeout_ms=args.get("timeout_ms"),
    )
    return FamilyResult.ok(result)


async def read_file(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    content = await ctx.services.require("backend").read_file(
        require_arg(args, "path"),
        start_line=args.get("start_line"),
        end_line=args.get("end_line"),
    )
    # Empty files are a successful read.
    return FamilyResult.ok(content if content else "(empty file)")


async def write_file(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    path = require_arg(args, "path")
    content = args.get("content")
    if content is None:
        require_arg(args, "content")
    await ctx.services.require("backend").write_file(
        path, content, append=args.get("mode") == "append"
    )
    return FamilyResult.ok(f"File written successfully: {path}")


async def list_directory(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    listing = await ctx.services.require("backend").list_directory(
        require_arg(args, "path"),
        depth=args.get("depth"),
        include_hidden=bool(args.get("include_hidden", False)),
    )
    return FamilyResult.ok(listing)


async def search_files(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    pattern = require_arg(args, "pattern")
    results = await ctx.services.require("backend").search_files(
        pattern,
        search_path=args.get("path"),
        max_results=args.get("max_results"),
    )
    return FamilyResult.ok(results)


async def web_search(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    results = await ctx.services.require("backend").web_search(
        require_arg(args, "query"),
        num_results=args.get("num_results"),
        search_type=args.get("search_type"),
        depth=args.get("depth"),
    )
    metadata: dict[str, Any] = {}
    if results.get("images"):
        metadata["images"] = results["images"]
    if "gathered_pages" in results:
        metadata["gatheredPages"] = results["gathered_pages"]
    return FamilyResult(success=True, data=results, metadata=metadata)


async def browse(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    result = await ctx.services.require("backend").browse(
        require_arg(args, "url"), render=bool(args.get("render", False))
    )
    return FamilyResult.ok(result)


async def hidden_web_search(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    """Top search hit per query, for inline hyperlinks. Failed queries are skipped."""
    queries = args.get("queries") or []
    link_type = args.get("link_type", "learning")
    backend = ctx.services.require("backend")

    links = []
    for query in queries:
        try:
            found = await backend.web_search(query, search_type="general", depth=1)
        except Exception as e:
            logger.warning(f"Hidden web search failed for {query!r}: {e}")
            continue
        hits = found.get("results") or found.get("search_results") or []
        if hits:
            top = hits[0]
            links.append(
                {
                    "term": query,
                    "url": top.get("url"),
                    "title": top.get("title"),
                    "snippet": top.get("snippet") or "",
                    "linkType": link_type,
                }
            )
    return FamilyResult(success=True, data=links or "[]", metadata={"hidden": True})


async def invoke_agent(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    agents = ctx.services.require("agents")
    agent_id = require_arg(args, "agent_id")

    agent = await agents.get(agent_id)
    if agent is None:
        agent = next((a for a in await agents.list() if a.get("name") == agent_id), None)

    if agent is None:
        return FamilyResult(
            success=False,
            data={"success": False, "status": "error", "message": f"Agent not found: {agent_id}"},
            error=f"Agent not found: {agent_id}",
            metadata={"errorType": "not_found", "retryable": False},
        )

    if agent.get("state") != "on":
        message = f"Agent is {agent.get('state')}. Please enable it first."
        return FamilyResult(
            success=False,
            data={
                "success": False,
                "agent_name": agent.get("name"),
                "status": "error",
                "message": message,
            },
            error=message,
            metadata={"errorType": "agent_unavailable", "retryable": False},
        )

    execution = await agents.execute(
        agent["id"], message=require_arg(args, "message"), context=args.get("context") or {}
    )
    return FamilyResult.ok(
        {
            "success": True,
            "execution_id": execution.get("id"),
            "agent_name": agent.get("name"),
            "status": execution.get("status"),
            "message": f'Agent "{agent.get("name")}" has been invoked. '
            f"Execution ID: {execution.get('id')}",
        }
    )


async def list_agents(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    agents = ctx.services.require("agents")
    if args.get("state"):
        found = await agents.list_by_state(args["state"])
    elif args.get("tags"):
        found = await agents.list_by_tags(list(args["tags"]))
    else:
        found = await agents.list()

    summary = [
        {
            "id": a.get("id"),
            "name": a.get("name"),
            "description": a.get("description"),
            "state": a.get("state"),
            "tags": a.get("tags") or [],
            "allowed_tools": a.get("allowedTools") or [],
            "workflows": a.get("workflows") or [],
        }
        for a in found
    ]
    return FamilyResult.ok({"success": True, "agents": summary, "count": len(summary)})


async def create_agent(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    agent = await ctx.services.require("agents").create(
        {
            "name": require_arg(args, "name"),
            "description": require_arg(args, "description"),
            "masterPrompt": require_arg(args, "master_prompt"),
            "workflows": args.get("workflows") or [],
            "allowedTools": args.get("allowed_tools") or [],
            "trigger": args.get("trigger"),
        }
    )
    return FamilyResult.ok(
        {
            "success": True,
            "agent_id": agent.get("id"),
            "agent_name": agent.get("name"),
            "message": f'Agent "{agent.get("name")}" created successfully with ID: '
            f"{agent.get('id')}",
        }
    )


async def message_search(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    query = require_arg(args, "query")
    limit = min(int(args.get("limit") or 10), 50)
    results = await ctx.services.require("bookmarks").search(query, limit)
    return FamilyResult.ok({"query": query, "results": results, "total_results": len(results)})


async def memory_search(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    query = require_arg(args, "query")
    limit = min(int(args.get("limit") or 5), 20)
    results = await ctx.services.require("memories").search(query, limit, ctx.session_id)
    return FamilyResult.ok({"query": query, "results": results, "total_results": len(results)})


CORE_HANDLERS: dict[str, CoreHandler] = {
    "shell": shell,
    "read_file": read_file,
    "write_file": write_file,
    "list_directory": list_directory,
    "search_files": search_files,
    "web_search": web_search,
    "browse": browse,
    "hidden_web_search": hidden_web_search,
    "invoke_agent": invoke_agent,
    "list_agents": list_agents,
    "create_agent": create_agent,
    "message_search": message_search,
    "memory_search": memory_search,
}


def is_core_tool(name: str) -> bool:
    return name in CORE_HANDLERS


async def execute_core_tool(name: str, args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    return await CORE_HANDLERS[name](args, ctx)
