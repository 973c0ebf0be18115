"""
Workflow tools: create, run and manage stored workflows.
"""

import logging
from typing import Any

from .base import FamilyResult, ToolContext, require_arg

logger = logging.getLogger("deskagent.families.workflow")

_WORKFLOW_TYPES = ["hook", "process", "manual"]

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "create_workflow",
        "description": (
            "Create a new workflow with steps, triggers, and behavior settings. Use this "
            "when the user wants to automate a task or create a repeatable process."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Name of the workflow"},
                "description": {
                    "type": "string",
                    "description": "Description of what the workflow does",
                },
                "workflowType": {
                    "type": "string",
                    "description": "Type of workflow: hook (auto-triggered), process "
                    "(step-by-step), or manual (user-triggered)",
                    "enum": _WORKFLOW_TYPES,
                },
                "category": {
                    "type": "string",
                    "description": 'Category for organizing workflows (e.g., "development", '
                    '"documentation", "testing")',
                },
                "steps": {
                    "type": "array",
                    "description": "Array of workflow steps defining the process.",
                    "items": {
                        "type": "object",
                        "properties": {
                            "id": {
                                "type": "string",
                                "description": 'Unique identifier for the step (e.g. "step-1")',
                            },
                            "name": {
                                "type": "string",
                                "description": "Human-readable name for the step",
                            },
                            "prompt": {
                                "type": "string",
                                "description": "The instructions for the AI to follow in this "
                                "step. Can use {{var}} for variable substitution.",
                            },
                            "order": {
                                "type": "number",
                                "description": "Execution order (1, 2, 3...)",
                            },
                            "nextStep": {
                                "type": "string",
                                "description": "ID of the next step to execute after this one.",
                            },
                            "outputFormat": {
                                "type": "string",
                                "description": 'Optional format hint: "text", "markdown", '
                                '"json", or "file".',
                            },
                            "outputVar": {
                                "type": "string",
                                "description": "Optional variable name to store the output "
                                "of this step for use in later steps.",
                            },
                            "requiresConfirmation": {
                                "type": "boolean",
                                "description": "Whether to pause and wait for user "
                                "confirmation before moving to the next step.",
                            },
                            "decision": {
                                "type": "object",
                                "description": "Optional branching logic based on step output.",
                                "properties": {
                                    "condition": {
                                        "type": "string",
                                        "description": "Natural language description of the "
                                        "decision criteria.",
                                    },
                                    "trueBranch": {
                                        "type": "string",
                                        "description": "Step ID to follow if condition is met.",
                                    },
                                    "falseBranch": {
                                        "type": "string",
                                        "description": "Step ID to follow if condition is NOT met.",
                                    },
                                },
                            },
                        },
                        "required": ["name", "prompt"],
                    },
                },
                "intent": {
                    "type": "string",
                    "description": "Keywords/phrases that describe when this workflow should "
                    "be suggested or triggered",
                },
                "trigger": {
                    "type": "object",
                    "description": "Trigger configuration for hook workflows (type, patterns, "
                    "keywords)",
                },
                "outputSettings": {
                    "type": "object",
                    "description": "Output settings (folder, filePattern, formatDescription)",
                },
                "behavior": {
                    "type": "object",
                    "description": "Behavior settings (asToolcall, autoRetry, background, "
                    "notifyOnComplete)",
                },
            },
            "required": ["name", "description", "workflowType", "steps"],
        },
    },
    {
        "name": "execute_workflow",
        "description": (
            "Execute a workflow by ID. Returns the execution context for tracking progress."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "workflowId": {"type": "string", "description": "ID of the workflow to execute"},
                "variables": {
                    "type": "object",
                    "description": "Variables to pass to the workflow execution",
                },
            },
            "required": ["workflowId"],
        },
    },
    {
        "name": "list_workflows",
        "description": "List all available workflows, optionally filtered by category or type.",
        "parameters": {
            "type": "object",
            "properties": {
                "category": {
                    "type": "string",
                    "description": 'Filter by category (e.g., "default", "custom")',
                },
                "workflowType": {
                    "type": "string",
                    "description": "Filter by type: hook, process, or manual",
                    "enum": _WORKFLOW_TYPES,
                },
                "toolcallOnly": {
                    "type": "boolean",
                    "description": "Only return workflows that can be used as tool calls",
                },
            },
            "required": [],
        },
    },
    {
        "name": "get_workflow",
        "description": "Get detailed information about a specific workflow.",
        "parameters": {
            "type": "object",
            "properties": {
                "workflowId": {"type": "string", "description": "ID of the workflow to retrieve"},
            },
            "required": ["workflowId"],
        },
    },
    {
        "name": "update_workflow",
        "description": "Update an existing workflow with new settings.",
        "parameters": {
            "type": "object",
            "properties": {
                "workflowId": {"type": "string", "description": "ID of the workflow to update"},
                "updates": {
                    "type": "object",
                    "description": "Object containing the fields to update",
                },
            },
            "required": ["workflowId", "updates"],
        },
    },
    {
        "name": "delete_workflow",
        "description": "Delete a workflow by ID.",
        "parameters": {
            "type": "object",
            "properties": {
                "workflowId": {"type": "string", "description": "ID of the workflow to delete"},
            },
            "required": ["workflowId"],
        },
    },
]

TOOL_NAMES = frozenset(t["name"] for t in TOOL_DEFINITIONS)


def _behavior(workflow: dict[str, Any]) -> dict[str, Any]:
    return workflow.get("behavior") or {}


async def _create(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    steps = args.get("steps") or []
    if not steps:
        return FamilyResult.failure(
            "Workflow must have at least one step", error_type="validation_error"
        )

    normalized = [
        {**step, "id": step.get("id") or f"step-{i + 1}", "order": step.get("order") or i + 1}
        for i, step in enumerate(steps)
    ]
    request = {
        "name": args.get("name"),
        "description": args.get("description"),
        "workflowType": args.get("workflowType"),
        "category": args.get("category"),
        "steps": normalized,
        "intent": args.get("intent"),
        "trigger": args.get("trigger"),
        "outputSettings": args.get("outputSettings"),
        "behavior": args.get("behavior"),
    }
    workflow = await ctx.services.require("workflows").create(request)
    return FamilyResult.ok(
        {
            "workflowId": workflow.get("id"),
            "name": workflow.get("name"),
            "type": workflow.get("workflowType"),
            "stepCount": len(workflow.get("steps") or []),
            "message": f'Workflow "{workflow.get("name")}" created successfully',
        },
        category=workflow.get("category"),
        asToolcall=_behavior(workflow).get("asToolcall", False),
    )


async def _execute(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    workflow_id = require_arg(args, "workflowId")
    service = ctx.services.require("workflows")
    execution = await service.execute(workflow_id, args.get("variables") or {})
    workflow = await service.get(workflow_id) or {}
    return FamilyResult.ok(
        {
            "executionId": execution.get("executionId"),
            "workflowId": execution.get("workflowId", workflow_id),
            "workflowName": workflow.get("name"),
            "currentStepId": execution.get("currentStepId"),
            "status": execution.get("status"),
            "message": f'Workflow "{workflow.get("name")}" execution started',
        },
        startedAt=execution.get("startedAt"),
    )


async def _list(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    service = ctx.services.require("workflows")
    if args.get("toolcallOnly"):
        workflows = await service.list_toolcall_workflows()
    elif args.get("category"):
        workflows = await service.list_by_category(args["category"])
    elif args.get("workflowType"):
        workflows = await service.list_by_type(args["workflowType"])
    else:
        workflows = await service.list()

    summary = [
        {
            "id": wf.get("id"),
            "name": wf.get("name"),
            "description": wf.get("description"),
            "type": wf.get("workflowType"),
            "category": wf.get("category"),
            "stepCount": len(wf.get("steps") or []),
            "runCount": wf.get("runCount", 0),
            "status": wf.get("status"),
            "asToolcall": _behavior(wf).get("asToolcall", False),
        }
        for wf in workflows
    ]
    return FamilyResult.ok(
        {"workflows": summary, "count": len(summary)},
        filters={
            "category": args.get("category"),
            "workflowType": args.get("workflowType"),
            "toolcallOnly": args.get("toolcallOnly"),
        },
    )


async def _get(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    workflow_id = require_arg(args, "workflowId")
    workflow = await ctx.services.require("workflows").get(workflow_id)
    if not workflow:
        return FamilyResult.failure(f"Workflow {workflow_id} not found", error_type="not_found")
    steps = workflow.get("steps") or []
    return FamilyResult.ok(
        workflow,
        stepCount=len(steps),
        hasDecisions=any(step.get("decision") for step in steps),
    )


async def _update(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    workflow_id = require_arg(args, "workflowId")
    updated = await ctx.services.require("workflows").update(
        workflow_id, args.get("updates") or {}
    )
    if not updated:
        return FamilyResult.failure(f"Workflow {workflow_id} not found", error_type="not_found")
    return FamilyResult.ok(
        {
            "workflowId": updated.get("id"),
            "name": updated.get("name"),
            "message": f'Workflow "{updated.get("name")}" updated successfully',
        },
        updatedAt=updated.get("updatedAt"),
    )


async def _delete(args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
    workflow_id = require_arg(args, "workflowId")
    deleted = await ctx.services.require("workflows").delete(workflow_id)
    if not deleted:
        return FamilyResult.failure(f"Workflow {workflow_id} not found", error_type="not_found")
    return FamilyResult.ok({"workflowId": workflow_id, "message": "Workflow deleted successfully"})


_HANDLERS = {
    "create_workflow": (_create, "create", "creation_failed"),
    "execute_workflow": (_execute, "execute", "execution_failed"),
    "list_workflows": (_list, "list", "list_failed"),
    "get_workflow": (_get, "get", "get_failed"),
    "update_workflow": (_update, "update", "update_failed"),
    "delete_workflow": (_delete, "delete", "delete_failed"),
}


def is_workflow_tool(name: str) -> bool:
    return name in TOOL_NAMES


async def execute_workflow_tool(
    name: str, args: dict[str, Any], ctx: ToolContext
) -> FamilyResult:
    """Route a workflow tool call. Store failures become structured results."""
    entry = _HANDLERS.get(name)
    if entry is None:
        return FamilyResult.failure(
            f"Unknown workflow tool: {name}",
            error_type="unknown_tool",
            availableTools=sorted(TOOL_NAMES),
        )
    handler, verb, error_type = entry
    try:
        return await handler(args, ctx)
    except Exception as e:
        logger.warning(f"Workflow tool {name} failed: {e}")
        return FamilyResult.failure(
            f"Failed to {verb} workflow: {e}",
            error_type=getattr(e, "error_kind", error_type),
            retryable=getattr(e, "retryable", None),
        )
