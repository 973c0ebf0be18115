"""
deskagent - Tool dispatcher.

Routes a model-issued ToolCall to the first handler family whose predicate
matches its name and always answers with a ToolResult. Nothing a handler
raises escapes ``ToolDispatcher.execute``.

Family order matters: the first matching family wins. The default order is
workflow, backup, system, memory, bookmark, os, then the terminal tools and
the remaining core tools.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Iterator, Optional

import httpx

from .exceptions import ToolExecutionError, ToolNotFoundError, redact_secrets
from .families import backup, bookmark, core, memory, os_tools, system, workflow
from .families.base import FamilyResult, ToolContext
from .models import ToolCall, ToolResult
from .observers import DispatchEvent, Observer, ObserverHub
from .services import ServiceBundle
from .terminal.registry import OriginRegistry
from .terminal.service import LocalShellService, TerminalService
from .terminal.tools import TerminalToolFamily, is_terminal_tool

logger = logging.getLogger("deskagent.dispatcher")

FamilyHandler = Callable[[str, dict[str, Any], ToolContext], Awaitable[FamilyResult]]


@dataclass
class DispatchOptions:
    """Per-call context supplied by the orchestration loop.

    Fields:
        session_id: The agent conversation issuing the call. Owns any
            terminal the call creates.
        workspace_root: Default working directory for shell-like tools.
        allowed_tools: When non-empty, only these tool names may run.
    """

    session_id: Optional[str] = None
    workspace_root: Optional[str] = None
    allowed_tools: Optional[list[str]] = None


@dataclass(frozen=True)
class HandlerFamily:
    name: str
    predicate: Callable[[str], bool]
    handler: FamilyHandler


class DispatchTable:
    """Ordered list of handler families; the first match wins."""

    def __init__(self, families: Iterable[HandlerFamily] = ()) -> None:
        self._families: list[HandlerFamily] = []
        for family in families:
            self.add(family)

    def add(self, family: HandlerFamily) -> None:
        if any(f.name == family.name for f in self._families):
            raise ValueError(f"Handler family already registered: {family.name}")
        self._families.append(family)

    def match(self, tool_name: str) -> Optional[HandlerFamily]:
        for family in self._families:
            if family.predicate(tool_name):
                return family
        return None

    def names(self) -> list[str]:
        return [f.name for f in self._families]

    def __iter__(self) -> Iterator[HandlerFamily]:
        return iter(self._families)

    def __len__(self) -> int:
        return len(self._families)


def default_dispatch_table(terminal: TerminalToolFamily) -> DispatchTable:
    return DispatchTable(
        [
            HandlerFamily("workflow", workflow.is_workflow_tool, workflow.execute_workflow_tool),
            HandlerFamily("backup", backup.is_backup_tool, backup.execute_backup_tool),
            HandlerFamily("system", system.is_system_tool, system.execute_system_tool),
            HandlerFamily("memory", memory.is_memory_tool, memory.execute_memory_tool),
            HandlerFamily("bookmark", bookmark.is_bookmark_tool, bookmark.execute_bookmark_tool),
            HandlerFamily("os", os_tools.is_os_tool, os_tools.execute_os_tool),
            HandlerFamily("terminal", is_terminal_tool, terminal.handle),
            HandlerFamily("core", core.is_core_tool, core.execute_core_tool),
        ]
    )


def _elapsed_ms(t0: float) -> int:
    return max(0, int((time.monotonic() - t0) * 1000))


class ToolDispatcher:
    """Executes tool calls against the handler families."""

    def __init__(
        self,
        services: Optional[ServiceBundle] = None,
        registry: Optional[OriginRegistry] = None,
        terminal_service: Optional[TerminalService] = None,
        observers: Optional[list[Observer]] = None,
        table: Optional[DispatchTable] = None,
    ) -> None:
        self.services = services or ServiceBundle()
        self.registry = registry if registry is not None else OriginRegistry()
        self.terminal = TerminalToolFamily(terminal_service or LocalShellService(), self.registry)
        self.table = table if table is not None else default_dispatch_table(self.terminal)
        self.observers = ObserverHub(observers)

    async def execute(self, call: ToolCall, options: Optional[DispatchOptions] = None) -> ToolResult:
        """Run ``call`` and return its result. Never raises for handler failures."""
        options = options or DispatchOptions()
        t0 = time.monotonic()
        try:
            result = await self._dispatch(call, options, t0)
        except ToolNotFoundError as e:
            result = ToolResult(
                tool_call_id=call.id,
                tool_name=call.name,
                success=False,
                output=e.message,
                error=e.message,
                duration_ms=_elapsed_ms(t0),
                metadata={"errorType": "unknown_tool", "retryable": False},
            )
        except ToolExecutionError as e:
            result = self._failure(call, str(e), t0, e.error_kind, e.retryable)
        except httpx.HTTPError as e:
            result = self._failure(
                call, redact_secrets(str(e)) or type(e).__name__, t0, "backend_unavailable", True
            )
        except Exception as e:
            logger.exception(f"Tool {call.name} failed")
            result = self._failure(call, str(e) or type(e).__name__, t0)

        logger.debug(
            f"Dispatched {call.name} ({call.id}) success={result.success} in {result.duration_ms}ms"
        )
        self.observers.emit(
            DispatchEvent(
                call=call,
                result=result,
                session_id=options.session_id,
                workspace_root=options.workspace_root,
            )
        )
        return result

    async def _dispatch(self, call: ToolCall, options: DispatchOptions, t0: float) -> ToolResult:
        if options.allowed_tools and call.name not in options.allowed_tools:
            message = f"Tool {call.name} is not allowed for this agent"
            return self._failure(call, message, t0, "tool_not_allowed", False)

        family = self.table.match(call.name)
        if family is None:
            raise ToolNotFoundError(call.name)

        ctx = ToolContext(
            session_id=options.session_id,
            workspace_root=options.workspace_root,
            services=self.services,
        )
        outcome = await family.handler(call.name, dict(call.arguments or {}), ctx)
        return ToolResult(
            tool_call_id=call.id,
            tool_name=call.name,
            success=outcome.success,
            output=outcome.output_text(),
            error=outcome.error,
            duration_ms=_elapsed_ms(t0),
            metadata=dict(outcome.metadata),
        )

    def _failure(
        self,
        call: ToolCall,
        message: str,
        t0: float,
        error_kind: Optional[str] = None,
        retryable: Optional[bool] = None,
    ) -> ToolResult:
        metadata: dict[str, Any] = {}
        if error_kind is not None:
            metadata["errorType"] = error_kind
        if retryable is not None:
            metadata["retryable"] = retryable
        return ToolResult(
            tool_call_id=call.id,
            tool_name=call.name,
            success=False,
            output=message,
            error=message,
            duration_ms=_elapsed_ms(t0),
            metadata=metadata,
        )

    async def close_owner_sessions(self, owner_session_id: str) -> list[str]:
        """Close every terminal created on behalf of ``owner_session_id``."""
        return await self.terminal.close_all_for_owner(owner_session_id)
