"""
Terminal tool family: lets agents create and drive persistent terminal
sessions.

Operations on one session are serialized by a per-session lock. Closing a
session while an operation is in flight makes that operation fail with a
non-retryable ``session_closed`` result.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Optional, TypeVar

from ..exceptions import (
    SessionClosedError,
    SessionNotFoundError,
    ToolExecutionError,
)
from ..families.base import FamilyResult, ToolContext
from ..models import SessionOrigin
from .registry import OriginRegistry
from .service import TerminalService

logger = logging.getLogger("deskagent.terminal.tools")

T = TypeVar("T")

TERMINAL_TOOL_NAMES = frozenset(
    {
        "create_terminal",
        "execute_command",
        "read_output",
        "list_terminals",
        "inspect_terminal",
        "close_terminal",
    }
)

NO_OUTPUT_MESSAGE = "(No new output - output is visible in terminal panel)"


def is_terminal_tool(name: str) -> bool:
    return name in TERMINAL_TOOL_NAMES


def _session_arg(args: dict[str, Any]) -> Optional[str]:
    return args.get("sessionId") or args.get("session_id")


def _missing_session_id() -> FamilyResult:
    return FamilyResult.failure(
        "Missing sessionId parameter", error_type="missing_parameter", retryable=False
    )


def _failure(prefix: str, exc: Exception, default_kind: str) -> FamilyResult:
    """Structured failure carrying the error kind and retry flag of ``exc``."""
    if isinstance(exc, ToolExecutionError) and exc.error_kind != ToolExecutionError.error_kind:
        return FamilyResult.failure(
            str(exc), error_type=exc.error_kind, retryable=exc.retryable
        )
    message = str(exc)
    if "permission denied" in message.lower():
        return FamilyResult.failure(
            f"{prefix}: {message}", error_type="permission_denied", retryable=False
        )
    return FamilyResult.failure(f"{prefix}: {message}", error_type=default_kind, retryable=True)


class TerminalToolFamily:
    """Terminal tools bound to a host service and an origin registry."""

    def __init__(
        self,
        service: TerminalService,
        registry: OriginRegistry,
        settle_delay: float = 0.15,
    ) -> None:
        self.service = service
        self.registry = registry
        self.settle_delay = settle_delay
        self._locks: dict[str, asyncio.Lock] = {}
        self._closed: dict[str, asyncio.Event] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def _closed_event(self, session_id: str) -> Optional[asyncio.Event]:
        """The session's close signal, or None once the session is gone."""
        event = self._closed.get(session_id)
        if event is None and self.service.exists(session_id):
            event = self._closed[session_id] = asyncio.Event()
        return event

    def _ensure_exists(self, session_id: str) -> None:
        if not self.service.exists(session_id):
            raise SessionNotFoundError(session_id)

    async def _guarded(self, session_id: str, operation: Awaitable[T]) -> T:
        """Await ``operation`` unless the session is closed first."""
        closed = self._closed_event(session_id)
        task = asyncio.ensure_future(operation)
        if closed is None or closed.is_set():
            task.cancel()
            raise SessionClosedError(session_id)
        waiter = asyncio.ensure_future(closed.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        raise SessionClosedError(session_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create(
        self,
        owner_session_id: Optional[str],
        workspace_root: Optional[str] = None,
        shell_type: str = "shell",
    ) -> FamilyResult:
        try:
            if owner_session_id:
                existing = self.registry.terminal_for_owner(owner_session_id)
                if existing and self.service.exists(existing):
                    logger.info(f"Reusing terminal {existing} for {owner_session_id}")
                    return FamilyResult.ok(
                        {
                            "sessionId": existing,
                            "workspaceRoot": workspace_root or "current directory",
                            "message": "Using existing terminal session for this conversation",
                        },
                        createdBy=SessionOrigin.AI.value,
                        agentSessionId=owner_session_id,
                        reused=True,
                    )
                if existing:
                    logger.info(f"Terminal {existing} is gone, creating a new one")
                    self.registry.remove(existing)

            session_id = await self.service.create(shell_type)
            self.registry.register(
                session_id,
                SessionOrigin.AI,
                owner_session_id=owner_session_id,
                workspace_root=workspace_root,
            )
            if workspace_root:
                await self.service.write(session_id, f'cd "{workspace_root}"\n')
        except Exception as e:
            return _failure("Failed to create terminal", e, "terminal_creation_failed")

        logger.info(f"Created terminal {session_id} for {owner_session_id}")
        return FamilyResult.ok(
            {
                "sessionId": session_id,
                "workspaceRoot": workspace_root or "current directory",
                "message": "Terminal session created successfully",
            },
            createdBy=SessionOrigin.AI.value,
            agentSessionId=owner_session_id,
        )

    async def execute_command(
        self,
        command: Optional[str],
        session_id: Optional[str] = None,
        owner_session_id: Optional[str] = None,
    ) -> FamilyResult:
        if not session_id and owner_session_id:
            session_id = self.registry.terminal_for_owner(owner_session_id)
            if not session_id:
                return FamilyResult.failure(
                    "No terminal session found for this conversation. Please create a "
                    "terminal first using create_terminal.",
                    error_type="no_default_terminal",
                    retryable=False,
                )
        if not session_id:
            return _missing_session_id()
        if not command:
            return FamilyResult.failure(
                "Missing command parameter", error_type="missing_parameter", retryable=False
            )

        line = command if command.endswith("\n") else f"{command}\n"
        try:
            self._ensure_exists(session_id)
            async with self._lock_for(session_id):
                await self._guarded(session_id, self.service.write(session_id, line))
                self.registry.record_command(session_id, command.strip())
                if self.settle_delay > 0:
                    await self._guarded(session_id, asyncio.sleep(self.settle_delay))
        except SessionNotFoundError as e:
            result = _failure("Failed to execute command", e, "command_execution_failed")
            result.metadata["availableSessions"] = self.service.list_ids()
            return result
        except Exception as e:
            result = _failure("Failed to execute command", e, "command_execution_failed")
            result.metadata["command"] = command
            return result

        return FamilyResult.ok(
            {
                "sessionId": session_id,
                "command": command.strip(),
                "message": "Command executed successfully. Output is visible in the terminal panel.",
            },
            timestamp=int(time.time() * 1000),
        )

    async def read_output(self, session_id: Optional[str]) -> FamilyResult:
        if not session_id:
            return _missing_session_id()
        try:
            self._ensure_exists(session_id)
            async with self._lock_for(session_id):
                output = await self._guarded(session_id, self.service.read(session_id))
        except Exception as e:
            return _failure("Failed to read output", e, "read_failed")

        metadata: dict[str, Any] = {"timestamp": int(time.time() * 1000)}
        if not output:
            metadata["note"] = (
                "Output is automatically displayed in the terminal panel. "
                "No need to keep checking."
            )
        return FamilyResult(
            success=True,
            data={
                "sessionId": session_id,
                "output": output or NO_OUTPUT_MESSAGE,
                "status": "running" if self.service.exists(session_id) else "completed",
            },
            metadata=metadata,
        )

    async def list_sessions(self) -> FamilyResult:
        terminals = []
        for session_id in self.service.list_ids():
            record = self.registry.get(session_id)
            terminals.append(
                {
                    "sessionId": session_id,
                    "status": "running" if self.service.exists(session_id) else "completed",
                    "createdBy": record.origin.value if record else SessionOrigin.USER.value,
                    "workspaceRoot": (record.workspace_root if record else None) or "unknown",
                    "commandCount": len(record.command_history) if record else 0,
                    "lastActivity": record.last_activity if record else None,
                }
            )
        return FamilyResult.ok(
            {"terminals": terminals, "count": len(terminals)},
            timestamp=int(time.time() * 1000),
        )

    async def inspect(self, session_id: Optional[str]) -> FamilyResult:
        if not session_id:
            return _missing_session_id()
        try:
            self._ensure_exists(session_id)
            async with self._lock_for(session_id):
                history = await self._guarded(session_id, self.service.history(session_id))
                current = await self._guarded(session_id, self.service.peek(session_id))
        except Exception as e:
            return _failure("Failed to inspect terminal", e, "inspect_failed")

        record = self.registry.get(session_id)
        return FamilyResult.ok(
            {
                "sessionId": session_id,
                "status": "running",
                "commandHistory": history,
                "currentOutput": current,
                "workspaceRoot": (record.workspace_root if record else None) or "unknown",
                "createdAt": record.created_at if record else None,
                "lastActivity": record.last_activity if record else None,
            },
            createdBy=record.origin.value if record else SessionOrigin.USER.value,
        )

    async def close(self, session_id: Optional[str]) -> FamilyResult:
        if not session_id:
            return _missing_session_id()
        if not self.service.exists(session_id) and session_id not in self.registry:
            return _failure("Failed to close terminal", SessionNotFoundError(session_id), "")

        # Wake any in-flight operation before tearing the session down.
        event = self._closed.get(session_id)
        if event is not None:
            event.set()
        try:
            if self.service.exists(session_id):
                await self.service.close(session_id)
        except Exception as e:
            return _failure("Failed to close terminal", e, "close_failed")
        finally:
            self.registry.remove(session_id)
            self._locks.pop(session_id, None)
            self._closed.pop(session_id, None)

        logger.info(f"Closed terminal {session_id}")
        return FamilyResult.ok({"sessionId": session_id, "message": "Terminal session closed"})

    async def close_all_for_owner(self, owner_session_id: str) -> list[str]:
        """Close every session owned by ``owner_session_id``. Returns the closed ids."""
        closed = []
        for session_id in self.registry.sessions_for_owner(owner_session_id):
            result = await self.close(session_id)
            if result.success:
                closed.append(session_id)
            else:
                logger.error(f"Failed to clean up terminal {session_id}: {result.error}")
        return closed

    # ------------------------------------------------------------------
    # Dispatch entry point
    # ------------------------------------------------------------------

    async def handle(self, name: str, args: dict[str, Any], ctx: ToolContext) -> FamilyResult:
        if name == "create_terminal":
            return await self.create(
                ctx.session_id,
                workspace_root=args.get("workspaceRoot") or ctx.workspace_root,
                shell_type=args.get("type") or "shell",
            )
        if name == "execute_command":
            return await self.execute_command(
                args.get("command"),
                session_id=_session_arg(args),
                owner_session_id=ctx.session_id,
            )
        if name == "read_output":
            return await self.read_output(_session_arg(args))
        if name == "list_terminals":
            return await self.list_sessions()
        if name == "inspect_terminal":
            return await self.inspect(_session_arg(args))
        if name == "close_terminal":
            return await self.close(_session_arg(args))
        return FamilyResult.failure(
            f"Unknown terminal tool: {name}",
            error_type="unknown_tool",
            retryable=False,
            availableTools=sorted(TERMINAL_TOOL_NAMES),
        )
