"""
Tests for the tool dispatcher: routing, failure reporting and observers.
"""

import httpx
import pytest

from deskagent.dispatcher import (
    DispatchOptions,
    DispatchTable,
    HandlerFamily,
    ToolDispatcher,
    default_dispatch_table,
)
from deskagent.exceptions import ToolExecutionError
from deskagent.families.base import FamilyResult
from deskagent.models import ToolCall
from deskagent.schema import agent_tool_catalog
from deskagent.services import ServiceBundle


def _dispatcher(services, registry, terminal_service, **kwargs) -> ToolDispatcher:
    return ToolDispatcher(
        services=services, registry=registry, terminal_service=terminal_service, **kwargs
    )


def _raising_table(exc: Exception) -> DispatchTable:
    async def handler(name, args, ctx):
        raise exc

    return DispatchTable([HandlerFamily("broken", lambda name: name == "broken_tool", handler)])


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------


class TestDispatchTable:
    def test_default_order_is_pinned(self, services, origin_registry, terminal_service):
        dispatcher = _dispatcher(services, origin_registry, terminal_service)
        assert dispatcher.table.names() == [
            "workflow",
            "backup",
            "system",
            "memory",
            "bookmark",
            "os",
            "terminal",
            "core",
        ]

    def test_every_catalog_tool_has_a_family(self, services, origin_registry, terminal_service):
        dispatcher = _dispatcher(services, origin_registry, terminal_service)
        unmatched = [t["name"] for t in agent_tool_catalog() if dispatcher.table.match(t["name"]) is None]
        assert unmatched == []

    def test_duplicate_family_rejected(self):
        async def handler(name, args, ctx):
            return FamilyResult.ok("x")

        table = DispatchTable([HandlerFamily("a", lambda n: True, handler)])
        with pytest.raises(ValueError, match="already registered"):
            table.add(HandlerFamily("a", lambda n: True, handler))

    @pytest.mark.asyncio
    async def test_first_match_wins(self, services, origin_registry, terminal_service):
        async def first(name, args, ctx):
            return FamilyResult.ok("first")

        async def second(name, args, ctx):
            return FamilyResult.ok("second")

        table = DispatchTable(
            [
                HandlerFamily("one", lambda n: n == "shared", first),
                HandlerFamily("two", lambda n: n == "shared", second),
            ]
        )
        dispatcher = _dispatcher(services, origin_registry, terminal_service, table=table)
        result = await dispatcher.execute(ToolCall(id="c1", name="shared"))
        assert result.output == "first"

    def test_terminal_family_uses_dispatcher_registry(self, services, origin_registry, terminal_service):
        dispatcher = _dispatcher(services, origin_registry, terminal_service)
        assert dispatcher.terminal.registry is origin_registry
        assert len(default_dispatch_table(dispatcher.terminal)) == 8


# ---------------------------------------------------------------------------
# Failure reporting
# ---------------------------------------------------------------------------


class TestDispatchFailures:
    @pytest.mark.asyncio
    async def test_unknown_tool(self, services, origin_registry, terminal_service):
        dispatcher = _dispatcher(services, origin_registry, terminal_service)
        result = await dispatcher.execute(ToolCall(id="c1", name="teleport"))
        assert result.success is False
        assert "teleport" in result.error
        assert result.tool_call_id == "c1"
        assert result.error_kind == "unknown_tool"
        assert result.retryable is False

    @pytest.mark.asyncio
    async def test_raising_handler_still_returns_result(self, services, origin_registry, terminal_service):
        dispatcher = _dispatcher(
            services, origin_registry, terminal_service, table=_raising_table(RuntimeError("kaboom"))
        )
        result = await dispatcher.execute(ToolCall(id="c1", name="broken_tool"))
        assert result.success is False
        assert result.error == "kaboom"
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_tool_execution_error_metadata(self, services, origin_registry, terminal_service):
        exc = ToolExecutionError("disk full", error_kind="io_error", retryable=False)
        dispatcher = _dispatcher(services, origin_registry, terminal_service, table=_raising_table(exc))
        result = await dispatcher.execute(ToolCall(id="c1", name="broken_tool"))
        assert result.error == "disk full"
        assert result.metadata == {"errorType": "io_error", "retryable": False}

    @pytest.mark.asyncio
    async def test_http_error_is_retryable_backend_failure(self, services, origin_registry, terminal_service):
        exc = httpx.ConnectError("connection refused")
        dispatcher = _dispatcher(services, origin_registry, terminal_service, table=_raising_table(exc))
        result = await dispatcher.execute(ToolCall(id="c1", name="broken_tool"))
        assert result.success is False
        assert result.error_kind == "backend_unavailable"
        assert result.retryable is True

    @pytest.mark.asyncio
    async def test_missing_service(self, origin_registry, terminal_service):
        dispatcher = _dispatcher(ServiceBundle(), origin_registry, terminal_service)
        result = await dispatcher.execute(ToolCall(id="c1", name="read_file", arguments={"path": "/a"}))
        assert result.success is False
        assert result.error_kind == "service_unavailable"
        assert result.retryable is False

    @pytest.mark.asyncio
    async def test_missing_argument(self, services, origin_registry, terminal_service):
        dispatcher = _dispatcher(services, origin_registry, terminal_service)
        result = await dispatcher.execute(ToolCall(id="c1", name="read_file", arguments={}))
        assert result.success is False
        assert result.error == "path is required"
        assert result.error_kind == "missing_parameter"

    @pytest.mark.asyncio
    async def test_allow_list(self, services, origin_registry, terminal_service):
        dispatcher = _dispatcher(services, origin_registry, terminal_service)
        options = DispatchOptions(session_id="chat-1", allowed_tools=["read_file"])
        result = await dispatcher.execute(
            ToolCall(id="c1", name="shell", arguments={"command": "ls"}), options
        )
        assert result.success is False
        assert result.error_kind == "tool_not_allowed"
        assert services.backend.calls == []


# ---------------------------------------------------------------------------
# Successful dispatch
# ---------------------------------------------------------------------------


class TestDispatchSuccess:
    @pytest.mark.asyncio
    async def test_core_tool(self, services, backend, origin_registry, terminal_service):
        backend.files["/notes.txt"] = "remember the milk"
        dispatcher = _dispatcher(services, origin_registry, terminal_service)
        result = await dispatcher.execute(
            ToolCall(id="c1", name="read_file", arguments={"path": "/notes.txt"})
        )
        assert result.success is True
        assert result.output == "remember the milk"
        assert result.tool_name == "read_file"

    @pytest.mark.asyncio
    async def test_structured_data_becomes_json(self, services, origin_registry, terminal_service):
        dispatcher = _dispatcher(services, origin_registry, terminal_service)
        result = await dispatcher.execute(
            ToolCall(id="c1", name="get_system_info", arguments={})
        )
        assert result.success is True
        assert '"disks"' in result.output
        assert result.output.startswith("{\n")

    @pytest.mark.asyncio
    async def test_shell_uses_workspace_root(self, services, backend, origin_registry, terminal_service):
        dispatcher = _dispatcher(services, origin_registry, terminal_service)
        await dispatcher.execute(
            ToolCall(id="c1", name="shell", arguments={"command": "ls"}),
            DispatchOptions(workspace_root="/projects/app"),
        )
        name, args, kwargs = backend.calls[0]
        assert name == "execute_shell"
        assert kwargs["workdir"] == "/projects/app"


# ---------------------------------------------------------------------------
# Observers
# ---------------------------------------------------------------------------


class TestDispatchObservers:
    @pytest.mark.asyncio
    async def test_observer_receives_event(self, services, origin_registry, terminal_service):
        events = []
        dispatcher = _dispatcher(
            services, origin_registry, terminal_service, observers=[events.append]
        )
        result = await dispatcher.execute(
            ToolCall(id="c1", name="read_file", arguments={"path": "/a"}),
            DispatchOptions(session_id="chat-1"),
        )
        await dispatcher.observers.drain()
        assert len(events) == 1
        assert events[0].result is result
        assert events[0].session_id == "chat-1"

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_affect_result(self, services, origin_registry, terminal_service):
        def broken(event):
            raise RuntimeError("observer bug")

        seen = []

        async def async_observer(event):
            seen.append(event.call.name)

        dispatcher = _dispatcher(
            services, origin_registry, terminal_service, observers=[broken, async_observer]
        )
        result = await dispatcher.execute(
            ToolCall(id="c1", name="read_file", arguments={"path": "/a"})
        )
        await dispatcher.observers.drain()
        assert result.success is True
        assert seen == ["read_file"]

    @pytest.mark.asyncio
    async def test_failed_dispatch_is_observed(self, services, origin_registry, terminal_service):
        events = []
        dispatcher = _dispatcher(
            services, origin_registry, terminal_service, observers=[events.append]
        )
        await dispatcher.execute(ToolCall(id="c1", name="teleport"))
        await dispatcher.observers.drain()
        assert events[0].result.success is False
