"""
Tests for terminal sessions: origin registry, terminal tool family and the
local shell host.
"""

import asyncio
import json
import os
from unittest.mock import AsyncMock

import pytest

from deskagent.dispatcher import DispatchOptions, ToolDispatcher
from deskagent.models import SessionOrigin, SessionState, ToolCall
from deskagent.terminal.registry import OriginRegistry
from deskagent.terminal.service import LocalShellService
from deskagent.terminal.tools import NO_OUTPUT_MESSAGE, TerminalToolFamily


def _family(terminal_service, origin_registry) -> TerminalToolFamily:
    return TerminalToolFamily(terminal_service, origin_registry, settle_delay=0)


# ---------------------------------------------------------------------------
# Origin registry
# ---------------------------------------------------------------------------


class TestOriginRegistry:
    def test_register_and_get(self, origin_registry):
        origin_registry.register("t1", SessionOrigin.AI, owner_session_id="chat-1")
        record = origin_registry.get("t1")
        assert record.origin == SessionOrigin.AI
        assert record.owner_session_id == "chat-1"
        assert origin_registry.is_ai_created("t1")
        assert "t1" in origin_registry

    def test_get_returns_copy(self, origin_registry):
        origin_registry.register("t1", SessionOrigin.AI)
        origin_registry.get("t1").command_history.append("rm -rf /")
        assert origin_registry.get("t1").command_history == []

    def test_record_command_activates(self, origin_registry):
        origin_registry.register("t1", SessionOrigin.AI)
        origin_registry.record_command("t1", "ls")
        record = origin_registry.get("t1")
        assert record.state == SessionState.ACTIVE
        assert record.command_history == ["ls"]

    def test_remove_marks_closed(self, origin_registry):
        origin_registry.register("t1", SessionOrigin.USER)
        removed = origin_registry.remove("t1")
        assert removed.state == SessionState.CLOSED
        assert origin_registry.get("t1") is None
        assert origin_registry.remove("t1") is None

    def test_terminal_for_owner_ignores_user_sessions(self, origin_registry):
        origin_registry.register("user-term", SessionOrigin.USER, owner_session_id="chat-1")
        assert origin_registry.terminal_for_owner("chat-1") is None
        origin_registry.register("ai-term", SessionOrigin.AI, owner_session_id="chat-1")
        assert origin_registry.terminal_for_owner("chat-1") == "ai-term"

    def test_sessions_for_owner(self, origin_registry):
        origin_registry.register("a1", SessionOrigin.AI, owner_session_id="A")
        origin_registry.register("b1", SessionOrigin.AI, owner_session_id="B")
        origin_registry.register("a2", SessionOrigin.AI, owner_session_id="A")
        assert origin_registry.sessions_for_owner("A") == ["a1", "a2"]

    def test_clear(self):
        registry = OriginRegistry()
        registry.register("t1", SessionOrigin.AI)
        registry.register("t2", SessionOrigin.USER)
        registry.clear()
        assert len(registry) == 0
        assert registry.snapshot() == []


# ---------------------------------------------------------------------------
# Terminal tool family
# ---------------------------------------------------------------------------


class TestTerminalLifecycle:
    @pytest.mark.asyncio
    async def test_create_echo_read_close(self, services, origin_registry, terminal_service):
        dispatcher = ToolDispatcher(
            services=services, registry=origin_registry, terminal_service=terminal_service
        )
        options = DispatchOptions(session_id="chat-1")

        created = await dispatcher.execute(ToolCall(id="c1", name="create_terminal"), options)
        assert created.success is True
        session_id = json.loads(created.output)["sessionId"]
        assert created.metadata["createdBy"] == "ai"

        executed = await dispatcher.execute(
            ToolCall(
                id="c2",
                name="execute_command",
                arguments={"sessionId": session_id, "command": "echo hi"},
            ),
            options,
        )
        assert executed.success is True
        assert json.loads(executed.output)["sessionId"] == session_id

        read = await dispatcher.execute(
            ToolCall(id="c3", name="read_output", arguments={"sessionId": session_id}), options
        )
        assert read.success is True
        assert "hi" in json.loads(read.output)["output"]

        closed = await dispatcher.execute(
            ToolCall(id="c4", name="close_terminal", arguments={"sessionId": session_id}), options
        )
        assert closed.success is True

        listed = await dispatcher.execute(ToolCall(id="c5", name="list_terminals"), options)
        terminals = json.loads(listed.output)["terminals"]
        assert session_id not in [t["sessionId"] for t in terminals]
        assert session_id not in origin_registry

    @pytest.mark.asyncio
    async def test_execute_echoes_session_id(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        session_id = (await family.create("chat-1")).data["sessionId"]
        result = await family.execute_command("pwd", session_id=session_id)
        assert result.success is True
        assert result.data["sessionId"] == session_id
        assert result.data["command"] == "pwd"
        assert origin_registry.get(session_id).command_history == ["pwd"]

    @pytest.mark.asyncio
    async def test_execute_in_missing_session(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        await family.create("chat-1")
        result = await family.execute_command("ls", session_id="term-404")
        assert result.success is False
        assert "not found" in result.error
        assert result.metadata["retryable"] is False
        assert result.metadata["errorType"] == "session_not_found"
        assert result.metadata["availableSessions"] == ["term-1"]

    @pytest.mark.asyncio
    async def test_execute_defaults_to_owner_terminal(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        session_id = (await family.create("chat-1")).data["sessionId"]
        result = await family.execute_command("echo default", owner_session_id="chat-1")
        assert result.success is True
        assert result.data["sessionId"] == session_id

    @pytest.mark.asyncio
    async def test_execute_without_any_terminal(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        result = await family.execute_command("ls", owner_session_id="chat-1")
        assert result.success is False
        assert result.metadata["errorType"] == "no_default_terminal"

    @pytest.mark.asyncio
    async def test_missing_parameters(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        no_session = await family.execute_command("ls")
        assert no_session.metadata["errorType"] == "missing_parameter"
        session_id = (await family.create("chat-1")).data["sessionId"]
        no_command = await family.execute_command("", session_id=session_id)
        assert no_command.metadata["errorType"] == "missing_parameter"
        assert no_command.metadata["retryable"] is False

    @pytest.mark.asyncio
    async def test_read_without_output(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        session_id = (await family.create("chat-1")).data["sessionId"]
        result = await family.read_output(session_id)
        assert result.data["output"] == NO_OUTPUT_MESSAGE
        assert "note" in result.metadata

    @pytest.mark.asyncio
    async def test_inspect(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        session_id = (await family.create("chat-1", workspace_root="/srv/app")).data["sessionId"]
        await family.execute_command("echo one", session_id=session_id)
        result = await family.inspect(session_id)
        assert result.success is True
        assert result.data["commandHistory"] == ['cd "/srv/app"', "echo one"]
        assert result.data["currentOutput"] == "one\n"
        assert result.data["workspaceRoot"] == "/srv/app"

    @pytest.mark.asyncio
    async def test_close_unknown_session(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        result = await family.close("term-404")
        assert result.success is False
        assert result.metadata["errorType"] == "session_not_found"

    @pytest.mark.asyncio
    async def test_unknown_terminal_tool(self, terminal_service, origin_registry):
        from deskagent.families.base import ToolContext

        family = _family(terminal_service, origin_registry)
        result = await family.handle("resize_terminal", {}, ToolContext())
        assert result.success is False
        assert result.metadata["errorType"] == "unknown_tool"


class TestTerminalCreation:
    @pytest.mark.asyncio
    async def test_reuses_owner_terminal(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        first = await family.create("chat-1")
        second = await family.create("chat-1")
        assert second.data["sessionId"] == first.data["sessionId"]
        assert second.metadata["reused"] is True
        assert terminal_service.list_ids() == [first.data["sessionId"]]

    @pytest.mark.asyncio
    async def test_dead_terminal_replaced(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        first = (await family.create("chat-1")).data["sessionId"]
        terminal_service.sessions[first]["alive"] = False
        second = await family.create("chat-1")
        assert second.data["sessionId"] != first
        assert "reused" not in second.metadata
        assert first not in origin_registry

    @pytest.mark.asyncio
    async def test_workspace_root_cd(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        session_id = (await family.create("chat-1", workspace_root="/home/me/code")).data["sessionId"]
        assert terminal_service.sessions[session_id]["history"] == ['cd "/home/me/code"']

    @pytest.mark.asyncio
    async def test_create_failure(self, terminal_service, origin_registry):
        terminal_service.fail_create = RuntimeError("no pty available")
        family = _family(terminal_service, origin_registry)
        result = await family.create("chat-1")
        assert result.success is False
        assert result.error == "Failed to create terminal: no pty available"
        assert result.metadata["errorType"] == "terminal_creation_failed"
        assert result.metadata["retryable"] is True


class TestTerminalErrors:
    @pytest.mark.asyncio
    async def test_permission_denied(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        session_id = (await family.create("chat-1")).data["sessionId"]
        terminal_service.write = AsyncMock(side_effect=PermissionError("[Errno 13] Permission denied"))
        result = await family.execute_command("cat /root/secret", session_id=session_id)
        assert result.success is False
        assert result.metadata["errorType"] == "permission_denied"
        assert result.metadata["retryable"] is False

    @pytest.mark.asyncio
    async def test_close_during_command(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        session_id = (await family.create("chat-1")).data["sessionId"]
        terminal_service.write_gate = asyncio.Event()

        pending = asyncio.create_task(family.execute_command("sleep 100", session_id=session_id))
        for _ in range(5):
            await asyncio.sleep(0)
        closed = await family.close(session_id)
        result = await asyncio.wait_for(pending, timeout=1.0)

        assert closed.success is True
        assert result.success is False
        assert result.metadata["errorType"] == "session_closed"
        assert result.metadata["retryable"] is False

    @pytest.mark.asyncio
    async def test_close_during_read(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        session_id = (await family.create("chat-1")).data["sessionId"]
        terminal_service.read_gate = asyncio.Event()

        pending = asyncio.create_task(family.read_output(session_id))
        for _ in range(5):
            await asyncio.sleep(0)
        closed = await family.close(session_id)
        result = await asyncio.wait_for(pending, timeout=1.0)

        assert closed.success is True
        assert result.success is False
        assert result.metadata["errorType"] == "session_closed"
        assert result.metadata["retryable"] is False

    @pytest.mark.asyncio
    async def test_operation_after_close_is_rejected(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        session_id = (await family.create("chat-1")).data["sessionId"]
        await family.close(session_id)
        result = await family.read_output(session_id)
        assert result.success is False
        assert result.metadata["retryable"] is False

    @pytest.mark.asyncio
    async def test_close_releases_per_session_state(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        for _ in range(20):
            session_id = (await family.create(None)).data["sessionId"]
            await family.execute_command("echo hi", session_id=session_id)
            await family.read_output(session_id)
            await family.close(session_id)
        assert family._locks == {}
        assert family._closed == {}

    @pytest.mark.asyncio
    async def test_commands_on_one_session_are_serialized(self, terminal_service, origin_registry):
        family = _family(terminal_service, origin_registry)
        session_id = (await family.create("chat-1")).data["sessionId"]
        await asyncio.gather(
            *(family.execute_command(f"echo {i}", session_id=session_id) for i in range(5))
        )
        assert terminal_service.sessions[session_id]["history"] == [f"echo {i}" for i in range(5)]


# ---------------------------------------------------------------------------
# Owner cleanup
# ---------------------------------------------------------------------------


class TestOwnerCleanup:
    @pytest.mark.asyncio
    async def test_closes_only_owner_sessions(self, services, origin_registry, terminal_service):
        dispatcher = ToolDispatcher(
            services=services, registry=origin_registry, terminal_service=terminal_service
        )
        owned_by_a = []
        for _ in range(3):
            session_id = await terminal_service.create()
            origin_registry.register(session_id, SessionOrigin.AI, owner_session_id="A")
            owned_by_a.append(session_id)
        owned_by_b = []
        for _ in range(2):
            session_id = await terminal_service.create()
            origin_registry.register(session_id, SessionOrigin.AI, owner_session_id="B")
            owned_by_b.append(session_id)

        closed = await dispatcher.close_owner_sessions("A")

        assert sorted(closed) == sorted(owned_by_a)
        assert origin_registry.sessions_for_owner("A") == []
        assert origin_registry.sessions_for_owner("B") == owned_by_b
        assert terminal_service.list_ids() == owned_by_b
        assert sorted(terminal_service.close_calls) == sorted(owned_by_a)

    @pytest.mark.asyncio
    async def test_unknown_owner(self, services, origin_registry, terminal_service):
        dispatcher = ToolDispatcher(
            services=services, registry=origin_registry, terminal_service=terminal_service
        )
        assert await dispatcher.close_owner_sessions("nobody") == []


# ---------------------------------------------------------------------------
# Local shell host
# ---------------------------------------------------------------------------


@pytest.mark.skipif(not os.path.exists("/bin/sh"), reason="requires /bin/sh")
class TestLocalShellService:
    @pytest.mark.asyncio
    async def test_echo_round_trip(self):
        service = LocalShellService(read_timeout=0.2)
        session_id = await service.create()
        try:
            assert service.exists(session_id)
            await service.write(session_id, "echo hi\n")
            output = ""
            for _ in range(25):
                output += await service.read(session_id)
                if "hi" in output:
                    break
            assert "hi" in output
            assert await service.history(session_id) == ["echo hi"]
        finally:
            await service.close(session_id)
        assert not service.exists(session_id)
        assert service.list_ids() == []

    @pytest.mark.asyncio
    async def test_unsupported_type(self):
        with pytest.raises(ValueError):
            await LocalShellService().create("codex")

    @pytest.mark.asyncio
    async def test_unknown_session(self):
        from deskagent.exceptions import SessionNotFoundError

        with pytest.raises(SessionNotFoundError):
            await LocalShellService().read("term-missing")
