"""
Tests for the handler families: workflow, backup, system, memory, bookmark,
OS integration and core tools.
"""

import json
from unittest.mock import AsyncMock

import pytest

from deskagent.exceptions import ToolExecutionError
from deskagent.families import backup, bookmark, core, memory, os_tools, system, workflow
from deskagent.families.base import FamilyResult, ToolContext, require_arg
from deskagent.services import BookmarkService, DesktopBackend, ServiceBundle, WorkflowService


def _ctx(**services) -> ToolContext:
    return ToolContext(session_id="chat-1", services=ServiceBundle(**services))


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


class TestFamilyResult:
    def test_output_text(self):
        assert FamilyResult.ok("plain").output_text() == "plain"
        assert FamilyResult.ok({"a": 1}).output_text() == '{\n  "a": 1\n}'
        assert FamilyResult.failure("bad").output_text() == "bad"
        assert FamilyResult(success=True).output_text() == "No output"

    def test_failure_metadata(self):
        result = FamilyResult.failure("bad", error_type="x", retryable=False, extra=1)
        assert result.metadata == {"errorType": "x", "retryable": False, "extra": 1}

    def test_require_arg_alternatives(self):
        assert require_arg({"session_id": "t1"}, "sessionId", "session_id") == "t1"
        with pytest.raises(ToolExecutionError, match="sessionId is required"):
            require_arg({"sessionId": ""}, "sessionId")


class TestServiceBundle:
    def test_store_protocols_are_checkable(self, backend):
        class Bookmarks:
            async def create(self, message_id, session_id, content, tags=None, notes=None):
                return {}

            async def list(self, session_id, limit):
                return []

            async def delete(self, bookmark_id):
                return None

            async def search(self, query, limit):
                return []

        assert isinstance(backend, DesktopBackend)
        assert isinstance(Bookmarks(), BookmarkService)
        assert not isinstance(Bookmarks(), WorkflowService)

    def test_require_missing_service(self):
        with pytest.raises(ToolExecutionError) as exc_info:
            ServiceBundle().require("agents")
        assert exc_info.value.error_kind == "service_unavailable"
        assert exc_info.value.retryable is False


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class TestWorkflowTools:
    @pytest.mark.asyncio
    async def test_create_normalizes_steps(self):
        store = AsyncMock()
        store.create.return_value = {
            "id": "wf-1",
            "name": "Release",
            "workflowType": "process",
            "steps": [{}, {}],
            "category": "dev",
            "behavior": {"asToolcall": True},
        }
        result = await workflow.execute_workflow_tool(
            "create_workflow",
            {
                "name": "Release",
                "description": "Ship it",
                "workflowType": "process",
                "steps": [{"name": "build", "prompt": "run build"}, {"name": "tag", "prompt": "tag"}],
            },
            _ctx(workflows=store),
        )
        assert result.success is True
        assert result.data["workflowId"] == "wf-1"
        assert result.data["stepCount"] == 2
        assert result.metadata["asToolcall"] is True
        request = store.create.call_args.args[0]
        assert [s["id"] for s in request["steps"]] == ["step-1", "step-2"]
        assert [s["order"] for s in request["steps"]] == [1, 2]

    @pytest.mark.asyncio
    async def test_create_without_steps(self):
        store = AsyncMock()
        result = await workflow.execute_workflow_tool(
            "create_workflow", {"name": "Empty", "steps": []}, _ctx(workflows=store)
        )
        assert result.success is False
        assert result.metadata["errorType"] == "validation_error"
        store.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure_becomes_result(self):
        store = AsyncMock()
        store.get.side_effect = RuntimeError("database locked")
        result = await workflow.execute_workflow_tool(
            "get_workflow", {"workflowId": "wf-1"}, _ctx(workflows=store)
        )
        assert result.success is False
        assert result.error == "Failed to get workflow: database locked"
        assert result.metadata["errorType"] == "get_failed"

    @pytest.mark.asyncio
    async def test_get_missing(self):
        store = AsyncMock()
        store.get.return_value = None
        result = await workflow.execute_workflow_tool(
            "get_workflow", {"workflowId": "wf-9"}, _ctx(workflows=store)
        )
        assert result.metadata["errorType"] == "not_found"

    @pytest.mark.asyncio
    async def test_list_filters(self):
        store = AsyncMock()
        store.list_by_category.return_value = [{"id": "wf-1", "name": "A", "steps": [{}]}]
        result = await workflow.execute_workflow_tool(
            "list_workflows", {"category": "dev"}, _ctx(workflows=store)
        )
        store.list_by_category.assert_awaited_once_with("dev")
        assert result.data["count"] == 1
        assert result.data["workflows"][0]["stepCount"] == 1

    @pytest.mark.asyncio
    async def test_execute_reports_execution(self):
        store = AsyncMock()
        store.execute.return_value = {"executionId": "ex-1", "status": "running"}
        store.get.return_value = {"name": "Release"}
        result = await workflow.execute_workflow_tool(
            "execute_workflow", {"workflowId": "wf-1"}, _ctx(workflows=store)
        )
        assert result.data["executionId"] == "ex-1"
        assert result.data["workflowName"] == "Release"
        store.execute.assert_awaited_once_with("wf-1", {})

    @pytest.mark.asyncio
    async def test_missing_service_reports_kind(self):
        result = await workflow.execute_workflow_tool("list_workflows", {}, _ctx())
        assert result.success is False
        assert result.metadata["errorType"] == "service_unavailable"
        assert result.metadata["retryable"] is False


# ---------------------------------------------------------------------------
# Backup
# ---------------------------------------------------------------------------


class TestBackupTools:
    @pytest.mark.asyncio
    async def test_create_falls_back_to_gzip(self, backend):
        backend.shell_results = [
            {"success": False, "stderr": "zstd: command not found"},
            {"exit_code": 0},
        ]
        result = await backup.execute_backup_tool(
            "create_backup", {"path": "/data/report.txt"}, _ctx(backend=backend)
        )
        assert result.success is True
        assert result.data == "Backup created: /data/report.txt.backup.gz (gzip compressed)"
        commands = [args[0] for name, args, _ in backend.calls]
        assert commands[0].startswith("zstd")
        assert commands[1].startswith("gzip")

    @pytest.mark.asyncio
    async def test_create_all_strategies_fail(self, backend):
        backend.shell_results = [
            {"success": False, "stderr": "nope"},
            {"success": False, "stderr": "nope"},
            {"exit_code": 1, "stderr": "No such file"},
        ]
        result = await backup.execute_backup_tool(
            "create_backup", {"path": "/missing"}, _ctx(backend=backend)
        )
        assert result.success is False
        assert result.error == "Failed to create backup for /missing: No such file"
        assert len(backend.calls) == 3

    def test_strategies_quote_paths(self):
        command, dest, _ = backup.backup_strategies("/my docs/a.txt")[2]
        assert command == "cp '/my docs/a.txt' '/my docs/a.txt.backup'"
        assert dest == "/my docs/a.txt.backup"

    @pytest.mark.asyncio
    async def test_restore(self):
        store = AsyncMock()
        store.restore.return_value = False
        result = await backup.execute_backup_tool(
            "restore_backup", {"backupId": "b1"}, _ctx(backups=store)
        )
        assert result.success is False
        assert result.error == "Failed to restore backup: b1"


# ---------------------------------------------------------------------------
# System, OS, memory and bookmark
# ---------------------------------------------------------------------------


class TestSystemTools:
    @pytest.mark.asyncio
    async def test_analyze_passes_arguments(self, backend):
        result = await system.execute_system_tool(
            "analyze_disk_usage", {"path": "/home", "top_n": 5}, _ctx(backend=backend)
        )
        assert result.data == {"path": "/home", "total_size": 60}
        assert backend.calls[-1] == (
            "analyze_disk",
            (),
            {"path": "/home", "max_depth": None, "top_n": 5},
        )

    @pytest.mark.asyncio
    async def test_storage_breakdown(self, backend):
        result = await system.execute_system_tool("get_storage_breakdown", {}, _ctx(backend=backend))
        assert result.data == {"categories": {"documents": 10}}


class TestOsTools:
    @pytest.mark.asyncio
    async def test_open_file_explorer(self, backend):
        result = await os_tools.execute_os_tool(
            "open_file_explorer", {"path": "/tmp"}, _ctx(backend=backend)
        )
        assert result.data == "Opened file explorer at: /tmp"

    @pytest.mark.asyncio
    async def test_open_file_explorer_failure(self):
        backend = AsyncMock()
        backend.open_file_location.return_value = {"success": False, "message": "No such path"}
        result = await os_tools.execute_os_tool(
            "open_file_explorer", {"path": "/nope"}, _ctx(backend=backend)
        )
        assert result.success is False
        assert result.error == "No such path"

    @pytest.mark.asyncio
    async def test_trigger_indexing(self, backend):
        result = await os_tools.execute_os_tool("trigger_indexing", {}, _ctx(backend=backend))
        assert result.success is True
        assert backend.calls == [("start_indexing", (), {})]


class TestMemoryTools:
    @pytest.mark.asyncio
    async def test_add_memory(self):
        store = AsyncMock()
        store.create.return_value = {"id": "m-1"}
        result = await memory.execute_memory_tool(
            "add_memory", {"content": "Prefers tabs", "importance": "high"}, _ctx(memories=store)
        )
        assert result.data == "Memory added with ID: m-1"
        kwargs = store.create.call_args.kwargs
        assert kwargs["session_id"] == "chat-1"
        assert kwargs["metadata"]["source"] == "agent"
        assert kwargs["metadata"]["importance"] == "high"

    @pytest.mark.asyncio
    async def test_update_missing(self):
        store = AsyncMock()
        store.update.return_value = None
        result = await memory.execute_memory_tool(
            "update_memory", {"memoryId": "m-2"}, _ctx(memories=store)
        )
        assert result.metadata["errorType"] == "not_found"

    @pytest.mark.asyncio
    async def test_list_recent_default_limit(self):
        store = AsyncMock()
        store.recent.return_value = []
        await memory.execute_memory_tool("list_recent_memories", {}, _ctx(memories=store))
        store.recent.assert_awaited_once_with(10, "chat-1")


class TestBookmarkTools:
    @pytest.mark.asyncio
    async def test_create_bookmark(self):
        store = AsyncMock()
        store.create.return_value = {"id": "bm-1"}
        result = await bookmark.execute_bookmark_tool(
            "create_bookmark", {"content": "snippet", "tags": "a,b"}, _ctx(bookmarks=store)
        )
        assert result.data == "Bookmark created with ID: bm-1"
        assert store.create.call_args.kwargs["message_id"].startswith("tool_gen_")

    @pytest.mark.asyncio
    async def test_delete_requires_id(self):
        with pytest.raises(ToolExecutionError):
            await bookmark.execute_bookmark_tool("delete_bookmark", {}, _ctx(bookmarks=AsyncMock()))


# ---------------------------------------------------------------------------
# Core tools
# ---------------------------------------------------------------------------


class TestCoreTools:
    @pytest.mark.asyncio
    async def test_read_empty_file(self, backend):
        result = await core.read_file({"path": "/empty"}, _ctx(backend=backend))
        assert result.success is True
        assert result.data == "(empty file)"

    @pytest.mark.asyncio
    async def test_write_append(self, backend):
        backend.files["/log.txt"] = "a"
        await core.write_file(
            {"path": "/log.txt", "content": "b", "mode": "append"}, _ctx(backend=backend)
        )
        assert backend.files["/log.txt"] == "ab"

    @pytest.mark.asyncio
    async def test_write_allows_empty_content(self, backend):
        result = await core.write_file({"path": "/blank", "content": ""}, _ctx(backend=backend))
        assert result.success is True
        assert backend.files["/blank"] == ""

    @pytest.mark.asyncio
    async def test_web_search_metadata(self, backend):
        backend.web_results["cats"] = {
            "results": [{"url": "https://cats.example"}],
            "images": ["https://cats.example/1.png"],
            "gathered_pages": 3,
        }
        result = await core.web_search({"query": "cats"}, _ctx(backend=backend))
        assert result.metadata == {"images": ["https://cats.example/1.png"], "gatheredPages": 3}

    @pytest.mark.asyncio
    async def test_hidden_web_search_skips_failures(self, backend):
        backend.web_results["rust"] = {
            "results": [{"url": "https://rust-lang.org", "title": "Rust", "snippet": "lang"}]
        }
        backend.web_errors.add("broken")
        result = await core.hidden_web_search(
            {"queries": ["broken", "rust", "nothing"]}, _ctx(backend=backend)
        )
        assert result.success is True
        assert result.metadata == {"hidden": True}
        assert result.data == [
            {
                "term": "rust",
                "url": "https://rust-lang.org",
                "title": "Rust",
                "snippet": "lang",
                "linkType": "learning",
            }
        ]

    @pytest.mark.asyncio
    async def test_hidden_web_search_no_hits(self, backend):
        result = await core.hidden_web_search({"queries": ["x"]}, _ctx(backend=backend))
        assert result.output_text() == "[]"

    @pytest.mark.asyncio
    async def test_invoke_unknown_agent(self):
        agents = AsyncMock()
        agents.get.return_value = None
        agents.list.return_value = [{"id": "a1", "name": "Researcher", "state": "on"}]
        result = await core.invoke_agent({"agent_id": "Writer", "message": "hi"}, _ctx(agents=agents))
        assert result.success is False
        assert result.metadata["errorType"] == "not_found"
        assert json.loads(result.output_text())["message"] == "Agent not found: Writer"

    @pytest.mark.asyncio
    async def test_invoke_disabled_agent(self):
        agents = AsyncMock()
        agents.get.return_value = {"id": "a1", "name": "Researcher", "state": "off"}
        result = await core.invoke_agent({"agent_id": "a1", "message": "hi"}, _ctx(agents=agents))
        assert result.metadata["errorType"] == "agent_unavailable"
        agents.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_invoke_by_name(self):
        agents = AsyncMock()
        agents.get.return_value = None
        agents.list.return_value = [{"id": "a1", "name": "Researcher", "state": "on"}]
        agents.execute.return_value = {"id": "ex-7", "status": "running"}
        result = await core.invoke_agent(
            {"agent_id": "Researcher", "message": "dig"}, _ctx(agents=agents)
        )
        assert result.success is True
        assert result.data["execution_id"] == "ex-7"
        agents.execute.assert_awaited_once_with("a1", message="dig", context={})

    @pytest.mark.asyncio
    async def test_search_limits_are_capped(self):
        bookmarks = AsyncMock()
        bookmarks.search.return_value = []
        memories = AsyncMock()
        memories.search.return_value = [{"id": "m1"}]
        ctx = _ctx(bookmarks=bookmarks, memories=memories)

        await core.message_search({"query": "q", "limit": 500}, ctx)
        result = await core.memory_search({"query": "q", "limit": 500}, ctx)

        bookmarks.search.assert_awaited_once_with("q", 50)
        memories.search.assert_awaited_once_with("q", 20, "chat-1")
        assert result.data["total_results"] == 1
