"""
deskagent - Interfaces of the external stores the handler families call.

Workflows, agents, memories, bookmarks and backups are persisted outside this
package. Handlers only see these protocols; records are plain dicts in the
store's own shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from .exceptions import ToolExecutionError


@runtime_checkable
class WorkflowService(Protocol):
    async def create(self, request: dict[str, Any]) -> dict[str, Any]: ...

    async def execute(self, workflow_id: str, variables: dict[str, Any]) -> dict[str, Any]: ...

    async def get(self, workflow_id: str) -> Optional[dict[str, Any]]: ...

    async def list(self) -> list[dict[str, Any]]: ...

    async def list_by_category(self, category: str) -> list[dict[str, Any]]: ...

    async def list_by_type(self, workflow_type: str) -> list[dict[str, Any]]: ...

    async def list_toolcall_workflows(self) -> list[dict[str, Any]]: ...

    async def update(
        self, workflow_id: str, updates: dict[str, Any]
    ) -> Optional[dict[str, Any]]: ...

    async def delete(self, workflow_id: str) -> bool: ...


@runtime_checkable
class BackupService(Protocol):
    async def list(self) -> list[dict[str, Any]]: ...

    async def restore(self, backup_id: str) -> bool: ...

    async def delete(self, backup_id: str) -> bool: ...


@runtime_checkable
class MemoryService(Protocol):
    async def create(
        self, content: str, session_id: Optional[str], metadata: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def delete(self, memory_id: str) -> None: ...

    async def update(
        self,
        memory_id: str,
        content: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> Optional[dict[str, Any]]: ...

    async def recent(self, limit: int, session_id: Optional[str]) -> list[dict[str, Any]]: ...

    async def search(
        self, query: str, limit: int, session_id: Optional[str]
    ) -> list[dict[str, Any]]: ...


@runtime_checkable
class BookmarkService(Protocol):
    async def create(
        self,
        message_id: str,
        session_id: Optional[str],
        content: str,
        tags: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict[str, Any]: ...

    async def list(self, session_id: Optional[str], limit: int) -> list[dict[str, Any]]: ...

    async def delete(self, bookmark_id: str) -> None: ...

    async def search(self, query: str, limit: int) -> list[dict[str, Any]]: ...


@runtime_checkable
class AgentService(Protocol):
    async def get(self, agent_id: str) -> Optional[dict[str, Any]]: ...

    async def list(self) -> list[dict[str, Any]]: ...

    async def list_by_state(self, state: str) -> list[dict[str, Any]]: ...

    async def list_by_tags(self, tags: list[str]) -> list[dict[str, Any]]: ...

    async def execute(
        self, agent_id: str, message: str, context: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def create(self, definition: dict[str, Any]) -> dict[str, Any]: ...


@runtime_checkable
class DesktopBackend(Protocol):
    """The local desktop backend (file system, shell, search, disk analysis)."""

    async def execute_shell(
        self, command: str, workdir: Optional[str] = None, timeout_ms: Optional[int] = None
    ) -> dict[str, Any]: ...

    async def read_file(
        self, path: str, start_line: Optional[int] = None, end_line: Optional[int] = None
    ) -> str: ...

    async def write_file(self, path: str, content: str, append: bool = False) -> None: ...

    async def list_directory(
        self, path: str, depth: Optional[int] = None, include_hidden: bool = False
    ) -> Any: ...

    async def search_files(
        self,
        query: str,
        search_path: Optional[str] = None,
        max_results: Optional[int] = None,
        file_types: Optional[str] = None,
    ) -> Any: ...

    async def web_search(
        self,
        query: str,
        num_results: Optional[int] = None,
        search_type: Optional[str] = None,
        depth: Optional[int] = None,
    ) -> dict[str, Any]: ...

    async def browse(self, url: str, render: bool = False) -> dict[str, Any]: ...

    async def open_file_location(self, path: str) -> dict[str, Any]: ...

    async def start_indexing(self) -> None: ...

    async def disk_info(self) -> Any: ...

    async def analyze_disk(
        self,
        path: Optional[str] = None,
        max_depth: Optional[int] = None,
        top_n: Optional[int] = None,
    ) -> Any: ...

    async def cleanup_suggestions(self) -> Any: ...

    async def storage_categories(self, path: Optional[str] = None) -> Any: ...


@dataclass
class ServiceBundle:
    """External collaborators available to the handler families.

    Any service may be left unset; a tool that needs a missing one fails with
    ``errorType=service_unavailable``.
    """

    backend: Optional[DesktopBackend] = None
    workflows: Optional[WorkflowService] = None
    backups: Optional[BackupService] = None
    memories: Optional[MemoryService] = None
    bookmarks: Optional[BookmarkService] = None
    agents: Optional[AgentService] = None

    def require(self, name: str) -> Any:
        service = getattr(self, name)
        if service is None:
            raise ToolExecutionError(
                f"The {name} service is not configured",
                error_kind="service_unavailable",
                retryable=False,
            )
        return service
