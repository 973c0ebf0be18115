"""Shared fakes for the deskagent test suite."""

import asyncio
import shlex
from typing import Any, Optional

import pytest

from deskagent.exceptions import SessionNotFoundError
from deskagent.services import ServiceBundle
from deskagent.terminal.registry import OriginRegistry


class FakeTerminalService:
    """In-memory terminal host. ``echo`` commands produce output; nothing else does."""

    def __init__(self) -> None:
        self._counter = 0
        self.sessions: dict[str, dict[str, Any]] = {}
        self.write_gate: Optional[asyncio.Event] = None
        self.read_gate: Optional[asyncio.Event] = None
        self.close_calls: list[str] = []
        self.fail_create: Optional[Exception] = None

    async def create(self, shell_type: str = "shell") -> str:
        if self.fail_create is not None:
            raise self.fail_create
        self._counter += 1
        session_id = f"term-{self._counter}"
        self.sessions[session_id] = {"output": [], "history": [], "alive": True, "size": (80, 24)}
        return session_id

    def _get(self, session_id: str) -> dict[str, Any]:
        if session_id not in self.sessions:
            raise SessionNotFoundError(session_id)
        return self.sessions[session_id]

    async def write(self, session_id: str, data: str) -> None:
        session = self._get(session_id)
        if self.write_gate is not None:
            await self.write_gate.wait()
        for line in data.splitlines():
            if not line.strip():
                continue
            session["history"].append(line)
            words = shlex.split(line)
            if words and words[0] == "echo":
                session["output"].append(" ".join(words[1:]) + "\n")

    async def read(self, session_id: str) -> str:
        session = self._get(session_id)
        if self.read_gate is not None:
            await self.read_gate.wait()
        output = "".join(session["output"])
        session["output"].clear()
        return output

    async def peek(self, session_id: str) -> str:
        return "".join(self._get(session_id)["output"])

    async def resize(self, session_id: str, cols: int, rows: int) -> None:
        self._get(session_id)["size"] = (cols, rows)

    async def close(self, session_id: str) -> None:
        self.close_calls.append(session_id)
        self._get(session_id)
        del self.sessions[session_id]

    async def history(self, session_id: str) -> list[str]:
        return list(self._get(session_id)["history"])

    def exists(self, session_id: str) -> bool:
        session = self.sessions.get(session_id)
        return session is not None and session["alive"]

    def list_ids(self) -> list[str]:
        return list(self.sessions)


class FakeBackend:
    """Desktop backend returning canned responses and recording calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple, dict]] = []
        self.files: dict[str, str] = {}
        self.shell_results: list[dict[str, Any]] = []
        self.web_results: dict[str, Any] = {}
        self.web_errors: set[str] = set()

    def _record(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))

    async def execute_shell(self, command, workdir=None, timeout_ms=None):
        self._record("execute_shell", command, workdir=workdir, timeout_ms=timeout_ms)
        if self.shell_results:
            return self.shell_results.pop(0)
        return {"success": True, "stdout": "", "stderr": "", "exit_code": 0}

    async def read_file(self, path, start_line=None, end_line=None):
        self._record("read_file", path)
        return self.files.get(path, "")

    async def write_file(self, path, content, append=False):
        self._record("write_file", path, content, append=append)
        self.files[path] = (self.files.get(path, "") + content) if append else content

    async def list_directory(self, path, depth=None, include_hidden=False):
        self._record("list_directory", path)
        return {"path": path, "entries": sorted(self.files)}

    async def search_files(self, query, search_path=None, max_results=None, file_types=None):
        self._record("search_files", query, search_path=search_path)
        return {"results": [p for p in self.files if query in p]}

    async def web_search(self, query, num_results=None, search_type=None, depth=None):
        self._record("web_search", query, search_type=search_type, depth=depth)
        if query in self.web_errors:
            raise RuntimeError(f"search failed for {query}")
        return self.web_results.get(query, {"results": []})

    async def browse(self, url, render=False):
        self._record("browse", url, render=render)
        return {"url": url, "content": "page"}

    async def open_file_location(self, path):
        self._record("open_file_location", path)
        return {"success": True, "message": f"Opened {path}"}

    async def start_indexing(self):
        self._record("start_indexing")

    async def disk_info(self):
        return [{"mount": "/", "total": 100, "free": 40}]

    async def analyze_disk(self, path=None, max_depth=None, top_n=None):
        self._record("analyze_disk", path=path, max_depth=max_depth, top_n=top_n)
        return {"path": path or "/", "total_size": 60}

    async def cleanup_suggestions(self):
        return {"suggestions": []}

    async def storage_categories(self, path=None):
        return {"categories": {"documents": 10}}


@pytest.fixture
def terminal_service():
    return FakeTerminalService()


@pytest.fixture
def origin_registry():
    registry = OriginRegistry()
    yield registry
    registry.clear()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def services(backend):
    return ServiceBundle(backend=backend)
