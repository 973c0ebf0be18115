"""
Terminal host primitives and a local asyncio-subprocess implementation.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from ..exceptions import SessionNotFoundError

logger = logging.getLogger("deskagent.terminal.service")


@runtime_checkable
class TerminalService(Protocol):
    """Primitives a terminal host must offer."""

    async def create(self, shell_type: str = "shell") -> str: ...

    async def write(self, session_id: str, data: str) -> None: ...

    async def read(self, session_id: str) -> str: ...

    async def peek(self, session_id: str) -> str: ...

    async def resize(self, session_id: str, cols: int, rows: int) -> None: ...

    async def close(self, session_id: str) -> None: ...

    async def history(self, session_id: str) -> list[str]: ...

    def exists(self, session_id: str) -> bool: ...

    def list_ids(self) -> list[str]: ...


@dataclass
class _ShellProcess:
    process: asyncio.subprocess.Process
    reader: Optional["asyncio.Task[None]"] = None
    unread: list[str] = field(default_factory=list)
    history: list[str] = field(default_factory=list)
    data_ready: asyncio.Event = field(default_factory=asyncio.Event)
    cols: int = 80
    rows: int = 24


class LocalShellService:
    """Runs each session as a long-lived shell subprocess.

    Output from stdout and stderr is merged. ``read`` waits up to
    ``read_timeout`` seconds for output when none is buffered yet.
    """

    def __init__(self, shell: str = "/bin/sh", read_timeout: float = 0.5) -> None:
        self.shell = shell
        self.read_timeout = read_timeout
        self._sessions: dict[str, _ShellProcess] = {}

    async def create(self, shell_type: str = "shell") -> str:
        if shell_type != "shell":
            raise ValueError(f"Unsupported terminal type: {shell_type}")
        process = await asyncio.create_subprocess_exec(
            self.shell,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        session_id = f"term-{uuid.uuid4().hex[:12]}"
        entry = _ShellProcess(process=process)
        entry.reader = asyncio.create_task(self._pump(entry))
        self._sessions[session_id] = entry
        logger.info(f"Started local shell {session_id} (pid {process.pid})")
        return session_id

    async def _pump(self, entry: _ShellProcess) -> None:
        stream = entry.process.stdout
        if stream is None:
            return
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            entry.unread.append(chunk.decode("utf-8", errors="replace"))
            entry.data_ready.set()

    def _get(self, session_id: str) -> _ShellProcess:
        entry = self._sessions.get(session_id)
        if entry is None:
            raise SessionNotFoundError(session_id)
        return entry

    async def write(self, session_id: str, data: str) -> None:
        entry = self._get(session_id)
        stdin = entry.process.stdin
        if stdin is None or entry.process.returncode is not None:
            raise SessionNotFoundError(session_id)
        stdin.write(data.encode("utf-8"))
        await stdin.drain()
        entry.history.extend(line for line in data.splitlines() if line.strip())

    async def read(self, session_id: str) -> str:
        entry = self._get(session_id)
        if not entry.unread:
            try:
                await asyncio.wait_for(entry.data_ready.wait(), timeout=self.read_timeout)
            except asyncio.TimeoutError:
                return ""
        output = "".join(entry.unread)
        entry.unread.clear()
        entry.data_ready.clear()
        return output

    async def peek(self, session_id: str) -> str:
        return "".join(self._get(session_id).unread)

    async def resize(self, session_id: str, cols: int, rows: int) -> None:
        # Pipes have no window size; remember it for inspection.
        entry = self._get(session_id)
        entry.cols, entry.rows = cols, rows

    async def close(self, session_id: str) -> None:
        entry = self._sessions.pop(session_id, None)
        if entry is None:
            raise SessionNotFoundError(session_id)
        if entry.process.returncode is None:
            entry.process.terminate()
            try:
                await asyncio.wait_for(entry.process.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                entry.process.kill()
                await entry.process.wait()
        if entry.reader is not None:
            entry.reader.cancel()
        logger.info(f"Closed local shell {session_id}")

    async def history(self, session_id: str) -> list[str]:
        return list(self._get(session_id).history)

    def exists(self, session_id: str) -> bool:
        entry = self._sessions.get(session_id)
        return entry is not None and entry.process.returncode is None

    def list_ids(self) -> list[str]:
        return list(self._sessions)

    async def shutdown(self) -> None:
        """Close every session still open."""
        for session_id in list(self._sessions):
            await self.close(session_id)
