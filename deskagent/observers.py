"""
deskagent - Best-effort side effects of tool dispatch.

Observers run after a ToolResult has been produced. They are scheduled on the
event loop and never delay or alter the result; any failure is logged and
dropped.
"""

import asyncio
import inspect
import logging
import re
import shlex
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from .models import ToolCall, ToolResult

logger = logging.getLogger("deskagent.observers")


@dataclass(frozen=True)
class DispatchEvent:
    """One completed dispatch."""

    call: ToolCall
    result: ToolResult
    session_id: Optional[str] = None
    workspace_root: Optional[str] = None


Observer = Callable[[DispatchEvent], Any]


class ObserverHub:
    """Fan-out of dispatch events to registered observers."""

    def __init__(self, observers: Optional[list[Observer]] = None) -> None:
        self._observers: list[Observer] = list(observers or [])
        self._pending: set[asyncio.Task] = set()

    def add(self, observer: Observer) -> None:
        self._observers.append(observer)

    def remove(self, observer: Observer) -> None:
        self._observers.remove(observer)

    def __len__(self) -> int:
        return len(self._observers)

    def emit(self, event: DispatchEvent) -> None:
        """Schedule every observer for ``event`` without waiting for any of them."""
        if not self._observers:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        for observer in list(self._observers):
            if loop is None:
                self._run(observer, event, None)
            else:
                loop.call_soon(self._run, observer, event, loop)

    def _run(
        self, observer: Observer, event: DispatchEvent, loop: Optional[asyncio.AbstractEventLoop]
    ) -> None:
        try:
            outcome = observer(event)
            if inspect.isawaitable(outcome):
                if loop is None:
                    logger.warning(f"Async observer {observer!r} skipped outside an event loop")
                    if inspect.iscoroutine(outcome):
                        outcome.close()
                    return
                task = asyncio.ensure_future(outcome)
                self._pending.add(task)
                task.add_done_callback(self._task_done)
        except Exception as e:
            logger.warning(f"Dispatch observer {observer!r} failed: {e}")

    def _task_done(self, task: "asyncio.Task[Any]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Dispatch observer task failed: {exc}")

    async def drain(self) -> None:
        """Let scheduled observers run to completion. Mainly for tests and shutdown."""
        await asyncio.sleep(0)
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# ---------------------------------------------------------------------------
# Created-file heuristic
# ---------------------------------------------------------------------------

_REDIRECT = re.compile(r"(?<![0-9&>])>>?\s*([^\s;&|<>]+)")
_OUTPUT_FLAG = re.compile(r"(?:^|\s)(?:-o|--output)(?:\s+|=)([^\s;&|<>]+)")
_SEGMENT_SPLIT = re.compile(r"\s*(?:&&|\|\||;|\|)\s*")


def _strip_quotes(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return token[1:-1]
    return token


def detect_created_files(command: str) -> list[str]:
    """Heuristic list of paths a shell command *may* create.

    Looks at output redirects, ``-o``/``--output`` flags and the ``touch``
    and ``tee`` commands. The result is advisory only: it can both miss files
    and name files that were never written.
    """
    candidates: list[str] = []

    def add(path: str) -> None:
        path = _strip_quotes(path)
        if path and path != "/dev/null" and not path.startswith("&") and path not in candidates:
            candidates.append(path)

    for match in _REDIRECT.finditer(command):
        add(match.group(1))
    for match in _OUTPUT_FLAG.finditer(command):
        add(match.group(1))

    for segment in _SEGMENT_SPLIT.split(command):
        try:
            words = shlex.split(segment)
        except ValueError:
            words = segment.split()
        if not words:
            continue
        if words[0] in ("touch", "tee"):
            for word in words[1:]:
                if word.startswith("-") or word in (">", ">>"):
                    continue
                add(word)

    return candidates


# ---------------------------------------------------------------------------
# Recent files
# ---------------------------------------------------------------------------


class FileAction(str, Enum):
    SEARCHED = "SEARCHED"
    OPENED = "OPENED"
    EDITED = "EDITED"
    CREATED = "CREATED"


@dataclass(frozen=True)
class RecentFile:
    path: str
    action: FileAction
    is_dir: bool
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": f"{self.path}-{self.action.value}",
            "path": self.path,
            "action": self.action.value,
            "isDir": self.is_dir,
            "timestamp": self.timestamp,
        }


MAX_RECENT_FILES = 50

_IGNORED_SUFFIXES = (".tmp", ".crdownload", ".part", ".log", ".lock", ".DS_Store")
_IGNORED_DIRS = ("node_modules", ".git", "__pycache__", "target", ".next", "dist", "build")


def _is_noise(path: str) -> bool:
    if path.endswith(_IGNORED_SUFFIXES):
        return True
    parts = re.split(r"[\\/]", path)
    return any(part in _IGNORED_DIRS for part in parts)


class RecentFilesObserver:
    """Keeps the most recent file interactions made by successful tool calls."""

    def __init__(self, max_entries: int = MAX_RECENT_FILES) -> None:
        self.max_entries = max_entries
        self._entries: deque[RecentFile] = deque()

    def __call__(self, event: DispatchEvent) -> None:
        if not event.result.success:
            return
        name, args = event.call.name, event.call.arguments
        if name == "read_file" and args.get("path"):
            self.log(args["path"], FileAction.OPENED)
        elif name == "write_file" and args.get("path"):
            self.log(args["path"], FileAction.EDITED)
        elif name == "list_directory" and args.get("path"):
            self.log(args["path"], FileAction.SEARCHED, is_dir=True)
        elif name in ("shell", "execute_command") and args.get("command"):
            for path in detect_created_files(args["command"]):
                self.log(path, FileAction.CREATED)

    def log(self, path: str, action: Union[FileAction, str], is_dir: bool = False) -> None:
        if _is_noise(path):
            return
        entry = RecentFile(path=path, action=FileAction(action), is_dir=is_dir, timestamp=time.time())
        # Keep only the latest action per path.
        self._entries = deque(e for e in self._entries if e.path != path)
        self._entries.appendleft(entry)
        while len(self._entries) > self.max_entries:
            self._entries.pop()

    def recent(self, limit: Optional[int] = None) -> list[RecentFile]:
        entries = list(self._entries)
        return entries[:limit] if limit is not None else entries

    def clear(self) -> None:
        self._entries.clear()
