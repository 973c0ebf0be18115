"""
Origin registry: which terminal sessions exist, who created them and which
agent session owns them.

The registry is shared by the dispatcher and the terminal family and may be
touched from several threads, so every operation takes the same lock and
reads hand out copies.
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Optional

from ..models import ExecutionSession, SessionOrigin, SessionState

logger = logging.getLogger("deskagent.terminal.registry")


def _copy(session: ExecutionSession) -> ExecutionSession:
    return replace(session, command_history=list(session.command_history))


class OriginRegistry:
    """Thread-safe map of terminal session id to ExecutionSession."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._sessions: dict[str, ExecutionSession] = {}

    def register(
        self,
        session_id: str,
        origin: SessionOrigin,
        owner_session_id: Optional[str] = None,
        workspace_root: Optional[str] = None,
    ) -> ExecutionSession:
        session = ExecutionSession(
            session_id=session_id,
            origin=origin,
            owner_session_id=owner_session_id,
            workspace_root=workspace_root,
        )
        with self._lock:
            self._sessions[session_id] = session
            return _copy(session)

    def get(self, session_id: str) -> Optional[ExecutionSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            return _copy(session) if session else None

    def remove(self, session_id: str) -> Optional[ExecutionSession]:
        """Drop a session, marking it closed. Returns the removed record."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return None
            session.close()
            return _copy(session)

    def is_ai_created(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            return session is not None and session.origin == SessionOrigin.AI

    def terminal_for_owner(self, owner_session_id: str) -> Optional[str]:
        """Most recently created AI terminal owned by ``owner_session_id``."""
        with self._lock:
            owned = [
                s
                for s in self._sessions.values()
                if s.owner_session_id == owner_session_id and s.origin == SessionOrigin.AI
            ]
            if not owned:
                return None
            return max(owned, key=lambda s: s.created_at).session_id

    def sessions_for_owner(self, owner_session_id: str) -> list[str]:
        with self._lock:
            return [
                sid
                for sid, s in self._sessions.items()
                if s.owner_session_id == owner_session_id
            ]

    def record_command(self, session_id: str, command: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.state == SessionState.CLOSED:
                return
            session.command_history.append(command)
            session.activate()

    def snapshot(self) -> list[ExecutionSession]:
        """Copies of every registered session, in registration order."""
        with self._lock:
            return [_copy(s) for s in self._sessions.values()]

    def clear(self) -> None:
        """Forget every session. Used at shutdown and between tests."""
        with self._lock:
            count = len(self._sessions)
            for session in self._sessions.values():
                session.close()
            self._sessions.clear()
        if count:
            logger.info(f"Cleared {count} terminal session(s) from registry")

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
