"""
deskagent - Custom exceptions for error handling.

Adapter-level errors (ProviderTransportError, ProviderProtocolError) are hard
failures and propagate to the caller. Dispatcher-level errors are caught and
reported inside a ToolResult.
"""

import re
from typing import Any, Optional


class DeskAgentError(Exception):
    """Base exception for all deskagent errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class ConfigurationError(DeskAgentError):
    """Raised when runtime or provider configuration is invalid."""

    pass


class CredentialError(DeskAgentError):
    """Raised when an API key cannot be loaded, saved or verified."""

    pass


class ProviderTransportError(DeskAgentError):
    """Raised when a provider request fails at the network or HTTP-status level."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        retryable: bool = False,
        body: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.provider = provider
        self.retryable = retryable
        self.body = body


class ProviderProtocolError(DeskAgentError):
    """Raised when a provider response cannot be parsed into the canonical model."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.provider = provider


class HistoryValidationError(DeskAgentError):
    """Raised when a conversation history breaks call/result pairing."""

    pass


class DuplicateToolError(DeskAgentError):
    """Raised when two tool definitions share a name."""

    pass


class ToolNotFoundError(DeskAgentError):
    """Raised when no handler family or core tool matches a tool name."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class ToolExecutionError(DeskAgentError):
    """Raised by a handler that failed while executing a tool call.

    ``error_kind`` and ``retryable`` are copied into the result metadata so the
    model (and the orchestration loop) can decide what to do next.
    """

    error_kind = "execution_failed"
    retryable = True

    def __init__(
        self,
        message: str,
        error_kind: Optional[str] = None,
        retryable: Optional[bool] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if error_kind is not None:
            self.error_kind = error_kind
        if retryable is not None:
            self.retryable = retryable


class SessionNotFoundError(ToolExecutionError):
    """Raised when a terminal session id is unknown to the host."""

    error_kind = "session_not_found"
    retryable = False

    def __init__(self, session_id: str, **kwargs: Any) -> None:
        super().__init__(
            f"Terminal session {session_id} not found. "
            "Use list_terminals to see available sessions.",
            **kwargs,
        )
        self.session_id = session_id


class PermissionDeniedError(ToolExecutionError):
    """Raised when the host refuses an operation on a session or path."""

    error_kind = "permission_denied"
    retryable = False


class SessionClosedError(ToolExecutionError):
    """Raised when a session is closed while an operation is in flight."""

    error_kind = "session_closed"
    retryable = False

    def __init__(self, session_id: str, **kwargs: Any) -> None:
        super().__init__(f"Terminal session {session_id} was closed", **kwargs)
        self.session_id = session_id


def redact_secrets(error_str: str) -> str:
    """Remove anything that looks like a secret from error messages."""
    cleaned = re.sub(
        r"(api[_-]?key|key|token|secret|password|bearer)\s*[=:]\s*[^\s&]+",
        r"\1=[REDACTED]",
        error_str,
        flags=re.IGNORECASE,
    )
    cleaned = re.sub(r"[A-Za-z0-9_\-+/]{40,}={0,2}", "[REDACTED]", cleaned)
    return cleaned
