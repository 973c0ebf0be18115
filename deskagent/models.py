"""
deskagent - Canonical conversation model shared by every protocol adapter.

Provider wire formats are translated to and from these records; nothing in
this module knows about any particular provider.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from .exceptions import HistoryValidationError


class Role(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class SessionOrigin(str, Enum):
    """Who created a terminal session."""

    USER = "user"
    AI = "ai"


class SessionState(str, Enum):
    """Lifecycle of a terminal session. There is no transition out of CLOSED."""

    CREATED = "created"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(frozen=True)
class ImageAttachment:
    """An image attached to a user turn, already base64-encoded."""

    file_name: str
    data: str
    mime_type: str

    def to_dict(self) -> dict[str, Any]:
        return {"fileName": self.file_name, "base64": self.data, "mimeType": self.mime_type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageAttachment":
        return cls(
            file_name=data.get("fileName") or data.get("file_name", ""),
            data=data.get("base64") or data.get("data", ""),
            mime_type=data.get("mimeType") or data.get("mime_type", "image/png"),
        )


@dataclass(frozen=True)
class ToolCall:
    """A model-issued request to invoke a tool.

    ``thought_signature`` is the provider's opaque reasoning-continuity token.
    It is only ever set on the first call of a parallel batch.
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    thought_signature: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
        }
        if self.thought_signature:
            result["thought_signature"] = self.thought_signature
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        return cls(
            id=data["id"],
            name=data["name"],
            arguments=data.get("arguments") or {},
            thought_signature=data.get("thought_signature"),
        )


@dataclass(frozen=True)
class ToolResult:
    """Outcome of dispatching one tool call.

    Fields:
        tool_call_id: Id of the ToolCall this result answers.
        tool_name: Name of the tool that ran.
        success: Whether the handler reported success.
        output: Text shown to the model.
        error: Human-readable error description, if any.
        duration_ms: Wall-clock time from dispatch entry to completion.
        metadata: Handler-specific extras such as ``retryable`` and ``errorType``.
    """

    tool_call_id: str
    tool_name: str
    success: bool
    output: str = ""
    error: Optional[str] = None
    duration_ms: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.duration_ms < 0:
            raise ValueError("duration_ms must be non-negative")

    @property
    def retryable(self) -> bool:
        return bool(self.metadata.get("retryable", False))

    @property
    def error_kind(self) -> Optional[str]:
        return self.metadata.get("errorType")

    def content_for_model(self) -> str:
        """Text placed in the tool-answer turn sent back to the provider."""
        if self.success:
            return self.output
        if self.error and self.error not in self.output:
            return f"{self.output}\nError: {self.error}" if self.output else f"Error: {self.error}"
        return self.output

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "toolCallId": self.tool_call_id,
            "toolCallName": self.tool_name,
            "success": self.success,
            "output": self.output,
            "durationMs": self.duration_ms,
        }
        if self.error is not None:
            result["error"] = self.error
        if self.metadata:
            result["metadata"] = self.metadata
        return result


@dataclass(frozen=True)
class ConversationTurn:
    """One turn of a conversation in provider-independent form.

    Assistant turns may carry ``tool_calls``; tool turns carry the
    ``tool_call_id`` they answer. ``is_complete``, ``provider`` and ``model``
    are only meaningful on turns returned by an adapter.
    """

    role: Role
    content: Optional[str] = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    thought: Optional[str] = None
    thought_signature: Optional[str] = None
    images: tuple[ImageAttachment, ...] = ()
    is_complete: bool = True
    provider: Optional[str] = None
    model: Optional[str] = None

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0

    @classmethod
    def user(
        cls, content: str, images: Optional[Sequence[ImageAttachment]] = None
    ) -> "ConversationTurn":
        return cls(role=Role.USER, content=content, images=tuple(images or ()))

    @classmethod
    def system(cls, content: str) -> "ConversationTurn":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def assistant(
        cls,
        content: Optional[str] = None,
        tool_calls: Optional[Iterable[ToolCall]] = None,
        thought: Optional[str] = None,
        thought_signature: Optional[str] = None,
    ) -> "ConversationTurn":
        calls = tuple(tool_calls or ())
        assert_unique_tool_call_ids(calls)
        return cls(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=calls,
            thought=thought,
            thought_signature=thought_signature,
        )

    @classmethod
    def tool_answer(
        cls, result: ToolResult, thought_signature: Optional[str] = None
    ) -> "ConversationTurn":
        """Build the tool turn answering ``result``.

        ``thought_signature`` must be the value carried by the originating
        ToolCall, passed through unmodified.
        """
        return cls(
            role=Role.TOOL,
            content=result.content_for_model(),
            tool_call_id=result.tool_call_id,
            tool_name=result.tool_name,
            thought_signature=thought_signature,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            result["toolCalls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            result["toolCallId"] = self.tool_call_id
        if self.tool_name:
            result["toolCallName"] = self.tool_name
        if self.thought:
            result["thought"] = self.thought
        if self.thought_signature:
            result["thought_signature"] = self.thought_signature
        if self.images:
            result["images"] = [img.to_dict() for img in self.images]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationTurn":
        return cls(
            role=Role(data["role"]),
            content=data.get("content"),
            tool_calls=tuple(ToolCall.from_dict(tc) for tc in data.get("toolCalls") or []),
            tool_call_id=data.get("toolCallId"),
            tool_name=data.get("toolCallName"),
            thought=data.get("thought"),
            thought_signature=data.get("thought_signature"),
            images=tuple(ImageAttachment.from_dict(i) for i in data.get("images") or []),
        )


@dataclass
class ExecutionSession:
    """A persistent terminal session tracked by the terminal tool family."""

    session_id: str
    origin: SessionOrigin
    owner_session_id: Optional[str] = None
    workspace_root: Optional[str] = None
    state: SessionState = SessionState.CREATED
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    command_history: list[str] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED

    def activate(self) -> None:
        if self.state == SessionState.CLOSED:
            raise ValueError(f"Session {self.session_id} is closed and cannot be reopened")
        self.state = SessionState.ACTIVE
        self.last_activity = time.time()

    def close(self) -> None:
        self.state = SessionState.CLOSED
        self.last_activity = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "createdBy": self.origin.value,
            "ownerSessionId": self.owner_session_id,
            "workspaceRoot": self.workspace_root or "unknown",
            "state": self.state.value,
            "createdAt": self.created_at,
            "lastActivity": self.last_activity,
            "commandCount": len(self.command_history),
        }


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def assert_unique_tool_call_ids(calls: Sequence[ToolCall]) -> None:
    """Raise HistoryValidationError if two calls in one turn share an id."""
    seen: set[str] = set()
    for call in calls:
        if call.id in seen:
            raise HistoryValidationError(f"Duplicate tool call id in one turn: {call.id}")
        seen.add(call.id)


def validate_history(turns: Sequence[ConversationTurn]) -> None:
    """Check that every tool call is answered by exactly one tool turn.

    Answers must arrive after the assistant turn that issued the calls and
    before any other user or assistant turn.
    """
    pending: dict[str, str] = {}
    for index, turn in enumerate(turns):
        if turn.role == Role.TOOL:
            if turn.tool_call_id not in pending:
                raise HistoryValidationError(
                    f"Tool turn at index {index} answers unknown or already answered "
                    f"call id {turn.tool_call_id!r}"
                )
            del pending[turn.tool_call_id]
            continue

        if pending:
            raise HistoryValidationError(
                f"Turn at index {index} follows unanswered tool calls: "
                f"{', '.join(sorted(pending))}"
            )

        if turn.role == Role.ASSISTANT and turn.tool_calls:
            assert_unique_tool_call_ids(turn.tool_calls)
            pending = {tc.id: tc.name for tc in turn.tool_calls}

    if pending:
        raise HistoryValidationError(
            f"History ends with unanswered tool calls: {', '.join(sorted(pending))}"
        )


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


@dataclass
class ParameterSchema:
    """JSON-schema style object describing a tool's arguments.

    ``properties`` keeps insertion order; serializers must not reorder it.
    """

    properties: dict[str, dict[str, Any]] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": self.properties,
            "required": list(self.required),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParameterSchema":
        return cls(
            properties=dict(data.get("properties") or {}),
            required=list(data.get("required") or []),
        )


@dataclass
class ToolDefinition:
    """A tool the model may call."""

    name: str
    description: str
    parameters: ParameterSchema = field(default_factory=ParameterSchema)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolDefinition":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            parameters=ParameterSchema.from_dict(data.get("parameters") or {}),
        )
