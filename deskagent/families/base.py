"""
Shared types for handler families.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from ..exceptions import ToolExecutionError
from ..services import ServiceBundle


@dataclass
class ToolContext:
    """What a handler knows about the call it is serving."""

    session_id: Optional[str] = None
    workspace_root: Optional[str] = None
    services: ServiceBundle = field(default_factory=ServiceBundle)


@dataclass
class FamilyResult:
    """Raw outcome of a family handler, before the dispatcher formats it."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any, **metadata: Any) -> "FamilyResult":
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def failure(
        cls, error: str, error_type: Optional[str] = None, retryable: Optional[bool] = None,
        **metadata: Any,
    ) -> "FamilyResult":
        if error_type is not None:
            metadata["errorType"] = error_type
        if retryable is not None:
            metadata["retryable"] = retryable
        return cls(success=False, error=error, metadata=metadata)

    def output_text(self) -> str:
        """``data`` as text (JSON when structured), else the error, else 'No output'."""
        if self.data:
            if isinstance(self.data, str):
                return self.data
            return json.dumps(self.data, indent=2, default=str)
        return self.error or "No output"


def require_arg(args: dict[str, Any], *names: str) -> Any:
    """Return the first non-empty argument among ``names``."""
    for name in names:
        value = args.get(name)
        if value not in (None, ""):
            return value
    raise ToolExecutionError(
        f"{names[0]} is required", error_kind="missing_parameter", retryable=False
    )
