"""
deskagent - Multi-provider agent runtime for a desktop assistant.

Translates one canonical conversation into the OpenAI, Anthropic and Google
wire formats, and executes the tools a model asks for, including persistent
terminal sessions owned by the agent conversation that created them.
"""

from .adapters import (
    AdapterConfig,
    AnthropicAdapter,
    BaseProtocolAdapter,
    GoogleAdapter,
    GoogleThoughtSignatureFinalizer,
    OpenAIAdapter,
    ResponseFinalizer,
    get_adapter,
)
from .backend import BackendClient
from .config import RuntimeConfig
from .credentials import (
    CredentialStore,
    InMemoryCredentialStore,
    KeyTestResult,
    ProviderKeyTester,
)
from .dispatcher import (
    DispatchOptions,
    DispatchTable,
    HandlerFamily,
    ToolDispatcher,
    default_dispatch_table,
)
from .exceptions import (
    ConfigurationError,
    CredentialError,
    DeskAgentError,
    DuplicateToolError,
    HistoryValidationError,
    PermissionDeniedError,
    ProviderProtocolError,
    ProviderTransportError,
    SessionClosedError,
    SessionNotFoundError,
    ToolExecutionError,
    ToolNotFoundError,
)
from .models import (
    ConversationTurn,
    ExecutionSession,
    ImageAttachment,
    ParameterSchema,
    Role,
    SessionOrigin,
    SessionState,
    ToolCall,
    ToolDefinition,
    ToolResult,
    validate_history,
)
from .observers import (
    DispatchEvent,
    ObserverHub,
    RecentFilesObserver,
    detect_created_files,
)
from .providers import (
    ModelCapabilities,
    ProviderProfile,
    ProviderRegistry,
    WireFormat,
    supports_tool_calling,
)
from .schema import ToolRegistry
from .services import ServiceBundle
from .terminal import LocalShellService, OriginRegistry, TerminalService, TerminalToolFamily

__version__ = "0.1.0"

__all__ = [
    # Adapters
    "AdapterConfig",
    "AnthropicAdapter",
    "BaseProtocolAdapter",
    "GoogleAdapter",
    "GoogleThoughtSignatureFinalizer",
    "OpenAIAdapter",
    "ResponseFinalizer",
    "get_adapter",
    # Backend and credentials
    "BackendClient",
    "CredentialStore",
    "InMemoryCredentialStore",
    "KeyTestResult",
    "ProviderKeyTester",
    # Config
    "RuntimeConfig",
    # Dispatch
    "DispatchOptions",
    "DispatchTable",
    "HandlerFamily",
    "ToolDispatcher",
    "default_dispatch_table",
    "DispatchEvent",
    "ObserverHub",
    "RecentFilesObserver",
    "detect_created_files",
    # Exceptions
    "ConfigurationError",
    "CredentialError",
    "DeskAgentError",
    "DuplicateToolError",
    "HistoryValidationError",
    "PermissionDeniedError",
    "ProviderProtocolError",
    "ProviderTransportError",
    "SessionClosedError",
    "SessionNotFoundError",
    "ToolExecutionError",
    "ToolNotFoundError",
    # Models
    "ConversationTurn",
    "ExecutionSession",
    "ImageAttachment",
    "ParameterSchema",
    "Role",
    "SessionOrigin",
    "SessionState",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    "validate_history",
    # Providers and tools
    "ModelCapabilities",
    "ProviderProfile",
    "ProviderRegistry",
    "WireFormat",
    "supports_tool_calling",
    "ToolRegistry",
    "ServiceBundle",
    # Terminal
    "LocalShellService",
    "OriginRegistry",
    "TerminalService",
    "TerminalToolFamily",
]
