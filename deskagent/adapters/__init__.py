"""Protocol adapters for the supported provider wire formats.

Each adapter translates the canonical conversation into one provider's
request body, performs a single non-streaming request and parses the reply
back into a ConversationTurn.

Supported wire formats:
- OpenAI chat completions (OpenAI, Ollama, LM Studio and other compatible servers)
- Anthropic Messages
- Google Generative Language (Gemini)

Example usage:

    import httpx
    from deskagent.adapters import get_adapter
    from deskagent.providers import OPENAI_PROFILE, WireFormat

    async with httpx.AsyncClient(timeout=120) as http:
        adapter = get_adapter(WireFormat.OPENAI, http_client=http)
        turn = await adapter.chat(
            OPENAI_PROFILE, api_key, "gpt-4o", "Hello", history=[], system_prompt=None
        )
        print(turn.content)
"""

from typing import Any, Union

from deskagent.adapters.anthropic_adapter import AnthropicAdapter
from deskagent.adapters.base import AdapterConfig, BaseProtocolAdapter, ResponseFinalizer
from deskagent.adapters.google_adapter import (
    BYPASS_THOUGHT_SIGNATURE,
    GoogleAdapter,
    GoogleThoughtSignatureFinalizer,
)
from deskagent.adapters.openai_adapter import OpenAIAdapter
from deskagent.exceptions import ConfigurationError
from deskagent.providers import WireFormat

_ADAPTERS: dict[WireFormat, type[BaseProtocolAdapter]] = {
    WireFormat.OPENAI: OpenAIAdapter,
    WireFormat.ANTHROPIC: AnthropicAdapter,
    WireFormat.GOOGLE: GoogleAdapter,
}


def register_adapter(wire_format: WireFormat, adapter_cls: type[BaseProtocolAdapter]) -> None:
    """Register (or replace) the adapter class used for ``wire_format``."""
    _ADAPTERS[WireFormat(wire_format)] = adapter_cls


def get_adapter(wire_format: Union[WireFormat, str], **kwargs: Any) -> BaseProtocolAdapter:
    """Instantiate the adapter for ``wire_format``.

    Keyword arguments are passed to the adapter constructor.
    """
    try:
        adapter_cls = _ADAPTERS[WireFormat(wire_format)]
    except (KeyError, ValueError):
        raise ConfigurationError(f"No adapter for wire format: {wire_format}")
    return adapter_cls(**kwargs)


__all__ = [
    "AdapterConfig",
    "AnthropicAdapter",
    "BaseProtocolAdapter",
    "BYPASS_THOUGHT_SIGNATURE",
    "GoogleAdapter",
    "GoogleThoughtSignatureFinalizer",
    "OpenAIAdapter",
    "ResponseFinalizer",
    "get_adapter",
    "register_adapter",
]
