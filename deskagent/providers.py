"""
deskagent - Provider profiles and model capabilities.

A ProviderProfile describes how to reach a provider: its wire format, base
URL, default model and where the API key goes. Profiles are immutable; an
endpoint override produces a new profile.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger("deskagent.providers")


class WireFormat(str, Enum):
    """Conversational wire protocol spoken by a provider."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class AuthPlacement(str, Enum):
    """Where the API key is attached to a request."""

    HEADER = "header"
    QUERY = "query"


@dataclass(frozen=True)
class ProviderProfile:
    """How to reach one provider."""

    id: str
    wire_format: WireFormat
    base_url: str
    default_model: str
    auth_header: str = "Authorization"
    auth_prefix: str = "Bearer "
    auth_placement: AuthPlacement = AuthPlacement.HEADER
    extra_headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    name: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.extra_headers, MappingProxyType):
            object.__setattr__(self, "extra_headers", MappingProxyType(dict(self.extra_headers)))
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    def with_endpoint(self, url: str) -> "ProviderProfile":
        """Return a copy of this profile pointing at ``url``."""
        return replace(self, base_url=url)

    def auth_headers(self, api_key: str) -> dict[str, str]:
        """Headers for a request, including the key when it goes in a header."""
        headers = {"Content-Type": "application/json"}
        headers.update(self.extra_headers)
        if self.auth_placement == AuthPlacement.HEADER and api_key:
            headers[self.auth_header] = f"{self.auth_prefix}{api_key}"
        return headers

    def auth_params(self, api_key: str) -> dict[str, str]:
        """Query parameters carrying the key when it goes in the URL."""
        if self.auth_placement == AuthPlacement.QUERY and api_key:
            return {"key": api_key}
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name or self.id,
            "wire_format": self.wire_format.value,
            "base_url": self.base_url,
            "default_model": self.default_model,
            "auth_header": self.auth_header,
            "auth_prefix": self.auth_prefix,
            "auth_placement": self.auth_placement.value,
            "extra_headers": dict(self.extra_headers),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProviderProfile":
        try:
            return cls(
                id=data["id"],
                wire_format=WireFormat(data.get("wire_format", "openai")),
                base_url=data["base_url"],
                default_model=data["default_model"],
                auth_header=data.get("auth_header", "Authorization"),
                auth_prefix=data.get("auth_prefix", "Bearer "),
                auth_placement=AuthPlacement(data.get("auth_placement", "header")),
                extra_headers=data.get("extra_headers") or {},
                name=data.get("name"),
            )
        except KeyError as e:
            raise ConfigurationError(f"Provider profile is missing field {e.args[0]!r}")
        except ValueError as e:
            raise ConfigurationError(f"Invalid provider profile: {e}")


@dataclass(frozen=True)
class ModelCapabilities:
    """What a model supports."""

    tool_calling: bool = True
    vision: bool = False
    context_window: int = 128000
    max_output_tokens: int = 4096


OPENAI_PROFILE = ProviderProfile(
    id="openai",
    name="OpenAI",
    wire_format=WireFormat.OPENAI,
    base_url="https://api.openai.com/v1",
    default_model="gpt-4o-mini",
)

ANTHROPIC_PROFILE = ProviderProfile(
    id="anthropic",
    name="Anthropic",
    wire_format=WireFormat.ANTHROPIC,
    base_url="https://api.anthropic.com/v1",
    default_model="claude-3-5-sonnet-20241022",
    auth_header="x-api-key",
    auth_prefix="",
    extra_headers={"anthropic-version": "2023-06-01"},
)

GOOGLE_PROFILE = ProviderProfile(
    id="google",
    name="Google Gemini",
    wire_format=WireFormat.GOOGLE,
    base_url="https://generativelanguage.googleapis.com/v1beta",
    default_model="gemini-2.0-flash",
    auth_header="",
    auth_prefix="",
    auth_placement=AuthPlacement.QUERY,
)

OLLAMA_PROFILE = ProviderProfile(
    id="ollama",
    name="Ollama",
    wire_format=WireFormat.OPENAI,
    base_url="http://localhost:11434/v1",
    default_model="llama3.2",
)

BUILTIN_PROFILES = (OPENAI_PROFILE, ANTHROPIC_PROFILE, GOOGLE_PROFILE, OLLAMA_PROFILE)

MODEL_CAPABILITIES: dict[str, ModelCapabilities] = {
    "gpt-4o": ModelCapabilities(vision=True, max_output_tokens=16384),
    "gpt-4o-mini": ModelCapabilities(vision=True, max_output_tokens=16384),
    "gpt-4-turbo": ModelCapabilities(vision=True),
    "o1-preview": ModelCapabilities(tool_calling=False, max_output_tokens=32768),
    "o1-mini": ModelCapabilities(tool_calling=False, max_output_tokens=65536),
    "claude-3-5-sonnet-20241022": ModelCapabilities(
        vision=True, context_window=200000, max_output_tokens=8192
    ),
    "claude-3-5-haiku-20241022": ModelCapabilities(context_window=200000, max_output_tokens=8192),
    "claude-3-opus-20240229": ModelCapabilities(vision=True, context_window=200000),
    "gemini-2.0-flash": ModelCapabilities(
        vision=True, context_window=1048576, max_output_tokens=8192
    ),
    "gemini-1.5-pro": ModelCapabilities(
        vision=True, context_window=2097152, max_output_tokens=8192
    ),
    "gemini-1.5-flash": ModelCapabilities(
        vision=True, context_window=1048576, max_output_tokens=8192
    ),
}


def get_model_capabilities(model: str) -> Optional[ModelCapabilities]:
    """Capabilities for a known model, or None when the model is unknown."""
    return MODEL_CAPABILITIES.get(model)


def supports_tool_calling(model: str) -> bool:
    """Unknown models are assumed to support tool calling."""
    caps = get_model_capabilities(model)
    return caps is None or caps.tool_calling


class ProviderRegistry:
    """Lookup of provider profiles by id."""

    def __init__(self, profiles: Optional[list[ProviderProfile]] = None) -> None:
        self._profiles: dict[str, ProviderProfile] = {}
        for profile in profiles if profiles is not None else BUILTIN_PROFILES:
            self.register(profile)

    def register(self, profile: ProviderProfile) -> None:
        if profile.id in self._profiles:
            logger.info(f"Replacing provider profile {profile.id}")
        self._profiles[profile.id] = profile

    def get(self, provider_id: str) -> ProviderProfile:
        try:
            return self._profiles[provider_id]
        except KeyError:
            raise ConfigurationError(f"Unknown provider: {provider_id}")

    def resolve(self, provider_id: str, endpoint: Optional[str] = None) -> ProviderProfile:
        """Return the profile for ``provider_id``, optionally with an overridden endpoint."""
        profile = self.get(provider_id)
        if endpoint:
            return profile.with_endpoint(endpoint)
        return profile

    def ids(self) -> list[str]:
        return list(self._profiles)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    @classmethod
    def from_yaml(cls, source: Union[str, Path], include_builtins: bool = True) -> "ProviderRegistry":
        """Load custom provider profiles from a YAML file or string.

        The document has a top-level ``providers`` list; each entry uses the
        same keys as ``ProviderProfile.to_dict``.
        """
        if isinstance(source, Path) or (
            isinstance(source, str) and "\n" not in source and Path(source).exists()
        ):
            with open(source, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        else:
            data = yaml.safe_load(source)

        if not isinstance(data, dict) or not isinstance(data.get("providers"), list):
            raise ConfigurationError("Provider file must contain a 'providers' list")

        registry = cls() if include_builtins else cls(profiles=[])
        for entry in data["providers"]:
            if not isinstance(entry, dict):
                raise ConfigurationError("Each provider entry must be a mapping")
            registry.register(ProviderProfile.from_dict(entry))
        return registry
