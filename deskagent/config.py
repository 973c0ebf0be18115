"""
Runtime configuration for deskagent.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .exceptions import ConfigurationError

DEFAULT_BACKEND_URL = "http://localhost:3001"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


@dataclass
class RuntimeConfig:
    """Configuration for adapters, the backend client and the local shell."""

    backend_url: str = DEFAULT_BACKEND_URL
    timeout_s: float = 120.0
    temperature: float = 0.7
    max_tokens: int = 4096
    log_level: str = "info"
    shell: str = "/bin/sh"
    providers_file: Optional[str] = None

    def __post_init__(self):
        if self.timeout_s <= 0:
            raise ConfigurationError("timeout_s must be positive")
        if self.max_tokens <= 0:
            raise ConfigurationError("max_tokens must be positive")
        self.backend_url = self.backend_url.rstrip("/")

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """Create configuration from environment variables."""
        return cls(
            backend_url=os.environ.get("DESKAGENT_BACKEND_URL", DEFAULT_BACKEND_URL),
            timeout_s=_env_float("DESKAGENT_TIMEOUT_S", 120.0),
            temperature=_env_float("DESKAGENT_TEMPERATURE", 0.7),
            max_tokens=_env_int("DESKAGENT_MAX_TOKENS", 4096),
            log_level=os.environ.get("DESKAGENT_LOG_LEVEL", "info"),
            shell=os.environ.get("DESKAGENT_SHELL", "/bin/sh"),
            providers_file=os.environ.get("DESKAGENT_PROVIDERS_FILE") or None,
        )

    def configure_logging(self) -> None:
        """Apply ``log_level`` to the ``deskagent`` logger hierarchy."""
        level = getattr(logging, self.log_level.upper(), None)
        if not isinstance(level, int):
            raise ConfigurationError(f"Unknown log level: {self.log_level}")
        logging.getLogger("deskagent").setLevel(level)
