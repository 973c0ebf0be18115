"""
deskagent - API key storage and verification.

Keys are owned by an external secure store; this module only defines the
protocol the runtime consumes, an in-memory store for development and tests,
and a tester that checks a key by listing the provider's models.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from .exceptions import CredentialError, redact_secrets
from .providers import ProviderRegistry

logger = logging.getLogger("deskagent.credentials")


@dataclass(frozen=True)
class KeyTestResult:
    """Outcome of a successful key test."""

    provider: str
    models: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"provider": self.provider, "models": list(self.models)}


@runtime_checkable
class CredentialStore(Protocol):
    async def load_key(self, provider_id: str) -> str: ...

    async def save_key(self, provider_id: str, secret: str, is_active: bool = True) -> None: ...

    async def test_key(self, provider_id: str, secret: str) -> KeyTestResult: ...


def _model_ids(payload: Any) -> list[str]:
    """Model ids from an OpenAI/Anthropic ``data`` list or a Google ``models`` list."""
    if not isinstance(payload, dict):
        return []
    ids: list[str] = []
    for entry in payload.get("data") or []:
        if isinstance(entry, dict) and entry.get("id"):
            ids.append(str(entry["id"]))
    for entry in payload.get("models") or []:
        if isinstance(entry, dict) and entry.get("name"):
            name = str(entry["name"])
            ids.append(name[len("models/"):] if name.startswith("models/") else name)
    return ids


class ProviderKeyTester:
    """Verifies an API key with ``GET {base}/models``."""

    def __init__(
        self,
        providers: Optional[ProviderRegistry] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.providers = providers if providers is not None else ProviderRegistry()
        self._http = http_client
        self.timeout = timeout

    async def test_key(self, provider_id: str, secret: str) -> KeyTestResult:
        if provider_id not in self.providers:
            raise CredentialError(f"Unknown provider: {provider_id}")
        profile = self.providers.get(provider_id)
        if not secret:
            raise CredentialError(f"No API key given for provider: {provider_id}")

        url = f"{profile.base_url}/models"
        headers = profile.auth_headers(secret)
        params = profile.auth_params(secret)
        try:
            if self._http is not None:
                response = await self._http.get(url, headers=headers, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, headers=headers, params=params)
        except httpx.HTTPError as e:
            raise CredentialError(
                f"Could not reach {provider_id}: {redact_secrets(str(e)) or type(e).__name__}"
            )

        if response.status_code in (401, 403):
            raise CredentialError(
                f"Invalid {provider_id} API key", status_code=response.status_code
            )
        if not response.is_success:
            raise CredentialError(
                f"Key test for {provider_id} failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            payload = None
        models = _model_ids(payload)
        logger.info(f"API key for {provider_id} verified ({len(models)} models)")
        return KeyTestResult(provider=provider_id, models=models)


class InMemoryCredentialStore:
    """Process-local credential store. Not persistent."""

    def __init__(self, tester: Optional[ProviderKeyTester] = None):
        self._keys: dict[str, str] = {}
        self._active: Optional[str] = None
        self._tester = tester or ProviderKeyTester()

    async def load_key(self, provider_id: str) -> str:
        try:
            return self._keys[provider_id]
        except KeyError:
            raise CredentialError(f"No API key found for provider: {provider_id}")

    async def save_key(self, provider_id: str, secret: str, is_active: bool = True) -> None:
        if not secret:
            raise CredentialError("Failed to save API key: key is empty")
        self._keys[provider_id] = secret
        if is_active:
            self._active = provider_id

    async def delete_key(self, provider_id: str) -> None:
        self._keys.pop(provider_id, None)
        if self._active == provider_id:
            self._active = None

    async def test_key(self, provider_id: str, secret: str) -> KeyTestResult:
        return await self._tester.test_key(provider_id, secret)

    @property
    def active_provider(self) -> Optional[str]:
        return self._active

    def providers(self) -> list[str]:
        return list(self._keys)
