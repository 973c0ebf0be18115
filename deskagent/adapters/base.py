"""Base class for protocol adapters.

An adapter turns the canonical conversation into one provider's request
body, sends a single non-streaming request and parses the reply back into a
ConversationTurn. Transport failures and unparseable replies are raised; the
orchestration loop decides whether to retry.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Optional, Sequence

import httpx

from ..config import RuntimeConfig
from ..exceptions import ProviderProtocolError, ProviderTransportError, redact_secrets
from ..models import ConversationTurn, ImageAttachment, Role, ToolDefinition, validate_history
from ..providers import ProviderProfile, WireFormat, supports_tool_calling

logger = logging.getLogger("deskagent.adapters")


@dataclass
class AdapterConfig:
    """Generation and transport settings shared by all adapters.

    Attributes:
        temperature: Sampling temperature sent to the provider.
        max_tokens: Output token cap sent to the provider.
        timeout_s: Request timeout when the adapter owns its HTTP client.
    """

    temperature: float = 0.7
    max_tokens: int = 4096
    timeout_s: float = 120.0

    @classmethod
    def from_runtime(cls, config: RuntimeConfig) -> "AdapterConfig":
        return cls(
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout_s=config.timeout_s,
        )


class ResponseFinalizer:
    """Hook for provider quirks applied to every parsed response.

    The default finalizer returns the turn unchanged.
    """

    def finalize(self, turn: ConversationTurn, model: str) -> ConversationTurn:
        return turn


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


def _retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class BaseProtocolAdapter:
    """Common request flow; subclasses implement the wire codec.

    Subclasses implement ``endpoint``, ``build_body``, ``encode_history``,
    ``decode_history`` and ``parse_response``.
    """

    wire_format: WireFormat

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        config: Optional[AdapterConfig] = None,
        finalizer: Optional[ResponseFinalizer] = None,
    ):
        self._http = http_client
        self._config = config or AdapterConfig()
        self._finalizer = finalizer or self.default_finalizer()

    @property
    def config(self) -> AdapterConfig:
        return self._config

    @property
    def finalizer(self) -> ResponseFinalizer:
        return self._finalizer

    def default_finalizer(self) -> ResponseFinalizer:
        return ResponseFinalizer()

    # ------------------------------------------------------------------
    # Codec hooks
    # ------------------------------------------------------------------

    def endpoint(self, profile: ProviderProfile, model: str) -> str:
        raise NotImplementedError

    def build_body(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system_prompt: Optional[str],
        tools: Optional[Sequence[ToolDefinition]],
    ) -> dict[str, Any]:
        raise NotImplementedError

    def encode_history(self, turns: Sequence[ConversationTurn]) -> list[dict[str, Any]]:
        raise NotImplementedError

    def decode_history(self, messages: Sequence[dict[str, Any]]) -> list[ConversationTurn]:
        raise NotImplementedError

    def parse_response(self, data: dict[str, Any]) -> ConversationTurn:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Request flow
    # ------------------------------------------------------------------

    async def chat(
        self,
        profile: ProviderProfile,
        api_key: str,
        model: Optional[str],
        user_message: Optional[str],
        history: Sequence[ConversationTurn],
        system_prompt: Optional[str],
        tools: Optional[Sequence[ToolDefinition]] = None,
        images: Optional[Sequence[ImageAttachment]] = None,
    ) -> ConversationTurn:
        """Send one conversation step and return the assistant's turn.

        ``user_message`` may be empty when the history already ends with the
        tool answers to send back. Tools are omitted for models known not to
        support tool calling.
        """
        model = model or profile.default_model
        turns = list(history)
        if user_message or images or not turns:
            turns.append(ConversationTurn.user(user_message or "", images))
        validate_history(turns)

        system_text = self._system_text(system_prompt, turns)
        turns = [t for t in turns if t.role != Role.SYSTEM]
        tool_payload = tools if tools and supports_tool_calling(model) else None

        body = self.build_body(model, self.encode_history(turns), system_text, tool_payload)
        data = await self._post(profile, api_key, self.endpoint(profile, model), body)

        turn = self._finalizer.finalize(self.parse_response(data), model)
        return replace(turn, provider=profile.id, model=model)

    @staticmethod
    def _system_text(system_prompt: Optional[str], turns: Sequence[ConversationTurn]) -> Optional[str]:
        parts = [system_prompt] if system_prompt else []
        parts.extend(t.content for t in turns if t.role == Role.SYSTEM and t.content)
        return "\n\n".join(parts) if parts else None

    async def _post(
        self, profile: ProviderProfile, api_key: str, url: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        headers = profile.auth_headers(api_key)
        params = profile.auth_params(api_key)
        count = len(body.get("messages") or body.get("contents") or [])
        logger.debug(f"POST {url} provider={profile.id} messages={count}")

        try:
            if self._http is not None:
                response = await self._http.post(url, json=body, headers=headers, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_s) as client:
                    response = await client.post(url, json=body, headers=headers, params=params)
        except httpx.TimeoutException:
            raise ProviderTransportError(
                f"Request to {profile.id} timed out", provider=profile.id, retryable=True
            )
        except httpx.TransportError as e:
            message = redact_secrets(str(e)) or type(e).__name__
            logger.warning(f"Transport error talking to {profile.id}: {message}")
            raise ProviderTransportError(
                f"Connection to {profile.id} failed: {message}", provider=profile.id, retryable=True
            )

        if not response.is_success:
            raise self._status_error(profile, response)

        try:
            data = response.json()
        except ValueError:
            raise ProviderProtocolError(
                f"{profile.id} returned a non-JSON response", provider=profile.id
            )
        if not isinstance(data, dict):
            raise ProviderProtocolError(
                f"{profile.id} returned an unexpected response shape", provider=profile.id
            )
        return data

    @staticmethod
    def _status_error(profile: ProviderProfile, response: httpx.Response) -> ProviderTransportError:
        parsed: Optional[dict[str, Any]] = None
        try:
            payload = response.json()
            if isinstance(payload, dict):
                parsed = payload
        except ValueError:
            pass

        message = f"API error: {response.status_code}"
        if parsed is not None:
            error = parsed.get("error")
            if isinstance(error, dict) and error.get("message"):
                message = str(error["message"])
            elif isinstance(error, str) and error:
                message = error

        logger.warning(f"{profile.id} responded {response.status_code}: {redact_secrets(message)}")
        return ProviderTransportError(
            redact_secrets(message),
            provider=profile.id,
            retryable=_retryable_status(response.status_code),
            body=response.text,
            status_code=response.status_code,
            response=parsed,
        )
