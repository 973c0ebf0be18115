"""Google Generative Language (Gemini) wire format.

The assistant role is called ``model`` on the wire, and tool answers are
``functionResponse`` parts inside a user content. Reasoning continuity is
carried by an opaque ``thoughtSignature`` that must be echoed back on the
first function call of the turn that produced it.
"""

import logging
from dataclasses import replace
from typing import Any, Optional, Sequence

from ..exceptions import ProviderProtocolError
from ..models import ConversationTurn, ImageAttachment, Role, ToolCall, ToolDefinition
from ..providers import ProviderProfile, WireFormat
from ..schema import to_google_tools
from .base import BaseProtocolAdapter, ResponseFinalizer, new_call_id

logger = logging.getLogger("deskagent.adapters.google")

BYPASS_THOUGHT_SIGNATURE = "skip_thought_signature_validator"


class GoogleThoughtSignatureFinalizer(ResponseFinalizer):
    """Fill in a missing thought signature for models that reject its absence.

    Gemini 3 models refuse a history in which a function call lacks a
    signature. When such a model returns calls without one, the first call
    gets the documented bypass token. Applying this twice changes nothing.
    """

    model_prefixes: tuple[str, ...] = ("gemini-3",)

    def applies_to(self, model: str) -> bool:
        return model.startswith(self.model_prefixes)

    def finalize(self, turn: ConversationTurn, model: str) -> ConversationTurn:
        if not self.applies_to(model) or not turn.tool_calls:
            return turn
        first = turn.tool_calls[0]
        if first.thought_signature:
            return turn
        logger.debug(f"Substituting bypass thought signature for {model} call {first.id}")
        calls = (replace(first, thought_signature=BYPASS_THOUGHT_SIGNATURE),) + turn.tool_calls[1:]
        return replace(turn, tool_calls=calls)


class GoogleAdapter(BaseProtocolAdapter):
    """Adapter for ``POST {base}/models/{model}:generateContent``."""

    wire_format = WireFormat.GOOGLE

    def default_finalizer(self) -> ResponseFinalizer:
        return GoogleThoughtSignatureFinalizer()

    def endpoint(self, profile: ProviderProfile, model: str) -> str:
        return f"{profile.base_url}/models/{model}:generateContent"

    def build_body(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system_prompt: Optional[str],
        tools: Optional[Sequence[ToolDefinition]],
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "contents": messages,
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_tokens,
            },
        }
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        if tools:
            body["tools"] = to_google_tools(tools)
        return body

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode_history(self, turns: Sequence[ConversationTurn]) -> list[dict[str, Any]]:
        contents: list[dict[str, Any]] = []
        for turn in turns:
            if turn.role == Role.USER:
                parts: list[dict[str, Any]] = [{"text": turn.content or ""}]
                for img in turn.images:
                    parts.append({"inlineData": {"mimeType": img.mime_type, "data": img.data}})
                contents.append({"role": "user", "parts": parts})
            elif turn.role == Role.ASSISTANT:
                contents.append({"role": "model", "parts": self._model_parts(turn)})
            elif turn.role == Role.TOOL:
                part: dict[str, Any] = {
                    "functionResponse": {
                        "id": turn.tool_call_id,
                        "name": turn.tool_name or "",
                        "response": {"result": turn.content or ""},
                    }
                }
                # Echo the signature of the call this answers, unmodified.
                if turn.thought_signature:
                    part["thoughtSignature"] = turn.thought_signature
                previous = contents[-1] if contents else None
                if previous is not None and _is_function_response_content(previous):
                    previous["parts"].append(part)
                else:
                    contents.append({"role": "user", "parts": [part]})
        return contents

    @staticmethod
    def _model_parts(turn: ConversationTurn) -> list[dict[str, Any]]:
        parts: list[dict[str, Any]] = []
        if turn.thought:
            parts.append({"text": turn.thought, "thought": True})
        if turn.content:
            parts.append({"text": turn.content})
        for index, tc in enumerate(turn.tool_calls):
            part: dict[str, Any] = {
                "functionCall": {"id": tc.id, "name": tc.name, "args": tc.arguments}
            }
            # Only the first call of a batch carries the signature.
            signature = tc.thought_signature if index == 0 else None
            if index == 0 and not signature:
                signature = turn.thought_signature
            if signature:
                part["thoughtSignature"] = signature
            parts.append(part)
        if not parts:
            parts.append({"text": ""})
        if not turn.tool_calls and turn.thought_signature:
            parts[0]["thoughtSignature"] = turn.thought_signature
        return parts

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode_history(self, messages: Sequence[dict[str, Any]]) -> list[ConversationTurn]:
        tool_names: dict[str, str] = {}
        pending: list[str] = []
        turns: list[ConversationTurn] = []
        for content in messages:
            role = content.get("role")
            parts = content.get("parts") or []
            if role == "model":
                turn = self._decode_model_parts(parts)
                tool_names.update({tc.id: tc.name for tc in turn.tool_calls})
                pending = [tc.id for tc in turn.tool_calls]
                turns.append(turn)
            elif role == "user":
                if any("functionResponse" in p for p in parts):
                    for part in parts:
                        response = part.get("functionResponse")
                        if response is None:
                            continue
                        call_id = response.get("id") or _match_pending(
                            pending, tool_names, response.get("name")
                        )
                        if call_id in pending:
                            pending.remove(call_id)
                        turns.append(
                            ConversationTurn(
                                role=Role.TOOL,
                                content=_response_text(response.get("response")),
                                tool_call_id=call_id,
                                tool_name=response.get("name") or tool_names.get(call_id),
                                thought_signature=part.get("thoughtSignature"),
                            )
                        )
                else:
                    turns.append(self._decode_user_parts(parts))
            else:
                raise ProviderProtocolError(f"Unknown content role: {role!r}", provider="google")
        return turns

    @staticmethod
    def _decode_user_parts(parts: Sequence[dict[str, Any]]) -> ConversationTurn:
        texts, images = [], []
        for part in parts:
            if "text" in part:
                texts.append(part["text"])
            elif "inlineData" in part:
                inline = part["inlineData"]
                images.append(
                    ImageAttachment(
                        file_name="",
                        data=inline.get("data", ""),
                        mime_type=inline.get("mimeType", "image/png"),
                    )
                )
        return ConversationTurn.user("".join(texts), images)

    @staticmethod
    def _decode_model_parts(parts: Sequence[dict[str, Any]]) -> ConversationTurn:
        texts: list[str] = []
        thoughts: list[str] = []
        calls: list[ToolCall] = []
        signature: Optional[str] = None
        for part in parts:
            if signature is None and part.get("thoughtSignature"):
                signature = part["thoughtSignature"]
            if "functionCall" in part:
                fc = part["functionCall"] or {}
                name = fc.get("name")
                if not name:
                    raise ProviderProtocolError("functionCall part without a name", provider="google")
                args = fc.get("args") or {}
                if not isinstance(args, dict):
                    raise ProviderProtocolError(
                        f"Tool call {name} args must be an object", provider="google"
                    )
                calls.append(ToolCall(id=fc.get("id") or new_call_id(), name=name, arguments=args))
            elif part.get("thought") and "text" in part:
                thoughts.append(part["text"])
            elif "text" in part:
                texts.append(part["text"])

        turn_signature = None
        if signature and calls:
            calls[0] = replace(calls[0], thought_signature=signature)
        elif signature:
            turn_signature = signature
        return ConversationTurn.assistant(
            content="".join(texts) or None,
            tool_calls=calls,
            thought="\n".join(thoughts) or None,
            thought_signature=turn_signature,
        )

    def parse_response(self, data: dict[str, Any]) -> ConversationTurn:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise ProviderProtocolError(
                    f"Prompt blocked by provider: {block_reason}", provider="google"
                )
            raise ProviderProtocolError("Response has no candidates", provider="google")

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        turn = self._decode_model_parts(parts)
        if candidate.get("finishReason") == "MAX_TOKENS":
            turn = replace(turn, is_complete=False)
        return turn


def _is_function_response_content(content: dict[str, Any]) -> bool:
    parts = content.get("parts") or []
    return (
        content.get("role") == "user"
        and bool(parts)
        and all("functionResponse" in p for p in parts)
    )


def _match_pending(pending: list[str], tool_names: dict[str, str], name: Optional[str]) -> str:
    for call_id in pending:
        if tool_names.get(call_id) == name:
            return call_id
    return new_call_id()


def _response_text(response: Any) -> str:
    if isinstance(response, dict):
        result = response.get("result", response.get("output", ""))
        return result if isinstance(result, str) else str(result)
    return "" if response is None else str(response)
