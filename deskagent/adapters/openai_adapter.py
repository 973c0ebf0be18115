"""OpenAI-compatible chat completions wire format.

Also used for local OpenAI-compatible servers such as Ollama or LM Studio.
"""

import json
import re
from dataclasses import replace
from typing import Any, Optional, Sequence

from ..exceptions import ProviderProtocolError
from ..models import ConversationTurn, ImageAttachment, Role, ToolCall, ToolDefinition
from ..providers import ProviderProfile, WireFormat
from ..schema import to_openai_tools
from .base import BaseProtocolAdapter, new_call_id

_DATA_URL = re.compile(r"^data:(?P<mime>[^;]+);base64,(?P<data>.*)$", re.DOTALL)


def _parse_arguments(raw: Any, tool_name: str) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        raise ProviderProtocolError(
            f"Tool call {tool_name} has invalid JSON arguments", provider="openai"
        )
    if not isinstance(parsed, dict):
        raise ProviderProtocolError(
            f"Tool call {tool_name} arguments must be a JSON object", provider="openai"
        )
    return parsed


class OpenAIAdapter(BaseProtocolAdapter):
    """Adapter for ``POST {base}/chat/completions``."""

    wire_format = WireFormat.OPENAI

    def endpoint(self, profile: ProviderProfile, model: str) -> str:
        return f"{profile.base_url}/chat/completions"

    def build_body(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system_prompt: Optional[str],
        tools: Optional[Sequence[ToolDefinition]],
    ) -> dict[str, Any]:
        all_messages = list(messages)
        if system_prompt:
            all_messages.insert(0, {"role": "system", "content": system_prompt})
        body: dict[str, Any] = {
            "model": model,
            "messages": all_messages,
            "stream": False,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            body["tools"] = to_openai_tools(tools)
            body["tool_choice"] = "auto"
        return body

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def _encode_user(self, turn: ConversationTurn) -> dict[str, Any]:
        if not turn.images:
            return {"role": "user", "content": turn.content or ""}
        parts: list[dict[str, Any]] = [{"type": "text", "text": turn.content or ""}]
        for image in turn.images:
            parts.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{image.mime_type};base64,{image.data}"},
                }
            )
        return {"role": "user", "content": parts}

    def encode_history(self, turns: Sequence[ConversationTurn]) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        for turn in turns:
            if turn.role == Role.USER:
                messages.append(self._encode_user(turn))
            elif turn.role == Role.ASSISTANT:
                msg: dict[str, Any] = {"role": "assistant", "content": turn.content}
                if turn.tool_calls:
                    msg["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                        }
                        for tc in turn.tool_calls
                    ]
                elif msg["content"] is None:
                    msg["content"] = ""
                messages.append(msg)
            elif turn.role == Role.TOOL:
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": turn.tool_call_id,
                        "content": turn.content or "",
                    }
                )
            elif turn.role == Role.SYSTEM:
                messages.append({"role": "system", "content": turn.content or ""})
        return messages

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def _decode_user(self, msg: dict[str, Any]) -> ConversationTurn:
        content = msg.get("content")
        if not isinstance(content, list):
            return ConversationTurn.user(content or "")
        texts, images = [], []
        for part in content:
            if part.get("type") == "text":
                texts.append(part.get("text", ""))
            elif part.get("type") == "image_url":
                url = (part.get("image_url") or {}).get("url", "")
                match = _DATA_URL.match(url)
                if match:
                    images.append(
                        ImageAttachment(
                            file_name="", data=match.group("data"), mime_type=match.group("mime")
                        )
                    )
        return ConversationTurn.user("".join(texts), images)

    def _decode_tool_calls(self, raw_calls: Sequence[dict[str, Any]]) -> list[ToolCall]:
        calls = []
        for raw in raw_calls:
            function = raw.get("function") or {}
            name = function.get("name")
            if not name:
                raise ProviderProtocolError("Tool call without a function name", provider="openai")
            calls.append(
                ToolCall(
                    id=raw.get("id") or new_call_id(),
                    name=name,
                    arguments=_parse_arguments(function.get("arguments"), name),
                )
            )
        return calls

    def decode_history(self, messages: Sequence[dict[str, Any]]) -> list[ConversationTurn]:
        tool_names: dict[str, str] = {}
        turns: list[ConversationTurn] = []
        for msg in messages:
            role = msg.get("role")
            if role == "user":
                turns.append(self._decode_user(msg))
            elif role == "assistant":
                calls = self._decode_tool_calls(msg.get("tool_calls") or [])
                tool_names.update({tc.id: tc.name for tc in calls})
                turns.append(ConversationTurn.assistant(msg.get("content"), calls))
            elif role == "tool":
                call_id = msg.get("tool_call_id")
                turns.append(
                    ConversationTurn(
                        role=Role.TOOL,
                        content=msg.get("content"),
                        tool_call_id=call_id,
                        tool_name=tool_names.get(call_id),
                    )
                )
            elif role == "system":
                turns.append(ConversationTurn.system(msg.get("content") or ""))
            else:
                raise ProviderProtocolError(f"Unknown message role: {role!r}", provider="openai")
        return turns

    def parse_response(self, data: dict[str, Any]) -> ConversationTurn:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ProviderProtocolError("Response has no choices", provider="openai")
        choice = choices[0]
        message = choice.get("message")
        if not isinstance(message, dict):
            raise ProviderProtocolError("Response choice has no message", provider="openai")

        turn = ConversationTurn.assistant(
            content=message.get("content"),
            tool_calls=self._decode_tool_calls(message.get("tool_calls") or []),
            thought=message.get("reasoning_content"),
        )
        if choice.get("finish_reason") == "length":
            turn = replace(turn, is_complete=False)
        return turn
