"""Anthropic Messages API wire format."""

from dataclasses import replace
from typing import Any, Optional, Sequence

from ..exceptions import ProviderProtocolError
from ..models import ConversationTurn, ImageAttachment, Role, ToolCall, ToolDefinition
from ..providers import ProviderProfile, WireFormat
from ..schema import to_anthropic_tools
from .base import BaseProtocolAdapter, new_call_id


class AnthropicAdapter(BaseProtocolAdapter):
    """Adapter for ``POST {base}/messages``.

    Tool answers travel as ``tool_result`` blocks inside a user message;
    consecutive tool turns are merged into one such message. Thinking blocks
    are read from responses but never sent back.
    """

    wire_format = WireFormat.ANTHROPIC

    def endpoint(self, profile: ProviderProfile, model: str) -> str:
        return f"{profile.base_url}/messages"

    def build_body(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system_prompt: Optional[str],
        tools: Optional[Sequence[ToolDefinition]],
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": model,
            "max_tokens": self.config.max_tokens,
            "messages": messages,
            "stream": False,
        }
        if system_prompt:
            body["system"] = system_prompt
        if tools:
            body["tools"] = to_anthropic_tools(tools)
        return body

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode_history(self, turns: Sequence[ConversationTurn]) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        for turn in turns:
            if turn.role == Role.USER:
                messages.append({"role": "user", "content": self._user_content(turn)})
            elif turn.role == Role.ASSISTANT:
                blocks: list[dict[str, Any]] = []
                if turn.content:
                    blocks.append({"type": "text", "text": turn.content})
                for tc in turn.tool_calls:
                    blocks.append(
                        {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments}
                    )
                if not blocks:
                    blocks.append({"type": "text", "text": ""})
                messages.append({"role": "assistant", "content": blocks})
            elif turn.role == Role.TOOL:
                block = {
                    "type": "tool_result",
                    "tool_use_id": turn.tool_call_id,
                    "content": turn.content or "",
                }
                previous = messages[-1] if messages else None
                if previous is not None and _is_tool_result_message(previous):
                    previous["content"].append(block)
                else:
                    messages.append({"role": "user", "content": [block]})
        return messages

    @staticmethod
    def _user_content(turn: ConversationTurn) -> Any:
        if not turn.images:
            return turn.content or ""
        blocks: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": img.mime_type, "data": img.data},
            }
            for img in turn.images
        ]
        blocks.append({"type": "text", "text": turn.content or ""})
        return blocks

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode_history(self, messages: Sequence[dict[str, Any]]) -> list[ConversationTurn]:
        tool_names: dict[str, str] = {}
        turns: list[ConversationTurn] = []
        for msg in messages:
            role = msg.get("role")
            content = msg.get("content")
            if role == "assistant":
                if not isinstance(content, list):
                    content = [{"type": "text", "text": content or ""}]
                turn = self._decode_assistant(content)
                tool_names.update({tc.id: tc.name for tc in turn.tool_calls})
                turns.append(turn)
            elif role == "user":
                if isinstance(content, list) and any(
                    b.get("type") == "tool_result" for b in content
                ):
                    for block in content:
                        if block.get("type") != "tool_result":
                            continue
                        call_id = block.get("tool_use_id")
                        turns.append(
                            ConversationTurn(
                                role=Role.TOOL,
                                content=_tool_result_text(block.get("content")),
                                tool_call_id=call_id,
                                tool_name=tool_names.get(call_id),
                            )
                        )
                else:
                    turns.append(self._decode_user(content))
            else:
                raise ProviderProtocolError(f"Unknown message role: {role!r}", provider="anthropic")
        return turns

    @staticmethod
    def _decode_user(content: Any) -> ConversationTurn:
        if not isinstance(content, list):
            return ConversationTurn.user(content or "")
        texts, images = [], []
        for block in content:
            if block.get("type") == "text":
                texts.append(block.get("text", ""))
            elif block.get("type") == "image":
                source = block.get("source") or {}
                images.append(
                    ImageAttachment(
                        file_name="",
                        data=source.get("data", ""),
                        mime_type=source.get("media_type", "image/png"),
                    )
                )
        return ConversationTurn.user("".join(texts), images)

    @staticmethod
    def _decode_assistant(blocks: Sequence[dict[str, Any]]) -> ConversationTurn:
        texts: list[str] = []
        thoughts: list[str] = []
        calls: list[ToolCall] = []
        for block in blocks:
            kind = block.get("type")
            if kind == "text":
                texts.append(block.get("text", ""))
            elif kind == "thinking":
                thoughts.append(block.get("thinking", ""))
            elif kind == "tool_use":
                name = block.get("name")
                if not name:
                    raise ProviderProtocolError("tool_use block without a name", provider="anthropic")
                arguments = block.get("input") or {}
                if not isinstance(arguments, dict):
                    raise ProviderProtocolError(
                        f"Tool call {name} input must be an object", provider="anthropic"
                    )
                call_id = block.get("id") or new_call_id()
                calls.append(ToolCall(id=call_id, name=name, arguments=arguments))
        return ConversationTurn.assistant(
            content="".join(texts) or None,
            tool_calls=calls,
            thought="\n".join(thoughts) or None,
        )

    def parse_response(self, data: dict[str, Any]) -> ConversationTurn:
        content = data.get("content")
        if not isinstance(content, list):
            raise ProviderProtocolError("Response has no content blocks", provider="anthropic")
        turn = self._decode_assistant(content)
        if data.get("stop_reason") == "max_tokens":
            turn = replace(turn, is_complete=False)
        return turn


def _is_tool_result_message(message: dict[str, Any]) -> bool:
    content = message.get("content")
    return (
        message.get("role") == "user"
        and isinstance(content, list)
        and bool(content)
        and all(b.get("type") == "tool_result" for b in content)
    )


def _tool_result_text(content: Any) -> str:
    if isinstance(content, list):
        return "".join(b.get("text", "") for b in content if b.get("type") == "text")
    return content or ""
