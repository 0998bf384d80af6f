from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer, model_validator


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCallRequest(BaseModel):
    """A single function call requested by the model."""

    model_config = ConfigDict(frozen=True)

    id: str
    function_name: str
    arguments_text: str = ""

    @model_validator(mode="before")
    @classmethod
    def _flatten_wire_shape(cls, data: Any) -> Any:
        # {"id", "type", "function": {"name", "arguments"}}
        if isinstance(data, dict) and "function" in data:
            function = data["function"] or {}
            return {
                "id": data.get("id"),
                "function_name": function.get("name"),
                "arguments_text": function.get("arguments") or "",
            }
        return data

    def to_wire(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.function_name,
                "arguments": self.arguments_text,
            },
        }


class ConversationMessage(BaseModel):
    """One entry of the conversation log.

    Messages are immutable. The only text that ever changes after an
    append is the streaming placeholder, and the store does that by
    swapping in a copy (see :class:`parley.store.MessageStore`).
    """

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] | None = None
    tool_call_id: str | None = None

    @field_serializer("role")
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    @field_serializer("tool_calls")
    def serialize_tool_calls(
        self, tool_calls: tuple[ToolCallRequest, ...] | None
    ) -> list[dict] | None:
        if tool_calls is None:
            return None
        return [t.to_wire() for t in tool_calls]

    @classmethod
    def user(cls, text: str) -> ConversationMessage:
        return cls(role=MessageRole.USER, content=text)

    @classmethod
    def assistant(cls, text: str = "") -> ConversationMessage:
        return cls(role=MessageRole.ASSISTANT, content=text)

    @classmethod
    def tool_result(
        cls, content: str, tool_call_id: str | None = None
    ) -> ConversationMessage:
        return cls(
            role=MessageRole.TOOL, content=content,
            tool_call_id=tool_call_id,
        )

    @property
    def requests_tools(self) -> bool:
        return self.role is MessageRole.ASSISTANT and bool(self.tool_calls)

    def to_wire(self) -> dict:
        """Serialize to an OpenAI chat-completions message dict."""
        return self.model_dump(exclude_none=True)
