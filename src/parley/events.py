"""Events consumed from a streaming transport.

A transport yields ``ContentEvent | ToolCallEvent | EndEvent``. Transports
that receive named events off the wire can use :func:`decode_event` to
validate and convert them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from pydantic import TypeAdapter, ValidationError

from parley.errors import EventValidationError
from parley.message import ConversationMessage, MessageRole


@dataclass(frozen=True)
class ContentEvent:
    """Text delta for the assistant message being streamed."""

    delta: str


@dataclass(frozen=True)
class ToolCallEvent:
    """A completed assistant message that requests tool execution."""

    message: ConversationMessage


@dataclass(frozen=True)
class EndEvent:
    """The stream is finished. Always the last event of a stream."""


StreamEvent = Union[ContentEvent, ToolCallEvent, EndEvent]

_delta_adapter = TypeAdapter(str)


def decode_event(
    name: str, payload: Mapping[str, Any] | None = None
) -> StreamEvent | None:
    """Validate a named wire event and convert it to a :data:`StreamEvent`.

    ``"message"`` events for assistant turns without tool calls carry
    nothing to act on (their text already arrived as deltas) and decode
    to ``None``.

    Raises:
        EventValidationError: Unknown event name or invalid payload.
    """
    payload = payload or {}
    try:
        if name == "content":
            return ContentEvent(delta=_delta_adapter.validate_python(payload.get("delta")))
        if name == "end":
            return EndEvent()
        if name != "message":
            raise EventValidationError(f"Unknown stream event {name!r}")
        message = ConversationMessage.model_validate(dict(payload))
    except ValidationError as e:
        raise EventValidationError(f"Invalid {name!r} event: {e}") from e

    if message.role is not MessageRole.ASSISTANT:
        raise EventValidationError(
            f"Completed message has role {message.role.value!r}, expected 'assistant'"
        )
    if not message.tool_calls:
        return None
    return ToolCallEvent(message=message)
