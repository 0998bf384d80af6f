"""Reassembly of tool calls streamed in fragments.

Chat-completions streams split each tool call across many chunks: the id
and function name arrive once, the JSON arguments arrive piecewise. The
:class:`ToolCallAccumulator` stitches them back together by index.
"""

from __future__ import annotations

from dataclasses import dataclass

from parley.message import ToolCallRequest


@dataclass
class ToolCallFragment:
    """A fragment of a tool call from a streaming chunk."""

    index: int
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


@dataclass
class _PendingCall:
    id: str = ""
    name: str = ""
    arguments: str = ""


class ToolCallAccumulator:
    """Assembles complete tool-call requests from streaming fragments."""

    def __init__(self) -> None:
        self._pending: dict[int, _PendingCall] = {}

    def __bool__(self) -> bool:
        return bool(self._pending)

    def feed(self, fragment: ToolCallFragment) -> None:
        call = self._pending.setdefault(fragment.index, _PendingCall())
        if fragment.call_id is not None:
            call.id = fragment.call_id
        if fragment.name is not None:
            call.name = fragment.name
        if fragment.arguments_delta is not None:
            call.arguments += fragment.arguments_delta

    def finalize(self) -> list[ToolCallRequest]:
        """Return completed requests in index order."""
        return [
            ToolCallRequest(
                id=call.id, function_name=call.name, arguments_text=call.arguments,
            )
            for call in (self._pending[i] for i in sorted(self._pending))
        ]
