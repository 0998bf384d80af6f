"""The conversation log and the store that owns it.

The log is append-only with one exception: the trailing assistant message
may be *open* while a stream is writing into it. The open segment is
tracked as an index held by the store, never as a flag on the message,
so "at most one open message, and it is the tail" can be checked
mechanically on any snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from parley.errors import LogInvariantError
from parley.message import ConversationMessage, MessageRole

logger = logging.getLogger(__name__)

LogListener = Callable[["ConversationLog"], None]


@dataclass(frozen=True)
class ConversationLog:
    """Immutable snapshot of the conversation, in send order.

    Args:
        messages: Every message appended so far.
        open_index: Index of the streaming placeholder, or ``None``.
    """

    messages: tuple[ConversationMessage, ...] = ()
    open_index: int | None = None

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(self.messages)

    def __getitem__(self, index):
        return self.messages[index]

    @property
    def tail(self) -> ConversationMessage | None:
        return self.messages[-1] if self.messages else None

    @property
    def placeholder(self) -> ConversationMessage | None:
        """The message currently receiving streamed text, if any."""
        if self.open_index is None:
            return None
        return self.messages[self.open_index]

    def is_placeholder(self, index: int) -> bool:
        if self.open_index is None:
            return False
        if index < 0:
            index += len(self.messages)
        return index == self.open_index

    def to_wire(self) -> list[dict]:
        return [m.to_wire() for m in self.messages]

    def check_invariants(self) -> None:
        """Raise :class:`LogInvariantError` if the log is malformed."""
        if self.open_index is not None:
            if self.open_index != len(self.messages) - 1:
                raise LogInvariantError(
                    f"Open segment at {self.open_index} is not the tail "
                    f"of a log of {len(self.messages)} messages"
                )
            if self.messages[self.open_index].role is not MessageRole.ASSISTANT:
                raise LogInvariantError("Open segment is not an assistant message")

        answerable: set[str] = set()
        seen_tool_request = False
        for i, message in enumerate(self.messages):
            if message.requests_tools:
                seen_tool_request = True
                answerable.update(t.id for t in message.tool_calls)
            elif message.role is MessageRole.TOOL:
                if message.tool_call_id is not None:
                    ok = message.tool_call_id in answerable
                else:
                    ok = seen_tool_request
                if not ok:
                    raise LogInvariantError(
                        f"Tool message at {i} answers no earlier tool call"
                    )


class MessageStore:
    """Authoritative, mutable owner of one session's conversation log.

    Every mutation hands the new snapshot to subscribed listeners.
    """

    def __init__(self) -> None:
        self._messages: list[ConversationMessage] = []
        self._open: int | None = None
        self._listeners: list[LogListener] = []

    @property
    def log(self) -> ConversationLog:
        return ConversationLog(messages=tuple(self._messages), open_index=self._open)

    @property
    def has_open_segment(self) -> bool:
        return self._open is not None

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """Register *listener* for log changes. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def append(self, messages: Iterable[ConversationMessage]) -> ConversationLog:
        """Append *messages* in order and return the new log.

        Anything appended lands after the open segment, so the segment is
        closed first to keep it the tail.
        """
        self._open = None
        self._messages.extend(messages)
        return self._changed()

    def open_segment(self) -> ConversationLog:
        """Append an empty assistant placeholder and mark it open."""
        self._messages.append(ConversationMessage.assistant(""))
        self._open = len(self._messages) - 1
        return self._changed()

    def extend_open(self, fragment: str) -> ConversationLog:
        if self._open is None:
            raise LogInvariantError("No open segment to extend")
        current = self._messages[self._open]
        self._messages[self._open] = current.model_copy(
            update={"content": (current.content or "") + fragment}
        )
        return self._changed()

    def close_open_segment(self) -> ConversationLog:
        if self._open is None:
            return self.log
        self._open = None
        return self._changed()

    def _changed(self) -> ConversationLog:
        snapshot = self.log
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Log listener {listener!r} raised: {e}")
        return snapshot
