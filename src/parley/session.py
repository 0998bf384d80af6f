from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from parley.message import ConversationMessage, MessageRole
from parley.state import TurnState
from parley.store import ConversationLog, MessageStore

logger = logging.getLogger(__name__)

SessionListener = Callable[["SessionSnapshot"], None]


@dataclass(frozen=True)
class SessionSnapshot:
    """What the presentation layer needs to redraw a chat view.

    Args:
        log: The full ordered message log.
        state: The turn driver's current state.
    """

    log: ConversationLog
    state: TurnState

    @property
    def input_enabled(self) -> bool:
        return self.state is TurnState.IDLE

    @property
    def is_working(self) -> bool:
        """True while waiting on the model's first token or on a tool."""
        return self.state in (TurnState.SUBMITTING, TurnState.TOOL_PENDING)

    @property
    def is_streaming(self) -> bool:
        return self.state is TurnState.STREAMING

    @property
    def visible_messages(self) -> list[ConversationMessage]:
        return [
            m for m in self.log
            if m.role in (MessageRole.USER, MessageRole.ASSISTANT) and m.content
        ]


class Session:
    """State of one conversation, shared by reference between components.

    Construct one per chat view. The store holds the log; the session adds
    the turn state and fans both out to listeners.

    Args:
        session_id: Identifier used in logs and traces. Random if omitted.
    """

    def __init__(self, session_id: str | None = None):
        self.session_id = session_id or uuid.uuid4().hex
        self.store = MessageStore()
        self._state = TurnState.IDLE
        self._listeners: list[SessionListener] = []
        self.store.subscribe(lambda _log: self._notify())

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def log(self) -> ConversationLog:
        return self.store.log

    @property
    def input_enabled(self) -> bool:
        return self._state is TurnState.IDLE

    def set_state(self, state: TurnState) -> None:
        if state is self._state:
            return
        logger.debug(f"[{self.session_id}] {self._state.value} -> {state.value}")
        self._state = state
        self._notify()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(log=self.store.log, state=self._state)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call *listener* after every log mutation and state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"[{self.session_id}] Session listener raised: {e}")
