from collections.abc import Sequence

import pytest

from parley.dispatcher import ToolCallDispatcher
from parley.driver import TurnDriver
from parley.events import ContentEvent, EndEvent, ToolCallEvent
from parley.message import ConversationMessage, MessageRole, ToolCallRequest
from parley.session import Session


# ---------------------------------------------------------------------------
# Mock transport
# ---------------------------------------------------------------------------

class MockTransport:
    """Transport that replays pre-queued event scripts. No network calls.

    Each entry of ``rounds`` is one stream. An ``Exception`` instance in a
    script is raised at that point, as a failing transport would.
    """

    def __init__(self, rounds: list[list] | None = None):
        self.rounds: list[list] = rounds or []
        self.call_log: list[tuple[ConversationMessage, ...]] = []

    async def stream(self, messages: Sequence[ConversationMessage]):
        self.call_log.append(tuple(messages))
        for item in self.rounds.pop(0):
            if isinstance(item, Exception):
                raise item
            yield item


# ---------------------------------------------------------------------------
# Mock tool handler
# ---------------------------------------------------------------------------

class MockHandler:
    """Tool handler returning pre-queued results and recording its calls."""

    def __init__(self, results: list | None = None):
        self.results: list = results or []
        self.calls: list[ConversationMessage] = []

    async def __call__(self, message: ConversationMessage):
        self.calls.append(message)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


# ---------------------------------------------------------------------------
# Event builder helpers
# ---------------------------------------------------------------------------

def text_round(*deltas: str) -> list:
    """Stream of text deltas followed by end."""
    return [*(ContentEvent(d) for d in deltas), EndEvent()]


def tool_call_message(
    name: str = "f",
    arguments: str = "{}",
    call_id: str = "1",
    content: str | None = None,
) -> ConversationMessage:
    return ConversationMessage(
        role=MessageRole.ASSISTANT,
        content=content,
        tool_calls=(ToolCallRequest(id=call_id, function_name=name, arguments_text=arguments),),
    )


def tool_round(*deltas: str, message: ConversationMessage | None = None) -> list:
    """Stream that ends with a completed tool-call message."""
    return [
        *(ContentEvent(d) for d in deltas),
        ToolCallEvent(message or tool_call_message()),
        EndEvent(),
    ]


@pytest.fixture
def session():
    return Session(session_id="s1")


@pytest.fixture
def transport():
    return MockTransport()


@pytest.fixture
def handler():
    return MockHandler()


@pytest.fixture
def make_driver(session, transport, handler):
    """Factory for a driver wired to the shared session, transport and handler."""
    def _make(max_tool_rounds=10, tool_handler=handler):
        dispatcher = ToolCallDispatcher(session, tool_handler)
        return TurnDriver(session, transport, dispatcher, max_tool_rounds=max_tool_rounds)
    return _make


@pytest.fixture
def state_log(session):
    """Records every state the session reports, collapsing repeats."""
    states = []

    def _record(snapshot):
        if not states or states[-1] is not snapshot.state:
            states.append(snapshot.state)

    session.subscribe(_record)
    return states
