from parley.message import ConversationMessage, MessageRole
from parley.session import Session, SessionSnapshot
from parley.state import TurnState
from parley.store import ConversationLog


def test_new_session_is_idle_and_empty():
    session = Session()
    assert session.state is TurnState.IDLE
    assert session.input_enabled
    assert len(session.log) == 0
    assert len(session.session_id) == 32


def test_listener_gets_log_and_state_changes():
    session = Session(session_id="s1")
    seen: list[SessionSnapshot] = []
    session.subscribe(seen.append)

    session.set_state(TurnState.SUBMITTING)
    session.store.append([ConversationMessage.user("hi")])
    session.set_state(TurnState.SUBMITTING)

    assert [s.state for s in seen] == [TurnState.SUBMITTING, TurnState.SUBMITTING]
    assert [len(s.log) for s in seen] == [0, 1]
    assert not seen[-1].input_enabled


def test_failing_listener_is_isolated():
    session = Session()
    seen = []

    def boom(_snapshot):
        raise RuntimeError("render failed")

    session.subscribe(boom)
    session.subscribe(seen.append)
    session.set_state(TurnState.STREAMING)
    assert len(seen) == 1


def test_snapshot_indicators():
    log = ConversationLog(messages=(
        ConversationMessage.user("hi"),
        ConversationMessage.assistant(""),
        ConversationMessage(role=MessageRole.TOOL, content="42"),
        ConversationMessage.assistant("It is 42."),
    ))
    assert SessionSnapshot(log, TurnState.SUBMITTING).is_working
    assert SessionSnapshot(log, TurnState.TOOL_PENDING).is_working
    assert not SessionSnapshot(log, TurnState.STREAMING).is_working
    assert SessionSnapshot(log, TurnState.STREAMING).is_streaming
    assert SessionSnapshot(log, TurnState.IDLE).input_enabled
    assert [m.content for m in SessionSnapshot(log, TurnState.IDLE).visible_messages] == [
        "hi", "It is 42.",
    ]
