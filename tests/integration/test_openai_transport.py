"""OpenAITransport against a fake AsyncOpenAI client."""

from types import SimpleNamespace

import pytest

from parley.events import ContentEvent, EndEvent, ToolCallEvent
from parley.message import ConversationMessage, ToolCallRequest
from parley.transport import OpenAITransport


def _chunk(content=None, tool_calls=None):
    return SimpleNamespace(choices=[
        SimpleNamespace(delta=SimpleNamespace(content=content, tool_calls=tool_calls)),
    ])


def _tc(index, call_id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index, id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


class FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)


class FakeCompletions:
    def __init__(self, chunks):
        self.chunks = chunks
        self.requests = []
        self.streams = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        self.streams.append(FakeStream(self.chunks))
        return self.streams[-1]


def _client(chunks):
    completions = FakeCompletions(chunks)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


@pytest.mark.asyncio
async def test_text_stream():
    client, _ = _client([
        _chunk("He"), SimpleNamespace(choices=[]), _chunk("llo"), _chunk(None),
    ])
    transport = OpenAITransport("gpt-4o-mini", client=client)

    events = [e async for e in transport.stream([ConversationMessage.user("hi")])]

    assert events == [ContentEvent("He"), ContentEvent("llo"), EndEvent()]


@pytest.mark.asyncio
async def test_tool_call_fragments_are_assembled():
    client, _ = _client([
        _chunk("Checking"),
        _chunk(tool_calls=[_tc(0, "call_1", "get_weather", '{"ci')]),
        _chunk(tool_calls=[_tc(0, arguments='ty": "Prague"}')]),
    ])
    transport = OpenAITransport("gpt-4o-mini", client=client)

    events = [e async for e in transport.stream([ConversationMessage.user("hi")])]

    assert events[0] == ContentEvent("Checking")
    assert isinstance(events[1], ToolCallEvent)
    assert events[1].message.content == "Checking"
    assert events[1].message.tool_calls == (
        ToolCallRequest(
            id="call_1", function_name="get_weather",
            arguments_text='{"city": "Prague"}',
        ),
    )
    assert events[2] == EndEvent()


@pytest.mark.asyncio
async def test_request_shape():
    client, completions = _client([])
    schemas = [{"type": "function", "function": {"name": "f", "parameters": {}}}]
    transport = OpenAITransport(
        "gpt-4o-mini", system_prompt="Be brief.", tools=schemas, client=client,
    )

    [e async for e in transport.stream([ConversationMessage.user("hi")])]

    assert completions.requests == [{
        "model": "gpt-4o-mini",
        "messages": [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hi"},
        ],
        "stream": True,
        "tools": schemas,
    }]


@pytest.mark.asyncio
async def test_no_tools_key_without_schemas():
    client, completions = _client([])
    transport = OpenAITransport("m", client=client)
    events = [e async for e in transport.stream([])]

    assert events == [EndEvent()]
    assert "tools" not in completions.requests[0]


@pytest.mark.asyncio
async def test_response_closed_after_full_stream():
    client, completions = _client([_chunk("hi")])
    transport = OpenAITransport("m", client=client)
    [e async for e in transport.stream([])]

    assert completions.streams[0].closed


@pytest.mark.asyncio
async def test_response_closed_when_consumer_stops_early():
    client, completions = _client([_chunk("a"), _chunk("b"), _chunk("c")])
    events = OpenAITransport("m", client=client).stream([])

    assert await events.__anext__() == ContentEvent("a")
    await events.aclose()

    assert completions.streams[0].closed
