from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Sequence
from typing import Protocol

from openai import AsyncOpenAI

from parley.events import ContentEvent, EndEvent, StreamEvent, decode_event
from parley.message import ConversationMessage
from parley.streaming import ToolCallAccumulator, ToolCallFragment

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """A streaming backend.

    ``stream`` receives the full log and yields already-decoded events,
    ending with :class:`~parley.events.EndEvent`. Raising from the
    iterator is how a transport reports a network or protocol failure.
    """

    def stream(
        self, messages: Sequence[ConversationMessage]
    ) -> AsyncIterator[StreamEvent]:
        ...


class OpenAITransport:
    """Streams chat completions from an OpenAI-compatible endpoint.

    The system prompt is injected at call time and never stored in the
    conversation log.

    Args:
        model: Model name passed to the completions API.
        system_prompt: Optional system message prepended to each request.
        tools: OpenAI function schemas, e.g. ``ToolRegistry.schemas()``.
        client: Preconfigured ``AsyncOpenAI`` client. Built from
            *api_key* / *base_url* when omitted.
        api_key: Falls back to ``OPENAI_API_KEY``.
        base_url: For OpenRouter, vLLM and other compatible servers.
    """

    def __init__(
        self,
        model: str,
        system_prompt: str | None = None,
        tools: list[dict] | None = None,
        client: AsyncOpenAI | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        if client is None:
            client = AsyncOpenAI(
                api_key=api_key or os.getenv("OPENAI_API_KEY"),
                base_url=base_url,
                timeout=600.0,
            )
        self.client = client
        self.model = model
        self.system_prompt = system_prompt
        self.tools = tools

    def _request(self, messages: Sequence[ConversationMessage]) -> dict:
        wire = [m.to_wire() for m in messages]
        if self.system_prompt:
            wire.insert(0, {"role": "system", "content": self.system_prompt})
        request = {"model": self.model, "messages": wire, "stream": True}
        if self.tools:
            request["tools"] = self.tools
        return request

    async def stream(
        self, messages: Sequence[ConversationMessage]
    ) -> AsyncIterator[StreamEvent]:
        response = await self.client.chat.completions.create(**self._request(messages))

        acc = ToolCallAccumulator()
        content = ""
        async with response:
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta is None:
                    continue
                if delta.content:
                    content += delta.content
                    yield ContentEvent(delta=delta.content)
                for frag in delta.tool_calls or ():
                    function = frag.function
                    acc.feed(ToolCallFragment(
                        index=frag.index,
                        call_id=frag.id,
                        name=function.name if function else None,
                        arguments_delta=function.arguments if function else None,
                    ))

        if acc:
            calls = acc.finalize()
            logger.debug(f"Stream completed with {len(calls)} tool call(s)")
            event = decode_event("message", {
                "role": "assistant",
                "content": content or None,
                "tool_calls": [c.to_wire() for c in calls],
            })
            if event is not None:
                yield event
        yield EndEvent()
