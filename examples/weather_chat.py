"""Terminal weather chat with a streaming model and a tool handler.

Demonstrates:
- Defining tools with @tool and serving them through a ToolRegistry
- Streaming text into the terminal from a Conversation subscriber
- Resubmission after tool calls until the model answers in text

Usage:
    uv run --env-file=.env examples/weather_chat.py --model gpt-4o-mini
    uv run examples/weather_chat.py --base-url http://localhost:8000/v1 --model Qwen/Qwen3-8B --trace
"""

import argparse
import asyncio
import logging
import random

from parley.conversation import Conversation
from parley.errors import MaxToolRoundsExceeded
from parley.session import SessionSnapshot
from parley.tools import ToolRegistry, tool
from parley.transport import OpenAITransport


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from parley import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


@tool
async def get_current_weather(location: str, unit: str = "c"):
    """Get the current weather in a given location.

    Args:
        location: The city, e.g. San Francisco.
        unit: Either "c" or "f".
    """
    await asyncio.sleep(0.2)
    temperature = random.randint(-5, 30)
    if unit == "f":
        temperature = temperature * 9 // 5 + 32
    return {
        "location": location,
        "temperature": temperature,
        "unit": unit,
        "conditions": random.choice(["Sunny", "Cloudy", "Rainy", "Snowy"]),
    }


class TerminalRenderer:
    """Prints streamed text as it arrives and a marker while tools run."""

    def __init__(self):
        self.printed = 0
        self.working_shown = False

    def __call__(self, snapshot: SessionSnapshot):
        if snapshot.is_working and not self.working_shown:
            print("...", end="", flush=True)
            self.working_shown = True
        placeholder = snapshot.log.placeholder
        if placeholder is None:
            self.printed = 0
            return
        text = placeholder.content or ""
        if self.working_shown:
            print("\r   \r", end="")
            self.working_shown = False
        print(text[self.printed:], end="", flush=True)
        self.printed = len(text)


async def main():
    parser = argparse.ArgumentParser(description="Weather chat")
    parser.add_argument("--model", default="gpt-4o-mini")
    parser.add_argument("--base-url", default=None)
    parser.add_argument("--max-tool-rounds", type=int, default=5)
    parser.add_argument("--trace", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s:%(name)s:%(levelname)s:%(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.trace:
        setup_tracing("weather-chat")

    registry = ToolRegistry([get_current_weather])
    transport = OpenAITransport(
        args.model,
        system_prompt="You are a helpful weather assistant. Use the tool for current conditions.",
        tools=registry.schemas(),
        base_url=args.base_url,
    )
    chat = Conversation(
        transport, tool_handler=registry, max_tool_rounds=args.max_tool_rounds,
    )
    chat.subscribe(TerminalRenderer())

    print("Weather chat\n")
    while True:
        try:
            user_input = input("You: ")
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        print("Assistant: ", end="", flush=True)
        try:
            await chat.send(user_input)
        except MaxToolRoundsExceeded as e:
            print(f"[stopped: {e}]", end="")
        print("\n")


if __name__ == "__main__":
    asyncio.run(main())
