"""Optional OpenTelemetry spans for conversation turns.

One ``chat round`` span wraps each submit-and-stream round and one
``execute_tool`` span wraps each tool handler call. Nothing is traced
until :func:`instrument` is called.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "parley") -> None:
    """Start emitting round and tool spans through the global TracerProvider.

    Configure the provider first; ``examples/weather_chat.py`` shows a
    console exporter setup.

    Raises:
        ImportError: ``opentelemetry-api`` is missing (``pip install parley[otel]``).
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required to trace conversation turns. "
            "Install it with: pip install parley[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info("No TracerProvider configured; round and tool spans will be dropped")
    else:
        logger.info(f"Tracing chat rounds and tool calls as {tracer_name!r}")


def uninstrument() -> None:
    """Stop emitting spans; turns in flight finish their current span."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def turn_span(session_id: str, round_index: int, message_count: int):
    """Wrap one submit-and-stream round in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"chat round {round_index}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.conversation.id": session_id,
            "parley.round": round_index,
            "parley.request.messages": message_count,
        },
    ) as span:
        yield span


@asynccontextmanager
async def tool_span(session_id: str, call_ids: list[str]):
    """Wrap a tool handler invocation in an ``execute_tool`` span."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        "execute_tool",
        attributes={
            "gen_ai.operation.name": "execute_tool",
            "gen_ai.conversation.id": session_id,
            "gen_ai.tool.call.id": ",".join(call_ids),
        },
    ) as span:
        yield span


def record_turn_failure(span, exception: BaseException, stage: str) -> None:
    """Mark *span* failed for a turn that was abandoned at *stage*.

    *stage* is ``"transport"``, ``"event"`` or ``"tool_handler"``. The
    session itself recovers to idle; the span keeps the cause.
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attributes({
        "error.type": type(exception).__qualname__,
        "parley.failure.stage": stage,
    })
