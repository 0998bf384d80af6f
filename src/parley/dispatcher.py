import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from pydantic import ValidationError

from parley.instrumentation import record_turn_failure, tool_span
from parley.message import ConversationMessage
from parley.session import Session
from parley.store import ConversationLog

logger = logging.getLogger(__name__)

# Receives the assistant message carrying the tool calls. Returns the
# follow-up messages (typically one tool message per call), or None/[] to
# decline and end the turn.
ToolHandler = Callable[
    [ConversationMessage],
    Awaitable[Sequence[ConversationMessage | dict[str, Any]] | None],
]


class ToolCallDispatcher:
    """Hands tool-call requests to the embedding application's handler.

    The handler is called once per assistant message, never per
    tool-call entry; running independent calls concurrently is up to it.
    Handler failures never escape: they are logged and treated as a
    decline, so the turn driver can return the session to idle.

    Args:
        session: The session whose log receives the results.
        handler: Async tool-execution callable, or ``None`` to decline
            every tool call.
    """

    def __init__(self, session: Session, handler: ToolHandler | None = None):
        self.session = session
        self.handler = handler

    async def handle_tool_call(
        self, message: ConversationMessage
    ) -> ConversationLog | None:
        """Run the handler and fold its results into the log.

        Returns the updated log to resubmit, or ``None`` if the turn
        should end here.
        """
        sid = self.session.session_id
        if self.handler is None:
            logger.warning(f"[{sid}] Model requested tools but no handler is configured")
            return None

        call_ids = [t.id for t in message.tool_calls or ()]
        async with tool_span(sid, call_ids) as span:
            try:
                raw = await self.handler(message)
                results = [
                    r if isinstance(r, ConversationMessage)
                    else ConversationMessage.model_validate(r)
                    for r in raw or ()
                ]
            except ValidationError as e:
                logger.error(f"[{sid}] Tool handler returned invalid messages: {e}")
                record_turn_failure(span, e, "tool_handler")
                return None
            except Exception as e:
                logger.error(f"[{sid}] Tool handler raised: {e}")
                record_turn_failure(span, e, "tool_handler")
                return None

        if not results:
            logger.info(f"[{sid}] Tool handler declined {call_ids}")
            return None

        logger.info(f"[{sid}] Tool handler returned {len(results)} message(s)")
        # The streamed text of this turn is already in the log; echoing it
        # again would duplicate it in the next request.
        echo = message.model_copy(update={"content": ""})
        return self.session.store.append([echo, *results])
