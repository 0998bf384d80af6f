import logging
from collections.abc import Sequence

from parley.accumulator import DeltaAccumulator
from parley.dispatcher import ToolCallDispatcher
from parley.errors import EventValidationError, MaxToolRoundsExceeded, SessionBusyError
from parley.events import ContentEvent, EndEvent, ToolCallEvent
from parley.instrumentation import record_turn_failure, turn_span
from parley.message import ConversationMessage
from parley.session import Session
from parley.state import TurnState
from parley.store import ConversationLog
from parley.transport import Transport

logger = logging.getLogger(__name__)


class TurnDriver:
    """Drives a turn from submission until the model stops calling tools.

    Each round streams the whole log through the transport. Text deltas
    go to the :class:`DeltaAccumulator`; completed assistant messages with
    tool calls go to the :class:`ToolCallDispatcher` once the stream has
    ended, and if the handler produced results the updated log is streamed
    again. The session is back in ``IDLE`` when :meth:`submit` returns or
    raises, whatever happened on the way.

    Args:
        session: The session to drive.
        transport: Streaming backend.
        dispatcher: Tool-call dispatcher bound to the same session.
        max_tool_rounds: Maximum tool round-trips per submission.
    """

    def __init__(
        self,
        session: Session,
        transport: Transport,
        dispatcher: ToolCallDispatcher,
        max_tool_rounds: int = 10,
    ):
        self.session = session
        self.transport = transport
        self.dispatcher = dispatcher
        self.max_tool_rounds = max_tool_rounds
        self.accumulator = DeltaAccumulator(session.store)

    async def submit(self, messages: Sequence[ConversationMessage]) -> ConversationLog:
        """Append *messages* and run the turn to completion.

        Raises:
            SessionBusyError: A turn is already in flight.
            MaxToolRoundsExceeded: The model was still requesting tools
                after ``max_tool_rounds`` round-trips.
        """
        if not self.session.input_enabled:
            raise SessionBusyError(
                f"Session {self.session.session_id} is {self.session.state.value}"
            )
        self.session.set_state(TurnState.SUBMITTING)
        try:
            log = self.session.store.append(messages)
            await self._run(log)
        finally:
            self.session.store.close_open_segment()
            self.session.set_state(TurnState.IDLE)
        return self.session.log

    async def _run(self, log: ConversationLog) -> None:
        sid = self.session.session_id
        rounds = 0
        while True:
            requests = await self._stream_round(log, rounds)
            if not requests:
                return
            if rounds >= self.max_tool_rounds:
                logger.error(f"[{sid}] Tool round limit of {self.max_tool_rounds} reached")
                raise MaxToolRoundsExceeded(
                    f"Model requested tools after {rounds} tool round(s)"
                )
            answered = False
            for message in requests:
                next_log = await self.dispatcher.handle_tool_call(message)
                if next_log is not None:
                    answered = True
                    log = next_log
            # Any appended results must reach the model, even if a later
            # request in the same round was declined.
            if not answered:
                return
            rounds += 1

    async def _stream_round(
        self, log: ConversationLog, round_index: int
    ) -> list[ConversationMessage]:
        """Stream one response. Returns the tool-call messages it produced.

        Transport failures and invalid events abort the round and return
        no requests; whatever was already applied to the log stays.
        """
        sid = self.session.session_id
        self.session.set_state(TurnState.SUBMITTING)
        requests: list[ConversationMessage] = []
        ended = False
        logger.info(f"[{sid}] Submitting {len(log)} message(s), round {round_index}")

        async with turn_span(sid, round_index, len(log)) as span:
            events = self.transport.stream(log.messages)
            try:
                async for event in events:
                    if ended:
                        logger.warning(f"[{sid}] Ignoring {type(event).__name__} after end of stream")
                        continue
                    match event:
                        case ContentEvent(delta=delta):
                            if self.session.state is TurnState.SUBMITTING:
                                self.session.set_state(TurnState.STREAMING)
                            self.accumulator.apply_delta(delta)
                        case ToolCallEvent(message=message):
                            self.session.set_state(TurnState.TOOL_PENDING)
                            requests.append(message)
                        case EndEvent():
                            ended = True
                        case _:
                            raise TypeError(f"Unexpected stream event {event!r}")
            except EventValidationError as e:
                logger.warning(f"[{sid}] Aborting turn on invalid event: {e}")
                record_turn_failure(span, e, "event")
                return []
            except Exception as e:
                logger.error(f"[{sid}] Transport failed mid-turn: {e}")
                record_turn_failure(span, e, "transport")
                return []
            finally:
                aclose = getattr(events, "aclose", None)
                if aclose is not None:
                    await aclose()
                self.session.store.close_open_segment()

        if not ended:
            logger.debug(f"[{sid}] Stream closed without an end event")
        return requests
