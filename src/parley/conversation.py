import logging
from collections.abc import Callable

from parley.dispatcher import ToolCallDispatcher, ToolHandler
from parley.driver import TurnDriver
from parley.message import ConversationMessage
from parley.session import Session, SessionListener
from parley.state import TurnState
from parley.store import ConversationLog
from parley.transport import Transport

logger = logging.getLogger(__name__)


class Conversation:
    """One chat view's conversation: session, dispatcher and driver wired together.

    Example::

        registry = ToolRegistry([get_weather])
        chat = Conversation(
            OpenAITransport("gpt-4o-mini", tools=registry.schemas()),
            tool_handler=registry,
        )
        chat.subscribe(render)
        await chat.send("What's the weather in Prague?")

    Args:
        transport: Streaming backend.
        tool_handler: Async callable executing the model's tool calls.
        max_tool_rounds: Maximum tool round-trips per user message.
        session_id: Identifier used in logs and traces.
    """

    def __init__(
        self,
        transport: Transport,
        tool_handler: ToolHandler | None = None,
        max_tool_rounds: int = 10,
        session_id: str | None = None,
    ):
        self.session = Session(session_id)
        self.dispatcher = ToolCallDispatcher(self.session, tool_handler)
        self.driver = TurnDriver(
            self.session, transport, self.dispatcher,
            max_tool_rounds=max_tool_rounds,
        )

    @property
    def log(self) -> ConversationLog:
        return self.session.log

    @property
    def state(self) -> TurnState:
        return self.session.state

    @property
    def input_enabled(self) -> bool:
        return self.session.input_enabled

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        return self.session.subscribe(listener)

    async def send(self, text: str) -> ConversationLog:
        """Submit user input and wait for the turn to finish.

        Blank input is ignored.
        """
        if not text.strip():
            logger.debug(f"[{self.session.session_id}] Ignoring blank input")
            return self.session.log
        return await self.driver.submit([ConversationMessage.user(text)])
