import logging

from parley.store import ConversationLog, MessageStore

logger = logging.getLogger(__name__)


class DeltaAccumulator:
    """Merges streamed text fragments into the trailing assistant message.

    Fragments are applied in arrival order with no buffering or dedup;
    the transport is trusted to deliver them in order.
    """

    def __init__(self, store: MessageStore):
        self.store = store

    def apply_delta(self, fragment: str) -> ConversationLog:
        # The very first chunk of a stream has no placeholder to land in yet.
        if not self.store.has_open_segment:
            logger.debug("Opening assistant placeholder")
            self.store.open_segment()
        return self.store.extend_open(fragment)
