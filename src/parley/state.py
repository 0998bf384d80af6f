from enum import Enum


class TurnState(Enum):
    """Where the turn driver is in its submit/stream/tool cycle.

    Only ``IDLE`` accepts new input.
    """

    IDLE = "idle"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    TOOL_PENDING = "tool_pending"
