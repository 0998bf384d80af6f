class ParleyError(Exception):
    """Base class for errors raised by parley."""


class SessionBusyError(ParleyError):
    """A submission arrived while a turn was still in flight."""


class MaxToolRoundsExceeded(ParleyError):
    """The model kept requesting tools past the configured round limit."""


class EventValidationError(ParleyError):
    """A decoded stream event failed schema validation."""


class LogInvariantError(ParleyError):
    """The conversation log is in a state it should never reach."""


class LLMRecoverableError(Exception):
    """Raised by a tool to hand a message back to the model.

    The text is returned as the tool result instead of an error, so the
    model can correct its arguments and try again.
    """
