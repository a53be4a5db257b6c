"""Exceptions raised by the scheduling engine.

Only malformed caller input raises. Ordinary negative outcomes (a
conflict, no eligible worker, a failed occurrence) come back as typed
results from the function that produced them.
"""


class SchedulingError(Exception):
    """Base class for engine errors."""


class InvalidScheduleInput(SchedulingError, ValueError):
    """Raised when an argument is malformed or out of range.

    ``reason`` is a stable machine-readable code; the message is meant
    for the immediate caller.
    """

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message
