"""Error taxonomy for the reminder engine.

``ReminderValidationError`` goes straight back to the caller and nothing is
persisted. ``SendError`` never leaves the dispatcher: it is converted into a
retry or a terminal ``failed`` record. ``StoreError`` wraps persistence faults
and propagates to whoever drove the operation (HTTP request or Celery run).
"""


class ReminderError(Exception):
    """Base class for reminder engine errors."""


class ReminderValidationError(ReminderError):
    """Bad or missing input, a due instant that is not in the future, or no eligible channel."""


class SendError(ReminderError):
    """A channel sender rejected, failed or timed out on a delivery attempt."""


class StoreError(ReminderError):
    """The notification store could not complete a read or write."""
