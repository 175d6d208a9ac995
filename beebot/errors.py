"""Exception hierarchy for beebot.

Each kind maps to one outcome of a message-handling cycle:

- ParseError: message is not a number, dropped silently
- SubmissionError / FetchError: tracking service failed, reported to the room
- ReplySendError: a room reply could not be sent, logged only
- StartupError: bad arguments or configuration, aborts the process
"""


class BeebotError(Exception):
    """Base class for all beebot errors."""
    pass


class ParseError(BeebotError):
    """Message body is not a decimal number."""
    pass


class TrackingError(BeebotError):
    """Base class for tracking service failures."""
    pass


class SubmissionError(TrackingError):
    """Creating a data point failed (network, non-2xx, or malformed body)."""
    pass


class FetchError(TrackingError):
    """Reading goal status failed (network, non-2xx, or malformed body)."""
    pass


class ReplySendError(BeebotError):
    """Sending a message to the room failed."""
    pass


class StartupError(BeebotError):
    """Invalid arguments or configuration. Fatal before any message is handled."""
    pass
