"""
Exceptions raised while routing chat frames.

None of these escape the message router: each one is turned into a
``system`` notice for the sender or dropped with a log line.
"""


class RelayError(Exception):
    """Base class for chat relay errors."""

    pass


class NameConflict(RelayError):
    """
    Display name already taken.

    Raised by the connection registry when a login claims a name that a
    live session already holds.
    """

    def __init__(self, name: str):
        super().__init__(f"Name {name!r} is already taken")
        self.name = name


class RecipientUnavailable(RelayError):
    """Target user is not registered or its connection is closed."""

    def __init__(self, name: str):
        super().__init__(f"User {name!r} is not available")
        self.name = name


class MalformedFrame(RelayError):
    """
    Inbound frame could not be parsed.

    Covers invalid JSON, non-object payloads, a missing ``type`` and frames
    of a known type that fail schema validation.
    """

    pass


class TransportClosed(RelayError):
    """Send attempted on a connection that is closed or closing."""

    pass
