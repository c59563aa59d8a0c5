"""
Protocol constants for the chat relay.

These values define the wire protocol and should NEVER be changed via
environment variables. For configurable values see chat_relay/settings.py.
"""

from enum import IntEnum, StrEnum


class MessageType(StrEnum):
    """
    Values of the ``type`` field carried by every frame.

    Attributes:
        LOGIN: Client claims a display name.
        PRIVATE_MESSAGE: Direct message between two users.
        TYPING: Typing notification for a single recipient.
        DELIVERED: Acknowledgement sent back to the message author.
        SYSTEM: Informational or error notice from the server.
        USER_LIST: Full roster snapshot broadcast to every connection.
    """

    LOGIN = "login"
    PRIVATE_MESSAGE = "private_message"
    TYPING = "typing"
    DELIVERED = "delivered"
    SYSTEM = "system"
    USER_LIST = "user_list"


# Frame types a client is allowed to send
INBOUND_MESSAGE_TYPES = frozenset(
    {MessageType.LOGIN, MessageType.PRIVATE_MESSAGE, MessageType.TYPING}
)


class SessionState(IntEnum):
    """
    Lifecycle of a client session.

    ``CLOSED`` is terminal.
    """

    CONNECTING = 0
    AUTHENTICATED = 1
    CLOSED = 2

    def __str__(self):
        return f"{__class__.__name__}.{self.name}<{self.value}>"


# ============================================================================
# System notices
# ============================================================================

WELCOME_MSG = "Welcome, {username}!"
NAME_TAKEN_MSG = "Username already taken!"
USER_NOT_AVAILABLE_MSG = "User {username} not available"


# ============================================================================
# WebSocket Protocol Constants
# ============================================================================

# Close code used when a login is rejected (RFC 6455 policy violation)
WS_POLICY_VIOLATION_CODE = 1008
