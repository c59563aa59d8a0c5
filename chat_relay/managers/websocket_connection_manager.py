import asyncio

from chat_relay.exceptions import TransportClosed
from chat_relay.logging import logger
from chat_relay.schemas.response import OutboundFrame
from chat_relay.session import Session


class ConnectionManager:
    """
    Manager for active WebSocket connections.

    Tracks every open session, logged in or not, by connection id and
    provides broadcast to all of them.
    """

    def __init__(self) -> None:
        self.connections: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self.connections)

    def connect(self, session: Session) -> None:
        """
        Adds a session to the active connections.

        Args:
            session: The session of a newly accepted connection.
        """
        self.connections[session.connection_id] = session
        logger.debug(f"{session!r} added to active connections")

    def disconnect(self, session: Session) -> None:
        """
        Removes a session from the active connections.

        Args:
            session: The session to remove; unknown sessions are ignored.
        """
        if self.connections.pop(session.connection_id, None) is None:
            return

        logger.debug(f"{session!r} removed from active connections")

    def get_connection(self, connection_id: str) -> Session | None:
        """
        Get session by connection id.

        Returns:
            Session if found, None otherwise.
        """
        return self.connections.get(connection_id)

    async def broadcast(
        self, frame: OutboundFrame, version: int | None = None
    ) -> None:
        """
        Broadcasts a frame to all active connections concurrently.

        Args:
            frame: The frame to send.
            version: Roster version of `frame`. When given, sessions that
                already received a newer roster skip this one.
        """
        if not self.connections:
            return

        # Snapshot to avoid modification during iteration
        sessions = list(self.connections.values())

        async def safe_send(session: Session) -> None:
            try:
                if version is None:
                    await session.send(frame)
                else:
                    await session.send_roster(frame, version)
            except TransportClosed as e:
                logger.warning(f"Broadcast skipped connection: {e}")
                self.disconnect(session)

        await asyncio.gather(
            *[safe_send(session) for session in sessions],
            return_exceptions=True,
        )
