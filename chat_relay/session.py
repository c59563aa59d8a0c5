import asyncio
import uuid

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from chat_relay.constants import SessionState
from chat_relay.exceptions import TransportClosed
from chat_relay.logging import logger
from chat_relay.schemas.response import OutboundFrame
from chat_relay.utils.metrics import ws_messages_sent_total, ws_send_failures_total


class Session:
    """
    Server-side state of one connected client.

    Owns the WebSocket: every outbound frame for the client goes through
    `send`, which serializes writes so frames reach the client in the order
    they were queued. The connection registry only relies on `is_open` and
    never touches the transport.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.connection_id = str(uuid.uuid4())
        self.name: str | None = None
        self.state = SessionState.CONNECTING

        self._send_lock = asyncio.Lock()
        self._roster_version = -1
        self._released = False

    def __repr__(self) -> str:
        return (
            f"<Session {self.connection_id[:8]} name={self.name!r} "
            f"state={self.state.name}>"
        )

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    @property
    def is_open(self) -> bool:
        """
        True while frames can still be delivered to the client.

        A session that has not been accepted yet, or whose socket was closed
        by either side, is not open.
        """
        return (
            self.state is not SessionState.CLOSED
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def authenticate(self, name: str) -> None:
        self.name = name
        self.state = SessionState.AUTHENTICATED

    def mark_closed(self) -> None:
        self.state = SessionState.CLOSED

    def release(self) -> bool:
        """
        Mark the session closed for good.

        Returns:
            True the first time it is called, False afterwards.
        """
        self.mark_closed()
        if self._released:
            return False
        self._released = True
        return True

    async def send(self, frame: OutboundFrame) -> None:
        """
        Send one frame to the client.

        Raises:
            TransportClosed: If the connection is closed or the write fails.
                The session is marked closed in the latter case.
        """
        async with self._send_lock:
            await self._send_locked(frame)

    async def send_roster(self, frame: OutboundFrame, version: int) -> None:
        """
        Send a roster snapshot unless a newer one was already sent.

        Roster broadcasts run concurrently, so an older snapshot may reach
        the lock after a newer one. It is skipped in that case.
        """
        async with self._send_lock:
            if version <= self._roster_version:
                logger.debug(
                    f"Skipping stale roster v{version} for {self!r} "
                    f"(already sent v{self._roster_version})"
                )
                return
            await self._send_locked(frame)
            self._roster_version = version

    async def _send_locked(self, frame: OutboundFrame) -> None:
        if not self.is_open:
            raise TransportClosed(f"{self!r} is not open")

        try:
            await self.websocket.send_json(frame.to_wire())
        except (WebSocketDisconnect, ConnectionError, RuntimeError) as e:
            # WebSocketDisconnect: Client disconnected
            # ConnectionError: Network errors
            # RuntimeError: WebSocket in invalid state
            ws_send_failures_total.inc()
            self.mark_closed()
            raise TransportClosed(f"Send to {self!r} failed: {e}") from e

        ws_messages_sent_total.inc()

    async def close(self, code: int, reason: str | None = None) -> None:
        """Close the underlying WebSocket; a no-op if it is already gone."""
        was_open = self.is_open
        self.mark_closed()
        if not was_open:
            return

        async with self._send_lock:
            try:
                await self.websocket.close(code=code, reason=reason)
            except (WebSocketDisconnect, ConnectionError, RuntimeError) as e:
                logger.debug(f"Close of {self!r} failed: {e}")
