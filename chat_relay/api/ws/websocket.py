from contextlib import aclosing
from typing import Any, AsyncIterator

from starlette import status
from starlette.endpoints import WebSocketEndpoint
from starlette.websockets import WebSocket

from chat_relay.logging import clear_log_context, logger
from chat_relay.routing import MessageRouter
from chat_relay.session import Session


class RelayWebSocketEndpoint(WebSocketEndpoint):  # type: ignore[misc]
    """
    WebSocket endpoint feeding a connection's frames to the message router.

    The router is taken from ``app.state.message_router`` so that every
    connection of an application shares one registry.
    """

    encoding = None  # Text and binary frames are both handed to the router

    async def dispatch(self) -> None:
        """
        Run the connection lifecycle.

        1. Accepts the connection and opens a session for it.
        2. Routes every received frame, in order, until the client
           disconnects or the session gets closed by the router.
        3. Always releases the session, whichever way the loop ends.
        """
        websocket = WebSocket(self.scope, receive=self.receive, send=self.send)
        await self.on_connect(websocket)

        close_code = status.WS_1000_NORMAL_CLOSURE

        try:
            async with aclosing(self.frames(websocket)) as frames:
                async for data in frames:
                    await self.on_receive(websocket, data)
                    if not self.session.is_open:
                        break
        except Exception as exc:
            close_code = status.WS_1011_INTERNAL_ERROR
            raise exc
        finally:
            await self.on_disconnect(websocket, close_code)

    async def frames(self, websocket: WebSocket) -> AsyncIterator[str | bytes]:
        """
        Yield the payload of each received frame.

        Ends when the client disconnects.
        """
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.receive":
                yield await self.decode(websocket, message)
            elif message["type"] == "websocket.disconnect":
                logger.debug(
                    f"Client sent close code "
                    f"{message.get('code') or status.WS_1000_NORMAL_CLOSURE}"
                )
                return

    async def decode(
        self, websocket: WebSocket, message: dict[str, Any]
    ) -> str | bytes:
        """Return the raw frame payload; parsing is left to the router."""
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    @property
    def router(self) -> MessageRouter:
        return self.scope["app"].state.message_router

    async def on_connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.session: Session = self.router.open_session(websocket)

    async def on_receive(self, websocket: WebSocket, data: str | bytes) -> None:
        await self.router.route(self.session, data)

    async def on_disconnect(self, websocket: WebSocket, close_code: int) -> None:
        await self.router.close_session(self.session)
        logger.debug(f"Connection finished with code {close_code}")
        clear_log_context()
