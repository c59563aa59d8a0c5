import os
import pkgutil
import time
from datetime import datetime
from importlib import import_module
from typing import Any, Awaitable, Callable

import anyio
from fastapi import APIRouter
from starlette.websockets import WebSocket

from chat_relay.constants import (
    NAME_TAKEN_MSG,
    USER_NOT_AVAILABLE_MSG,
    WELCOME_MSG,
    WS_POLICY_VIOLATION_CODE,
    MessageType,
    SessionState,
)
from chat_relay.exceptions import (
    MalformedFrame,
    NameConflict,
    RecipientUnavailable,
    TransportClosed,
)
from chat_relay.logging import logger, set_log_context
from chat_relay.managers.connection_registry import ConnectionRegistry
from chat_relay.managers.websocket_connection_manager import ConnectionManager
from chat_relay.schemas.request import (
    LoginFrame,
    PrivateMessageFrame,
    TypingFrame,
    parse_frame,
)
from chat_relay.schemas.response import (
    DeliveredFrame,
    OutboundFrame,
    PrivateMessageOutFrame,
    SystemFrame,
    TypingOutFrame,
    UserListFrame,
)
from chat_relay.session import Session
from chat_relay.settings import app_settings
from chat_relay.utils.metrics import (
    chat_logins_total,
    chat_private_messages_total,
    chat_users_online,
    ws_connections_active,
    ws_connections_total,
    ws_message_processing_duration_seconds,
    ws_messages_dropped_total,
    ws_messages_received_total,
)

HandlerCallableType = Callable[[Session, Any], Awaitable[None]]


class MessageRouter:
    """
    Router for inbound chat frames.

    Interprets each frame according to the state of the sending session and
    dispatches the resulting frames. Names are resolved through the
    connection registry; roster updates go to every connection known to the
    connection manager.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        connections: ConnectionManager,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Args:
            registry: Name to session mapping shared by all connections.
            connections: All open connections, roster broadcast target.
            clock: Source of the current time for message timestamps.
        """
        self.registry = registry
        self.connections = connections
        self.clock = clock
        self.handlers_registry: dict[MessageType, HandlerCallableType] = {
            MessageType.LOGIN: self.login,
            MessageType.PRIVATE_MESSAGE: self.private_message,
            MessageType.TYPING: self.typing,
        }

    def open_session(self, websocket: WebSocket) -> Session:
        """Create a session for an accepted connection and start tracking it."""
        session = Session(websocket)
        self.connections.connect(session)
        ws_connections_total.inc()
        ws_connections_active.inc()
        set_log_context(connection_id=session.connection_id[:8])
        logger.debug("Client connected")
        return session

    async def close_session(self, session: Session) -> None:
        """
        Release a session whose connection has ended.

        Frees the session's name and broadcasts the new roster. Calling it
        again for the same session has no effect.

        Runs to completion even when the connection task is being
        cancelled, so the remaining users always get the final roster.
        """
        if not session.release():
            return

        self.connections.disconnect(session)
        ws_connections_active.dec()

        if session.name is None:
            logger.debug("Anonymous client disconnected")
            return

        with anyio.CancelScope(shield=True):
            await self.registry.unregister(session.name, session)
            logger.info(f"{session.name} disconnected")
            await self.broadcast_user_list()

    async def route(self, session: Session, raw: str | bytes | dict[str, Any]) -> None:
        """
        Handle one inbound frame from `session`.

        Malformed frames and frames not allowed in the session's current
        state are dropped without a reply.
        """
        if session.state is SessionState.CLOSED:
            return

        try:
            frame = parse_frame(raw)
        except MalformedFrame as exc:
            ws_messages_dropped_total.labels(reason="malformed").inc()
            logger.warning(f"Invalid message format: {exc}")
            return

        if frame is None:
            ws_messages_dropped_total.labels(reason="unknown_type").inc()
            logger.debug(f"Ignoring frame of unknown type: {raw!r}")
            return

        message_type = MessageType(frame.type)
        ws_messages_received_total.labels(type=message_type.value).inc()

        if message_type is MessageType.LOGIN:
            if session.is_authenticated:
                ws_messages_dropped_total.labels(reason="already_logged_in").inc()
                logger.debug(f"Ignoring login from logged in {session!r}")
                return
        elif not session.is_authenticated:
            ws_messages_dropped_total.labels(reason="unauthenticated").inc()
            logger.debug(f"Ignoring {message_type} before login")
            return

        handler = self.handlers_registry[message_type]

        start_time = time.time()
        await handler(session, frame)
        ws_message_processing_duration_seconds.labels(
            type=message_type.value
        ).observe(time.time() - start_time)

    async def login(self, session: Session, frame: LoginFrame) -> None:
        """
        Claim the requested name for `session`.

        On success the session is greeted and every connection gets the new
        roster. If the name is held by another live session, the client is
        told so and its connection is closed with a policy violation code.
        """
        try:
            await self.registry.register(frame.username, session)
        except NameConflict:
            chat_logins_total.labels(status="name_taken").inc()
            logger.info(f"Rejected login, name {frame.username!r} is taken")
            await self._notify(session, NAME_TAKEN_MSG)
            await session.close(
                code=WS_POLICY_VIOLATION_CODE, reason=NAME_TAKEN_MSG
            )
            return

        chat_logins_total.labels(status="accepted").inc()
        set_log_context(username=frame.username)
        logger.info(f"{frame.username} logged in")

        await self._notify(session, WELCOME_MSG.format(username=frame.username))
        await self.broadcast_user_list()

    async def private_message(
        self, session: Session, frame: PrivateMessageFrame
    ) -> None:
        """
        Relay a direct message and acknowledge it to the sender.

        The recipient frame and the ``delivered`` acknowledgement carry the
        same timestamp. If the recipient is not logged in or its connection
        fails, the sender gets a "not available" notice instead.
        """
        timestamp = self.clock().strftime(app_settings.TIMESTAMP_FORMAT)

        try:
            recipient = await self._resolve(frame.to)
            try:
                await recipient.send(
                    PrivateMessageOutFrame(
                        sender=session.name,
                        message=frame.message,
                        timestamp=timestamp,
                    )
                )
            except TransportClosed as exc:
                raise RecipientUnavailable(frame.to) from exc
        except RecipientUnavailable as exc:
            chat_private_messages_total.labels(status="unavailable").inc()
            logger.info(str(exc))
            await self._notify(
                session, USER_NOT_AVAILABLE_MSG.format(username=frame.to)
            )
            return

        chat_private_messages_total.labels(status="delivered").inc()
        await self._send(
            session,
            DeliveredFrame(to=frame.to, message=frame.message, timestamp=timestamp),
        )

    async def typing(self, session: Session, frame: TypingFrame) -> None:
        """Forward a typing notice; nothing is sent back if delivery fails."""
        try:
            recipient = await self._resolve(frame.to)
        except RecipientUnavailable:
            return

        await self._send(recipient, TypingOutFrame(sender=session.name))

    async def broadcast_user_list(self) -> None:
        """Send the full roster to every open connection."""
        version, users = await self.registry.roster()
        chat_users_online.set(len(users))
        await self.connections.broadcast(UserListFrame(users=users), version)

    async def _resolve(self, name: str) -> Session:
        recipient = await self.registry.lookup(name)
        if recipient is None:
            raise RecipientUnavailable(name)
        return recipient

    async def _notify(self, session: Session, message: str) -> None:
        await self._send(session, SystemFrame(message=message))

    async def _send(self, session: Session, frame: OutboundFrame) -> None:
        try:
            await session.send(frame)
        except TransportClosed as exc:
            logger.debug(f"Dropped {frame.type} frame: {exc}")


# Track registered modules to prevent duplicate logging
_registered_http_modules: set[str] = set()
_registered_ws_modules: set[str] = set()


def collect_subrouters() -> APIRouter:
    """
    Collects and registers all HTTP and WebSocket routers for the application.

    Iterates through the `api/http` and `api/ws/consumers` packages, imports
    every module found and adds its `router` to the main `APIRouter`.
    """
    main_router: APIRouter = APIRouter()

    app_dir = os.path.dirname(__file__)
    app_name = os.path.basename(app_dir)

    for _, module, _ in pkgutil.iter_modules([f"{app_dir}/api/http"]):
        api = import_module(f".{module}", package=f"{app_name}.api.http")
        main_router.include_router(api.router)

        if module not in _registered_http_modules:
            logger.info(f'Register "{module}" api')
            _registered_http_modules.add(module)

    for _, module, _ in pkgutil.iter_modules([f"{app_dir}/api/ws/consumers"]):
        ws_consumer = import_module(
            f".{module}", package=f"{app_name}.api.ws.consumers"
        )
        main_router.include_router(ws_consumer.router)

        if module not in _registered_ws_modules:
            logger.info(f'Register "{module}" websocket consumer')
            _registered_ws_modules.add(module)

    return main_router
