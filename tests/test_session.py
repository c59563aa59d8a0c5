"""Tests for client sessions."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from chat_relay.constants import SessionState
from chat_relay.exceptions import TransportClosed
from chat_relay.schemas.response import SystemFrame
from tests.mocks.websocket_mocks import (
    create_mock_session,
    drop_connection,
    sent_frames,
)


class TestSessionState:
    def test_new_session_is_connecting(self):
        session = create_mock_session()

        assert session.state is SessionState.CONNECTING
        assert session.name is None
        assert session.is_open
        assert not session.is_authenticated

    def test_not_open_before_accept(self):
        session = create_mock_session()
        session.websocket.application_state = WebSocketState.CONNECTING

        assert not session.is_open

    def test_not_open_after_client_disconnect(self):
        session = create_mock_session()
        drop_connection(session.websocket)

        assert not session.is_open

    def test_release_only_once(self):
        session = create_mock_session("alice")

        assert session.release() is True
        assert session.release() is False
        assert session.state is SessionState.CLOSED


class TestSessionSend:
    @pytest.mark.asyncio
    async def test_send_writes_wire_frame(self):
        session = create_mock_session()

        await session.send(SystemFrame(message="hello"))

        assert sent_frames(session) == [{"type": "system", "message": "hello"}]

    @pytest.mark.asyncio
    async def test_send_on_closed_session_raises(self):
        session = create_mock_session()
        drop_connection(session.websocket)

        with pytest.raises(TransportClosed):
            await session.send(SystemFrame(message="hello"))

        session.websocket.send_json.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [WebSocketDisconnect(1006), ConnectionResetError(), RuntimeError("closed")],
    )
    async def test_send_failure_marks_closed(self, error):
        session = create_mock_session()
        session.websocket.send_json = AsyncMock(side_effect=error)

        with pytest.raises(TransportClosed):
            await session.send(SystemFrame(message="hello"))

        assert session.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_concurrent_sends_keep_order(self):
        session = create_mock_session()
        delivered = []

        async def slow_send(data):
            await asyncio.sleep(0.01 if data["message"] == "first" else 0)
            delivered.append(data["message"])

        session.websocket.send_json = AsyncMock(side_effect=slow_send)

        await asyncio.gather(
            session.send(SystemFrame(message="first")),
            session.send(SystemFrame(message="second")),
        )

        assert delivered == ["first", "second"]


class TestSessionClose:
    @pytest.mark.asyncio
    async def test_close_closes_websocket(self):
        session = create_mock_session()

        await session.close(code=1008, reason="bye")

        session.websocket.close.assert_called_once_with(code=1008, reason="bye")
        assert session.state is SessionState.CLOSED
        assert not session.is_open

    @pytest.mark.asyncio
    async def test_close_twice_closes_once(self):
        session = create_mock_session()

        await session.close(code=1000)
        await session.close(code=1000)

        session.websocket.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_error_is_not_raised(self):
        session = create_mock_session()
        session.websocket.close = AsyncMock(side_effect=RuntimeError("gone"))

        await session.close(code=1000)

        assert session.state is SessionState.CLOSED
