"""
Pytest configuration and fixtures for testing.

This module provides shared fixtures for the connection registry, the
connection manager, the message router and client sessions.
"""

import os
from datetime import datetime

import pytest

# Keep the error log out of the working tree before importing chat_relay
os.environ.setdefault("LOG_FILE_PATH", os.devnull)

FIXED_NOW = datetime(2024, 5, 17, 14, 5, 42)


@pytest.fixture
def registry():
    """
    Provides an empty ConnectionRegistry.

    Returns:
        ConnectionRegistry: Fresh registry instance
    """
    from chat_relay.managers.connection_registry import ConnectionRegistry

    return ConnectionRegistry()


@pytest.fixture
def connection_manager():
    """
    Provides an empty ConnectionManager.

    Returns:
        ConnectionManager: Fresh connection manager instance
    """
    from chat_relay.managers.websocket_connection_manager import (
        ConnectionManager,
    )

    return ConnectionManager()


@pytest.fixture
def message_router(registry, connection_manager):
    """
    Provides a MessageRouter with a frozen clock.

    Every private message routed by it is stamped "14:05".

    Args:
        registry: Fixture providing the connection registry
        connection_manager: Fixture providing the connection manager

    Returns:
        MessageRouter: Router wired to the fixtures above
    """
    from chat_relay.routing import MessageRouter

    return MessageRouter(registry, connection_manager, clock=lambda: FIXED_NOW)


@pytest.fixture
def connect(message_router):
    """
    Factory opening a new session on the message router.

    Returns:
        Callable[[], Session]: Opens a session backed by a mock WebSocket
    """
    from tests.mocks.websocket_mocks import create_mock_websocket

    def _connect():
        return message_router.open_session(create_mock_websocket())

    return _connect
