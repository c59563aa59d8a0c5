"""Tests for the health check and metrics endpoints."""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from chat_relay.managers.connection_registry import ConnectionRegistry
from chat_relay.managers.websocket_connection_manager import ConnectionManager
from chat_relay.routing import MessageRouter
from tests.mocks.websocket_mocks import create_mock_session


@pytest.fixture
def message_router():
    return MessageRouter(ConnectionRegistry(), ConnectionManager())


@pytest.fixture
def app(message_router):
    """
    Create a minimal FastAPI app with only the health and metrics endpoints.

    Returns:
        FastAPI: FastAPI application instance.
    """
    from chat_relay.api.http.health import router as health_router
    from chat_relay.api.http.metrics import router as metrics_router

    test_app = FastAPI()
    test_app.state.message_router = message_router
    test_app.include_router(health_router)
    test_app.include_router(metrics_router)
    return test_app


@pytest.fixture
def client(app):
    return TestClient(app)


def test_health_no_connections(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "active_connections": 0,
        "online_users": 0,
    }


@pytest.mark.asyncio
async def test_health_counts_connections_and_users(client, message_router):
    anonymous = create_mock_session()
    alice = create_mock_session()
    message_router.connections.connect(anonymous)
    message_router.connections.connect(alice)
    await message_router.registry.register("alice", alice)

    data = client.get("/health").json()

    assert data["active_connections"] == 2
    assert data["online_users"] == 1


def test_metrics_endpoint(client):
    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "ws_connections_active" in response.text
    assert "chat_logins_total" in response.text


def test_application_serves_static_client():
    from chat_relay import application

    with TestClient(application()) as client:
        response = client.get("/")

    assert response.status_code == 200
    assert "WebSocket" in response.text


def test_exclude_metrics_filter():
    from chat_relay.uvicorn_filters import ExcludeMetricsFilter

    log_filter = ExcludeMetricsFilter()

    def record(msg):
        return MagicMock(getMessage=MagicMock(return_value=msg))

    assert not log_filter.filter(record('127.0.0.1 - "GET /metrics HTTP/1.1" 200'))
    assert not log_filter.filter(record('127.0.0.1 - "GET /health HTTP/1.1" 200'))
    assert log_filter.filter(record('127.0.0.1 - "GET / HTTP/1.1" 200'))


def test_exclude_metrics_filter_matches_access_path():
    import logging

    from chat_relay.uvicorn_filters import ExcludeMetricsFilter

    log_filter = ExcludeMetricsFilter()

    def access_record(path):
        return logging.LogRecord(
            "uvicorn.access",
            logging.INFO,
            __file__,
            1,
            '%s - "%s %s HTTP/%s" %d',
            ("127.0.0.1:5000", "GET", path, "1.1", 200),
            None,
        )

    assert not log_filter.filter(access_record("/metrics"))
    assert not log_filter.filter(access_record("/health?verbose=1"))
    assert log_filter.filter(access_record("/"))
    assert log_filter.filter(access_record("/healthcheck.html"))


def test_run_server_log_config_filters_access_log():
    from run_server import build_log_config

    log_config = build_log_config()

    assert log_config["handlers"]["access"]["filters"] == ["exclude_metrics"]
    assert (
        log_config["filters"]["exclude_metrics"]["()"]
        == "chat_relay.uvicorn_filters.ExcludeMetricsFilter"
    )
