"""
Process entry point for the chat relay.

Serves the WebSocket relay, the health and metrics endpoints and the static
client UI on one port.
"""

import copy

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from chat_relay.settings import app_settings


def build_log_config() -> dict:
    """Uvicorn's default log config with monitoring requests filtered out."""
    log_config = copy.deepcopy(LOGGING_CONFIG)
    log_config.setdefault("filters", {})["exclude_metrics"] = {
        "()": "chat_relay.uvicorn_filters.ExcludeMetricsFilter"
    }
    log_config["handlers"]["access"]["filters"] = ["exclude_metrics"]
    return log_config


if __name__ == "__main__":
    uvicorn.run(
        "chat_relay:application",
        factory=True,
        host=app_settings.HOST,
        port=app_settings.PORT,
        log_config=build_log_config(),
    )
