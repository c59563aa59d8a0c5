"""Custom filters for uvicorn access logging."""

import logging

from chat_relay.settings import app_settings


class ExcludeMetricsFilter(logging.Filter):
    """
    Drops access log lines for the monitoring endpoints.

    Uvicorn passes ``(client_addr, method, path, http_version, status)`` as
    the access record arguments. The path, without its query string, is
    matched exactly against LOG_EXCLUDED_PATHS, so the chat client at "/"
    and other pages keep being logged. Records without those arguments are
    matched on the rendered message.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        args = record.args
        if isinstance(args, tuple) and len(args) >= 3:
            path = str(args[2]).split("?", 1)[0]
            return path not in app_settings.LOG_EXCLUDED_PATHS

        message = record.getMessage()
        return not any(
            f" {path} " in message or f" {path}?" in message
            for path in app_settings.LOG_EXCLUDED_PATHS
        )
