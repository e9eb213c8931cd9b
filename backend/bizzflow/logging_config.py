from __future__ import annotations

import logging
import sys
import uuid

from flask import Flask, g, has_request_context, request


REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextFilter(logging.Filter):
    """
    Logging filter that injects the current request id into each log record
    so formatters can include it.

    Outside a request (CLI commands, startup) a placeholder is used.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        rid = None
        if has_request_context():
            rid = getattr(g, "request_id", None)
        setattr(record, "request_id", rid or "-")
        return True


def configure_logging(app: Flask) -> None:
    """Configure root logging with a structured format and request-id filter."""
    level = logging.getLevelName(app.config.get("LOG_LEVEL", "INFO"))
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | req=%(request_id)s | %(message)s"
        )
    )
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    # Remove pre-existing default handlers configured elsewhere (e.g., basicConfig)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level)

    # Flask's own logger propagates to root instead of its default handler
    app.logger.handlers.clear()
    app.logger.propagate = True
    app.logger.setLevel(level)

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

    @app.after_request
    def echo_request_id(response):
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers[REQUEST_ID_HEADER] = rid
        return response
