"""
Structured logging configuration.

- JSON lines in production, readable text in development
- Every record emitted inside a request carries the request id and caller id
- One access-log line per API request
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request
from flask_login import current_user

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s %(user_id)s]: %(message)s"


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request id and caller.

    Records from the presence sweep thread have no request context and get
    ``-`` for both fields.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = user_id = "-"
        if has_request_context():
            request_id = getattr(g, "request_id", "-")
            # The request loader has run by the time route code logs
            user = getattr(g, "_login_user", None)
            if user is not None and user.is_authenticated:
                user_id = user.id
        if not hasattr(record, "request_id"):
            record.request_id = request_id
        if not hasattr(record, "user_id"):
            record.user_id = user_id
        return True


def init_logging(app: Flask) -> None:
    """Configure the root logger from LOG_FORMAT / LOG_LEVEL."""
    log_format = app.config.get("LOG_FORMAT", "text")
    log_level = app.config.get("LOG_LEVEL", "INFO")

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter())
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)

    # Quiet noisy libraries
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    @app.before_request
    def _attach_request_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.request_start = time.time()

    @app.after_request
    def _log_request(response):
        duration_ms = (time.time() - getattr(g, "request_start", time.time())) * 1000
        caller = current_user.id if current_user.is_authenticated else "anonymous"
        app.logger.info(
            "%s %s %s %.0fms caller=%s",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            caller,
        )
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")
        return response
