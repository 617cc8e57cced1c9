"""Structured JSON logging configuration.

Records are stamped with the request id and user id of the request being
served (see ``request_context``), so service log lines such as
"Response recorded" or "Test created" carry them without every call site
passing them explicitly.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from quizbank.core.config import settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)


@contextmanager
def request_context(request_id: str | None = None, user_id: str | None = None) -> Iterator[None]:
    """Bind a request id and user id to log records emitted inside the block."""
    request_token = request_id_var.set(request_id)
    user_token = user_id_var.set(user_id)
    try:
        yield
    finally:
        user_id_var.reset(user_token)
        request_id_var.reset(request_token)


class RequestContextFilter(logging.Filter):
    """Copy the bound request context onto each record (explicit extras win)."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = request_id_var.get()
        if request_id is not None and not hasattr(record, "request_id"):
            record.request_id = request_id
        user_id = user_id_var.get()
        if user_id is not None and not hasattr(record, "user_id"):
            record.user_id = user_id
        return True


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter emitting one flat object per record."""

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["event"] = record.getMessage()
        if record.levelno >= logging.WARNING:
            # Call site only matters when something needs a look
            log_record["module"] = record.module
            log_record["function"] = record.funcName

        log_record.pop("message", None)
        log_record.pop("asctime", None)


def build_handler(stream=None) -> logging.Handler:
    """JSON handler with the request context filter attached."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(CustomJsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    handler.addFilter(RequestContextFilter())
    return handler


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger (idempotent; replaces existing handlers)."""
    root_logger = logging.getLogger()
    level_name = (level or settings.LOG_LEVEL).upper()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    root_logger.handlers.clear()
    root_logger.addHandler(build_handler())

    # Quiet third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
