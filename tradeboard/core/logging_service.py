"""
Structured logging for the API.

Every request gets a correlation id that is stamped on each log line
written while the request is handled, and echoed back to the caller in
the X-Correlation-Id response header.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any


CORRELATION_HEADER = b"x-correlation-id"

correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord carries; anything else arrived through `extra`
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "correlation_id"}

_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "uvicorn.access")

trade_logger = logging.getLogger("tradeboard.trades")
request_logger = logging.getLogger("tradeboard.requests")


def get_correlation_id() -> str | None:
    return correlation_id_ctx.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation id to the current context, generating one if needed."""
    cid = correlation_id or uuid.uuid4().hex[:12]
    correlation_id_ctx.set(cid)
    return cid


class CorrelationIdFilter(logging.Filter):
    """Copies the context's correlation id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


class JSONFormatter(logging.Formatter):
    """
    Renders a record as one JSON object per line.

    Fields passed through `extra=` are grouped under an "extra" key;
    values that are not JSON-native are stringified.
    """

    def __init__(self, include_source: bool = True):
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cid = getattr(record, "correlation_id", None) or get_correlation_id()
        if cid:
            payload["correlation_id"] = cid

        if self.include_source:
            payload["source"] = f"{record.module}:{record.funcName}:{record.lineno}"

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=str)


def setup_structured_logging(
    level: str = "INFO",
    json_output: bool = True,
    include_source: bool = True,
) -> None:
    """
    Route all logging to stdout.

    Args:
        level: Minimum log level name
        json_output: JSON lines when True, plain text otherwise (local dev)
        include_source: Add module:function:line to JSON lines
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    if json_output:
        handler.setFormatter(JSONFormatter(include_source=include_source))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(correlation_id)s] %(name)s %(levelname)s: %(message)s"
        ))

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class RequestLoggingMiddleware:
    """
    ASGI middleware that assigns a correlation id per HTTP request and
    logs method, path, status and duration when the response is done.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        incoming = dict(scope.get("headers", [])).get(CORRELATION_HEADER, b"").decode()
        cid = set_correlation_id(incoming or None)
        method, path = scope.get("method", "?"), scope.get("path", "/")
        status_code = 500
        started = time.perf_counter()

        async def send_with_header(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                message["headers"] = [*message.get("headers", []), (CORRELATION_HEADER, cid.encode())]
            await send(message)

        try:
            await self.app(scope, receive, send_with_header)
        except Exception:
            request_logger.exception(f"Unhandled error on {method} {path}")
            raise
        finally:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            request_logger.log(
                logging.WARNING if status_code >= 400 else logging.INFO,
                f"{method} {path} -> {status_code} ({elapsed_ms}ms)",
                extra={"method": method, "path": path, "status": status_code, "duration_ms": elapsed_ms},
            )


def log_trade_event(event_type: str, trade_id: str, **fields: Any) -> None:
    """Log a trade lifecycle event (created, rejected, settled, deleted)."""
    trade_logger.info(
        f"{event_type} trade={trade_id}",
        extra={"event_type": event_type, "trade_id": trade_id, **fields},
    )
