"""
Access logging and log formatting.

Each request gets an id (taken from X-Request-ID or generated), which is
echoed back in the response and stamped on every record logged while the
request runs. The Facebook callback carries the OAuth code and state in its
query string; those values are masked before anything reaches a log line.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from urllib.parse import parse_qsl, urlencode

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from fellis.auth import client_ip

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"

# Query parameters whose values never appear in logs
SECRET_PARAMS = frozenset({"code", "state", "access_token", "fb_exchange_token", "client_secret"})

# Record attributes lifted into the JSON line when present
CONTEXT_FIELDS = ("user_id", "method", "path", "query", "status_code", "error_code", "duration_ms", "client_ip")

UNLOGGED_PATHS = frozenset({"/health"})


def redact_query(query: str) -> str:
    if not query:
        return ""
    pairs = parse_qsl(query, keep_blank_values=True)
    return urlencode([(key, "***" if key in SECRET_PARAMS else value) for key, value in pairs])


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", ""),
            "message": record.getMessage(),
        }
        payload.update({field: getattr(record, field) for field in CONTEXT_FIELDS if hasattr(record, field)})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Writes one line to ``fellis.access`` per request."""

    access_logger = logging.getLogger("fellis.access")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                self.log_access(request, 500, started, failure=repr(exc))
                raise
            response.headers[REQUEST_ID_HEADER] = request_id
            self.log_access(request, response.status_code, started)
            return response
        finally:
            request_id_var.reset(token)

    def log_access(
        self,
        request: Request,
        status_code: int,
        started: float,
        failure: str | None = None,
    ) -> None:
        path = request.url.path
        if path in UNLOGGED_PATHS:
            return

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        query = redact_query(request.url.query)
        context = {
            "method": request.method,
            "path": path,
            "status_code": status_code,
            "duration_ms": elapsed_ms,
            "client_ip": client_ip(request) or "unknown",
        }
        if query:
            context["query"] = query
        user = getattr(request.state, "user", None)
        if user is not None:
            context["user_id"] = user.id

        level = logging.ERROR if status_code >= 500 else logging.WARNING if status_code >= 400 else logging.INFO
        line = f"{request.method} {path} {status_code} in {elapsed_ms}ms"
        if failure:
            line = f"{line} ({failure})"
        self.access_logger.log(level, line, extra=context)


# Library loggers that are too chatty at INFO
NOISY_LOGGERS = ("uvicorn.access", "apscheduler", "sqlalchemy.engine", "httpx", "httpcore")


def setup_structured_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Point the root logger at stderr, as JSON lines or as readable text.

    Args:
        log_level: name of the level for the root and ``fellis`` loggers
        json_format: emit JSON lines (production) instead of plain text
    """
    level = logging.getLevelName(log_level.upper())

    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(
        StructuredFormatter()
        if json_format
        else logging.Formatter("%(asctime)s %(levelname)-7s %(name)s [%(request_id)s] %(message)s")
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    logging.getLogger("fellis").setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
