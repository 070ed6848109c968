"""
=============================================================================
LOGGING MIDDLEWARE
=============================================================================

Access logging with timing and request ids.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default), Apache-like:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [19/Oct/2026:10:55:36 +0000] "GET /api/users" 200 97  │
    │ 101.52ms                                                            │
    └─────────────────────────────────────────────────────────────────────┘

    JSON, for log aggregators:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET", "path": "/api/users",   │
    │  "status_code": 200, "duration_ms": 101.52, "thread": "...", ...}   │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TIMING ACROSS THREADS
=============================================================================

The handler returns as soon as its task is submitted, so the log line
cannot be written after next(). It is written by an end handler on the
thread that ends the context, which makes duration_ms the full
accept-to-response time including the worker pool:

    eventloop-thread-2     Request: GET /api/users (thread: eventloop-thread-2)
    worker-pool-1a2b-0     127.0.0.1 - - [...] "GET /api/users" 200 97 101.52ms

=============================================================================
"""

import time
import json
import uuid
import logging
import threading
from typing import Optional
from dataclasses import asdict, dataclass

from .base import Middleware, NextHandler
from ..http.context import RequestContext
from ..http.response import HTTPResponse


logger = logging.getLogger("offloadapi.access")


@dataclass
class RequestLog:
    """One access log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    thread: str
    timestamp: str

    def to_dict(self) -> dict:
        """Field name -> value, duration rounded to 0.01 ms."""
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    - DEBUG trace of every request on the thread that accepted it
    - access line (text or JSON) once the response is ready
    - X-Request-ID response header for correlation

    Usage:
        pipeline.add(LoggingMiddleware(log_format="json"))
        pipeline.add(LoggingMiddleware(skip_paths=["/health"]))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        """
        Args:
            log_format: "text" (Apache-like) or "json".
            include_request_id: Add X-Request-ID to every response.
            log_level: Level of the access line.
            skip_paths: Paths never access-logged (noisy probes).
        """
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, ctx: RequestContext, next: NextHandler) -> None:
        request_id = str(uuid.uuid4())[:8]
        ctx.data["request_id"] = request_id

        logger.debug(
            f"Request: {ctx.method} {ctx.request.uri} "
            f"(thread: {threading.current_thread().name})"
        )

        ctx.add_end_handler(self._on_end)

        try:
            next(ctx)
        except Exception as e:
            logger.error(
                f"Request failed: {ctx.method} {ctx.path} "
                f"- {type(e).__name__}: {e} ({ctx.elapsed_ms:.2f}ms)"
            )
            raise

    def _on_end(self, ctx: RequestContext, response: HTTPResponse) -> None:
        request_id = ctx.data.get("request_id", "-")

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if ctx.path in self.skip_paths:
            return

        request = ctx.request
        log_entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=str(request.query_params) if request.query_params else "",
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=ctx.elapsed_ms,
            thread=threading.current_thread().name,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(self.log_level, log_entry.to_text())
