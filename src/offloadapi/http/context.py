"""
=============================================================================
REQUEST CONTEXT
=============================================================================

One RequestContext exists per in-flight request. It travels from the
event-loop thread that parsed the request, through the middleware and
the router, into whichever worker thread runs the blocking task, and
is finally ended by exactly one of them.

=============================================================================
LIFECYCLE
=============================================================================

    eventloop-thread-1                      worker-pool-a1b2c3-4
    ──────────────────                      ────────────────────
    parse request
    ctx = RequestContext(req, responder)
    middleware (CORS, logging)
      └─ put_header(...), add_end_handler(...)
    router → handler(ctx)
      └─ validate, submit task ────────────► task runs
    return (thread is free again)           ctx.json(data)  ─┐
                                                             │
                                            end(response) ◄──┘
                                              ├─ apply headers
                                              ├─ run end handlers
                                              └─ responder(ctx, response)
                                                   └─ bytes on the wire

=============================================================================
WRITE-ONCE
=============================================================================

end() succeeds exactly once. A second call (a task that answers twice,
or the dispatcher trying to report an error after the task already
answered) returns False and changes nothing, so a client never sees
two responses for one request.

=============================================================================
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Union

from .request import HTTPRequest
from .response import HTTPResponse, error_response, json_response
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


EndHandler = Callable[["RequestContext", HTTPResponse], None]
Responder = Callable[["RequestContext", HTTPResponse], None]


class RequestContext:
    """
    Per-request state shared between threads.

    Attributes:
        request: The parsed HTTP request.
        path_params: Parameters extracted by the router (":id").
        data: Free-form storage for middleware (request id, timings).
        response: The response, once the context has ended.
        started_at: time.perf_counter() when the context was created.
    """

    def __init__(self, request: HTTPRequest, responder: Optional[Responder] = None):
        self.request = request
        self.path_params: Dict[str, str] = {}
        self.data: Dict[str, Any] = {}
        self.response: Optional[HTTPResponse] = None
        self.started_at = time.perf_counter()

        self._responder = responder
        self._response_headers: Dict[str, str] = {}
        self._end_handlers: List[EndHandler] = []
        self._lock = threading.Lock()
        self._ended = False
        self._done = threading.Event()

    # ─── Request accessors ───────────────────────────────────────────────

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    def path_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.path_params.get(name, default)

    def body_as_json(self) -> Optional[Dict[str, Any]]:
        """Request body as a JSON object, None if absent or not an object."""
        return self.request.json_object()

    # ─── Response setup ──────────────────────────────────────────────────

    def put_header(self, name: str, value: str) -> "RequestContext":
        """
        Add a header to whatever response ends this context.

        Headers the response already carries win.
        """
        with self._lock:
            self._response_headers[name] = value
        return self

    def add_end_handler(self, handler: EndHandler) -> "RequestContext":
        """Register a callback run just before the response is sent."""
        with self._lock:
            self._end_handlers.append(handler)
        return self

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000

    # ─── Ending ──────────────────────────────────────────────────────────

    def end(self, response: HTTPResponse) -> bool:
        """
        Finish the request with this response.

        Returns:
            True if this call ended the context, False if it had already
            been ended (the response is discarded).
        """
        with self._lock:
            if self._ended:
                return False
            self._ended = True
            headers = dict(self._response_headers)
            end_handlers = list(self._end_handlers)

        for name, value in headers.items():
            response.headers.setdefault(name, value)

        for handler in end_handlers:
            try:
                handler(self, response)
            except Exception as e:
                logger.error(f"End handler failed for {self.method} {self.path}: {e}", exc_info=True)

        self.response = response

        try:
            if self._responder is not None:
                self._responder(self, response)
        finally:
            self._done.set()
        return True

    def json(self, data: Any, status: Union[HTTPStatus, int] = HTTPStatus.OK) -> bool:
        """End with a JSON body."""
        return self.end(json_response(data, status))

    def fail(self, status: Union[HTTPStatus, int], message: str) -> bool:
        """End with the API error body {"error", "message", "statusCode"}."""
        return self.end(error_response(status, message))

    def wait(self, timeout: Optional[float] = None) -> Optional[HTTPResponse]:
        """
        Block until the context has ended.

        Returns:
            The response, or None on timeout.
        """
        if self._done.wait(timeout):
            return self.response
        return None

    def __repr__(self) -> str:
        state = "ended" if self._ended else "open"
        return f"RequestContext({self.method} {self.path}, {state})"
