"""
=============================================================================
HTTP LAYER
=============================================================================

Everything between raw request bytes and a handler call.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST PARSER (request.py)                                         │
    │   b"GET /api/users/1 HTTP/1.1\r\n..."  →  HTTPRequest               │
    ├─────────────────────────────────────────────────────────────────────┤
    │ REQUEST CONTEXT (context.py)                                        │
    │   per-request state, ended exactly once, from any thread            │
    ├─────────────────────────────────────────────────────────────────────┤
    │ ROUTER (router.py)                                                  │
    │   GET /api/users/:id  →  handler(ctx), ctx.path_params = {"id"}     │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE BUILDER (response.py)                                      │
    │   HTTPResponse  →  b"HTTP/1.1 200 OK\r\n..."                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │ STATUS CODES (status_codes.py)                                      │
    │   HTTPStatus.NOT_FOUND == 404, .phrase == "Not Found"               │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, HTTPParseError, RequestParser
from .response import (
    HTTPResponse,
    ResponseBuilder,
    error_response,
    json_default,
    json_response,
    no_content,
)
from .context import RequestContext
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus

__all__ = [
    # Request
    "HTTPRequest",
    "HTTPParseError",
    "RequestParser",
    # Response
    "HTTPResponse",
    "ResponseBuilder",
    "error_response",
    "json_default",
    "json_response",
    "no_content",
    # Context
    "RequestContext",
    # Routing
    "Router",
    "Route",
    "RouteMatch",
    # Status codes
    "HTTPStatus",
]
