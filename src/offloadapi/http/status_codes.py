"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this API answers with, and their reason phrases.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │ Code   │ Used for                                                   │
    ├────────┼───────────────────────────────────────────────────────────┤
    │ 200    │ reads, updates, deletes, diagnostics                       │
    │ 201    │ POST /api/users, POST /api/orders                          │
    │ 204    │ CORS preflight (OPTIONS)                                   │
    │ 400    │ unparsable body, missing field, bad status value           │
    │ 404    │ unknown id, unknown route                                  │
    │ 405    │ known path, wrong method                                   │
    │ 408    │ client too slow to send its request                        │
    │ 413    │ request larger than max_request_size                       │
    │ 500    │ unexpected failure ("Operation failed")                   │
    │ 503    │ worker pool queue full or shutting down                    │
    │ 505    │ HTTP version other than 1.0/1.1                            │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain ints:

        >>> HTTPStatus.CREATED == 201
        True
        >>> HTTPStatus.CREATED.phrase
        'Created'
    """

    # 2xx SUCCESS
    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line:

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      └── phrase
                      └───────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @classmethod
    def coerce(cls, code: int) -> "HTTPStatus":
        """
        Map an int to a member, falling back to 500 for codes this
        server never produces.
        """
        try:
            return cls(int(code))
        except ValueError:
            return cls.INTERNAL_SERVER_ERROR


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
