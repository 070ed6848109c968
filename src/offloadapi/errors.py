"""
=============================================================================
API ERRORS
=============================================================================

Exceptions a request handler raises to end a request with an error.

    ┌──────────────────┬────────┬──────────────────────────────────────┐
    │ Exception        │ Status │ Raised when                          │
    ├──────────────────┼────────┼──────────────────────────────────────┤
    │ InvalidInput     │  400   │ body unparsable / required field     │
    │                  │        │ missing / bad enum value             │
    │ NotFound         │  404   │ unknown id                           │
    │ InternalFailure  │  500   │ anything unexpected                  │
    └──────────────────┴────────┴──────────────────────────────────────┘

Every error reaches the client with the same JSON shape:

    {"error": true, "message": "User not found", "statusCode": 404}

Raised on an event-loop thread (synchronous validation) they are
answered immediately. Raised inside a blocking task they are answered
by the dispatcher, provided no response was written yet.

=============================================================================
"""

from typing import Any, Dict, Optional


def error_body(message: str, status_code: int) -> Dict[str, Any]:
    """Build the JSON body every error response carries."""
    return {"error": True, "message": message, "statusCode": int(status_code)}


class ApiError(Exception):
    """
    Base class for errors that map to an HTTP status.

    Attributes:
        message: Client-facing message.
        status_code: HTTP status to answer with.
    """

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return error_body(self.message, self.status_code)


class InvalidInput(ApiError):
    """Malformed body or missing/invalid field (400)."""

    status_code = 400


class NotFound(ApiError):
    """No entity with the requested id (404)."""

    status_code = 404


class InternalFailure(ApiError):
    """Unexpected failure while processing (500)."""

    status_code = 500

    def __init__(self, message: str = "Operation failed"):
        super().__init__(message)
