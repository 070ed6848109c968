"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses (RFC 7230) for the API.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ HTTP/1.1 404 Not Found\r\n                        ← Status line     │
    │ Content-Type: application/json; charset=utf-8\r\n ← Headers         │
    │ Content-Length: 59\r\n                                              │
    │ Access-Control-Allow-Origin: *\r\n                                  │
    │ Date: Mon, 19 Oct 2026 12:00:00 GMT\r\n                             │
    │ Server: OffloadAPI/1.0\r\n                                          │
    │ \r\n                                              ← Blank line      │
    │ {"error":true,"message":"User not found","statusCode":404}          │
    └─────────────────────────────────────────────────────────────────────┘

Content-Length, Date and Server are filled in by to_bytes() when the
handler did not set them.

=============================================================================
JSON ENCODING
=============================================================================

Bodies are encoded with json_default as the fallback encoder:

    Decimal("63.99")           →  63.99
    datetime(2026, 10, 19, …)  →  "2026-10-19T12:00:00.123456"

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any, Union
import json

from .status_codes import HTTPStatus
from ..errors import error_body


JSON_CONTENT_TYPE = "application/json; charset=utf-8"


def json_default(value: Any) -> Any:
    """
    Fallback encoder for json.dumps.

    Decimal becomes a JSON number, datetime/date an ISO-8601 string.

    Decimals are written through float(), so a value is exact on the wire
    only up to about 15 significant digits. Totals are kept exact in the
    store; clients that need more digits must not rely on the JSON form.
    """
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_json(data: Any) -> bytes:
    """Encode a body; NaN and Infinity raise ValueError instead of producing invalid JSON."""
    return json.dumps(
        data, ensure_ascii=False, allow_nan=False, default=json_default
    ).encode("utf-8")


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        ctx.json(data)     to_bytes()             Connection.send()
        HTTPResponse ───►  serializes     ───►    raw bytes on the
            │              status+headers         client socket
            │              +body
        HTTPResponse(
          status=200,
          headers={...},
          body=b"..."
        )

    =========================================================================
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """"HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def json_body(self) -> Any:
        """Decode the body as JSON (used by tests and diagnostics)."""
        if not self.body:
            return None
        return json.loads(self.body.decode("utf-8"))

    def to_bytes(self, server_name: str = "OffloadAPI/1.0") -> bytes:
        """
        Serialize the response for socket.sendall().

        =====================================================================
        SERIALIZATION FORMAT
        =====================================================================

            HTTP/1.1 200 OK\\r\\n             ← Status line
            Content-Type: ...\\r\\n
            Content-Length: 27\\r\\n          ← Auto-calculated
            Date: Mon, 19 Oct 2026 ...\\r\\n  ← Auto-added
            Server: OffloadAPI/1.0\\r\\n      ← Auto-added
            \\r\\n
            {"status":"UP",...}              ← Body bytes

        =====================================================================
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .json(user.to_dict())
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: Union[HTTPStatus, int]) -> "ResponseBuilder":
        self._status = HTTPStatus.coerce(status)
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Set a JSON body and Content-Type.

        Decimal and datetime values are handled by json_default.
        """
        self._body = encode_json(data)
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always GMT.

    Example: Mon, 19 Oct 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def json_response(data: Any, status: Union[HTTPStatus, int] = HTTPStatus.OK) -> HTTPResponse:
    """JSON response with the given status (200 by default)."""
    return ResponseBuilder().status(status).json(data).build()


def error_response(status: Union[HTTPStatus, int], message: str) -> HTTPResponse:
    """
    Error response in the API's one error shape:

        {"error": true, "message": "...", "statusCode": 404}
    """
    code = HTTPStatus.coerce(status)
    return json_response(error_body(message, code), code)


def no_content() -> HTTPResponse:
    """204 with an empty body (CORS preflight)."""
    return ResponseBuilder().status(HTTPStatus.NO_CONTENT).build()
