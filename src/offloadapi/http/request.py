"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects
(RFC 7230 message syntax).

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ PUT /api/orders/order-1/status HTTP/1.1\r\n     ← Request line      │
    │ Host: localhost:8080\r\n                        ← Headers           │
    │ Content-Type: application/json\r\n                                  │
    │ Content-Length: 21\r\n                                              │
    │ \r\n                                            ← Blank line        │
    │ {"status": "shipped"}                           ← Body              │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
JSON BODIES
=============================================================================

Every write endpoint of the API takes a JSON object. The body is decoded
with parse_float=Decimal so prices keep their exact decimal value:

    {"unitPrice": 29.99}  →  {"unitPrice": Decimal("29.99")}

HTTPRequest.json raises on malformed JSON. HTTPRequest.json_object()
is the lenient variant handlers use: anything that is not a JSON object
(malformed, empty, a list, a number) comes back as None, which the
handlers answer with 400.

=============================================================================
"""

import json
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Dict, Any
from urllib.parse import urlparse, parse_qs, unquote


logger = logging.getLogger(__name__)


class HTTPParseError(Exception):
    """
    Raised when an HTTP request cannot be parsed.

    Carries the HTTP status the server should answer with:
    400 for malformed requests, 405 for unknown methods, 413 for
    oversized requests and 505 for unsupported HTTP versions.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code  # HTTP status to return


def _reject_constant(token: str):
    raise ValueError(f"{token} is not a valid JSON number")


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         GET, POST, PUT, DELETE, OPTIONS, ...
        path:           Request path WITHOUT query string
        version:        "HTTP/1.1" or "HTTP/1.0" (affects keep-alive)
        headers:        Header dict with LOWERCASE keys
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw body bytes (Content-Length bytes)
        client_address: (ip, port) of the client
        raw:            The original unparsed request bytes

    Path parameters (":id") live on the RequestContext, not here: the
    request is what the client sent, the context is what the server
    made of it.

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)
    raw: bytes = b""

    _body_json: Optional[Any] = field(default=None, repr=False)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def uri(self) -> str:
        """Path plus query string, as the client sent it."""
        if not self.query_params:
            return self.path
        query = "&".join(
            f"{name}={value}"
            for name, values in self.query_params.items()
            for value in values
        )
        return f"{self.path}?{query}"

    @property
    def json(self) -> Any:
        """
        Parse the request body as JSON (cached).

        Floats are decoded as Decimal. NaN and Infinity are not JSON and
        are rejected like any other syntax error.

        Raises:
            HTTPParseError: If the body is not valid JSON.
        """
        if self._body_json is None and self.body:
            try:
                self._body_json = json.loads(
                    self.body.decode("utf-8"),
                    parse_float=Decimal,
                    parse_constant=_reject_constant,
                )
            except (ValueError, UnicodeDecodeError) as e:
                raise HTTPParseError(f"Invalid JSON body: {e}")
        return self._body_json

    def json_object(self) -> Optional[Dict[str, Any]]:
        """
        The body as a JSON object, or None if it is anything else.

        Never raises: an unparsable body is logged and reported as None.
        """
        try:
            data = self.json
        except HTTPParseError as e:
            logger.warning(f"Invalid JSON in request body: {e}")
            return None
        return data if isinstance(data, dict) else None

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if this connection should be kept alive.

        HTTP/1.1 keeps alive unless "Connection: close".
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    REGEX PATTERNS
    ==========================================================================

    REQUEST_LINE_PATTERN: ^([A-Z]+) ([^ ]+) (HTTP/\\d\\.\\d)$
        METHOD SP REQUEST-URI SP HTTP-VERSION

    HEADER_PATTERN: ^([^:]+):\\s*(.*)$
        field-name ":" OWS field-value

    ==========================================================================
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Maximum allowed request size in bytes.
                              Larger requests are rejected with 413.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        =====================================================================
        PARSING ALGORITHM
        =====================================================================

        1. Check size limit
        2. Split at \\r\\n\\r\\n into header section and body
        3. Parse request line (first line)
        4. Parse remaining lines as headers
        5. Cut body to Content-Length

        =====================================================================

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        if not lines or not lines[0]:
            raise HTTPParseError("Empty request")

        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(
                f"Invalid Content-Length: {headers.get('content-length')}"
            ) from None
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {content_length}")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        # Anything past Content-Length belongs to the next request
        body = body[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Parse "METHOD URI VERSION".

        Returns:
            Tuple of (method, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        - Continuation lines (leading whitespace) extend the previous header
        - Repeated headers are joined with ", "
        - Malformed lines are skipped
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers
