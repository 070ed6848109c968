"""
Unit tests for HTTP request parsing.
"""

from decimal import Decimal

import pytest

from offloadapi.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/api/users"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = RequestParser().parse(sample_get_request)

        assert request.headers["host"] == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.is_keep_alive is True

    def test_parse_query_params(self, sample_get_request: bytes):
        """Test query parameter parsing."""
        request = RequestParser().parse(sample_get_request)

        assert request.query_params == {"page": ["1"], "limit": ["10"]}
        assert request.uri == "/api/users?page=1&limit=10"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """Test parsing POST request with JSON body."""
        request = RequestParser().parse(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/api/users"
        assert request.headers["content-type"] == "application/json"
        assert request.is_keep_alive is False

        json_body = request.json
        assert json_body["name"] == "John"
        assert json_body["email"] == "john@example.com"

    def test_parse_path_with_special_chars(self):
        """Test URL-encoded path parsing."""
        raw = b"GET /api/users/John%20Doe?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n"
        request = RequestParser().parse(raw)

        assert request.path == "/api/users/John Doe"
        assert request.query_params["q"] == ["hello world"]

    def test_parse_invalid_method(self):
        """Test that invalid methods are rejected with 405."""
        raw = b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(raw)

        assert exc_info.value.status_code == 405

    def test_parse_unsupported_version(self):
        """Test that HTTP/2.0 in a request line is answered with 505."""
        raw = b"GET / HTTP/2.0\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(raw)

        assert exc_info.value.status_code == 505

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(raw)

        assert exc_info.value.status_code == 400

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        raw = b"GET / HTTP/1.1\r\n\r\n"
        request = RequestParser().parse(raw)

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_version_parsing(self):
        """Test HTTP/1.0 and HTTP/1.1 version handling."""
        raw_10 = b"GET / HTTP/1.0\r\nHost: test\r\n\r\n"
        request_10 = RequestParser().parse(raw_10)
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        raw_11 = b"GET / HTTP/1.1\r\nHost: test\r\n\r\n"
        request_11 = RequestParser().parse(raw_11)
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is True

    def test_content_length_handling(self):
        """Test Content-Length validation."""
        body = b"test body"
        raw = (
            b"POST / HTTP/1.1\r\n"
            b"Content-Length: 9\r\n"
            b"\r\n"
        ) + body

        request = RequestParser().parse(raw)
        assert request.body == body

    def test_pipelined_bytes_are_not_part_of_the_body(self):
        """Test that bytes past Content-Length are cut off."""
        raw = (
            b"POST / HTTP/1.1\r\n"
            b"Content-Length: 2\r\n"
            b"\r\n"
            b"{}GET / HTTP/1.1\r\n\r\n"
        )

        assert RequestParser().parse(raw).body == b"{}"

    def test_incomplete_body_rejected(self):
        """Test that a body shorter than Content-Length is a 400."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: 50\r\n\r\nshort"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(raw)

        assert exc_info.value.status_code == 400

    def test_invalid_content_length_rejected(self):
        """Test that a non-numeric Content-Length is a 400."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: abc\r\n\r\n"

        with pytest.raises(HTTPParseError):
            RequestParser().parse(raw)

    def test_case_insensitive_headers(self):
        """Test that header names are case-insensitive."""
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n"
        request = RequestParser().parse(raw)

        assert request.headers == {"content-type": "text/html"}

    def test_repeated_headers_joined(self):
        """Test that repeated headers are combined."""
        raw = b"GET / HTTP/1.1\r\nAccept: a\r\nAccept: b\r\n\r\n"

        assert RequestParser().parse(raw).headers["accept"] == "a, b"


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_uri_includes_query(self):
        request = HTTPRequest(method="GET", path="/api/users", query_params={"page": ["1"]})

        assert request.uri == "/api/users?page=1"
        assert HTTPRequest(method="GET", path="/").uri == "/"

    def test_json_floats_are_decimal(self):
        """Test that JSON numbers with a fraction decode as Decimal."""
        request = HTTPRequest(method="POST", path="/", body=b'{"unitPrice": 29.99, "quantity": 2}')

        body = request.json
        assert body["unitPrice"] == Decimal("29.99")
        assert body["quantity"] == 2

    def test_invalid_json_raises(self):
        """Test that .json raises HTTPParseError for a broken body."""
        request = HTTPRequest(method="POST", path="/", body=b"{not json")

        with pytest.raises(HTTPParseError):
            request.json

    def test_json_object_never_raises(self):
        """Test json_object(): dict bodies only, None for anything else."""
        assert HTTPRequest(method="POST", path="/", body=b'{"a": 1}').json_object() == {"a": 1}
        assert HTTPRequest(method="POST", path="/", body=b"{broken").json_object() is None
        assert HTTPRequest(method="POST", path="/", body=b"[1, 2]").json_object() is None
        assert HTTPRequest(method="POST", path="/").json_object() is None

    @pytest.mark.parametrize("token", [b"NaN", b"Infinity", b"-Infinity"])
    def test_non_finite_numbers_rejected(self, token):
        """Test that NaN and Infinity are not accepted as JSON numbers."""
        request = HTTPRequest(method="POST", path="/", body=b'{"unitPrice": ' + token + b"}")

        with pytest.raises(HTTPParseError):
            request.json
        assert request.json_object() is None
