"""
pytest configuration and fixtures.
"""

import http.client
import json
import socket
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generator, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from offloadapi import HTTPServer, ServerConfig, create_app
from offloadapi.core import BlockingTaskDispatcher, ThreadPool
from offloadapi.http import HTTPRequest, HTTPResponse, RequestContext, Router


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "John", "email": "john@example.com"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Small, fast test configuration: no simulated latency, OS-picked port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        timeout=5.0,
        event_loop_threads=2,
        default_pool_size=4,
        worker_pool_size=4,
        blocked_check_interval=0.1,
        latency_scale=0.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


# =============================================================================
# REQUEST CONTEXTS WITHOUT A SERVER
# =============================================================================

def make_request(
    method: str,
    path: str,
    body: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> HTTPRequest:
    """Build a parsed request; dict/list bodies are JSON-encoded."""
    if body is None:
        raw_body = b""
    elif isinstance(body, bytes):
        raw_body = body
    elif isinstance(body, str):
        raw_body = body.encode("utf-8")
    else:
        raw_body = json.dumps(body).encode("utf-8")

    request_headers = {k.lower(): v for k, v in (headers or {}).items()}
    if raw_body:
        request_headers.setdefault("content-type", "application/json")
        request_headers["content-length"] = str(len(raw_body))

    return HTTPRequest(
        method=method,
        path=path,
        headers=request_headers,
        body=raw_body,
        client_address=("127.0.0.1", 54321),
    )


def make_context(method: str, path: str, body: Any = None, **kwargs) -> RequestContext:
    return RequestContext(make_request(method, path, body, **kwargs))


@pytest.fixture
def context_factory() -> Callable[..., RequestContext]:
    """make_context(method, path, body=None, headers=None)."""
    return make_context


@pytest.fixture
def pools() -> Generator[Tuple[ThreadPool, ThreadPool], None, None]:
    """Started (default, named) worker pools."""
    default_pool = ThreadPool("worker-thread", size=2, check_interval=0.1).start()
    worker_pool = ThreadPool("worker-pool-test", size=4, check_interval=0.1).start()

    yield default_pool, worker_pool

    worker_pool.shutdown(wait=False)
    default_pool.shutdown(wait=False)


@pytest.fixture
def dispatcher(pools) -> BlockingTaskDispatcher:
    """Dispatcher without an event loop: completions run inline."""
    default_pool, worker_pool = pools
    return BlockingTaskDispatcher(default_pool, worker_pool)


@pytest.fixture
def router() -> Router:
    return Router()


@pytest.fixture
def call(router: Router) -> Callable[..., HTTPResponse]:
    """
    Route a request through router and wait for its single response.

        response = call("GET", "/api/users/1")
        response.json_body()["name"]
    """
    def _call(method: str, path: str, body: Any = None, timeout: float = 5.0, **kwargs) -> HTTPResponse:
        ctx = make_context(method, path, body, **kwargs)
        router.handle(ctx)
        response = ctx.wait(timeout)
        assert response is not None, f"No response for {method} {path}"
        return response

    return _call


# =============================================================================
# REAL SERVER IN A BACKGROUND THREAD
# =============================================================================

@dataclass
class ApiResponse:
    status: int
    headers: Dict[str, str]
    body: Any


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        """One request on a fresh connection; JSON bodies are decoded."""
        request_headers = dict(headers or {})
        payload = None
        if body is not None:
            payload = body if isinstance(body, (bytes, str)) else json.dumps(body)
            request_headers.setdefault("Content-Type", "application/json")

        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=10)
        try:
            conn.request(method, path, body=payload, headers=request_headers)
            response = conn.getresponse()
            data = response.read()
            response_headers = {k.lower(): v for k, v in response.getheaders()}
        finally:
            conn.close()

        decoded = json.loads(data) if data else None
        return ApiResponse(response.status, response_headers, decoded)

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """The full API on an OS-picked port."""
    test_srv = TestServer(create_app(config))
    test_srv.start()

    yield test_srv

    test_srv.stop()
