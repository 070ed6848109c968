"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one client socket with buffered request reading, response writing
and the keep-alive bookkeeping the server needs.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

recv() returns whatever bytes have arrived, not whole requests:

    recv() → b"POST /api/users HTTP/1.1\r\nContent-Le"
    recv() → b"ngth: 39\r\n\r\n{\"name\": \"Al"
    recv() → b"ice\", \"email\": \"alice@x.com\"}"

read_request() buffers until it has the headers (\r\n\r\n), then reads
exactly Content-Length body bytes. Bytes past the end of the request
stay in the buffer for the next call (pipelining).

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
     │         │                          │             ▲       │
     │         │                          │             └───────┘
     │         ▼                          ▼          (next request)
     └──────► CLOSING ◄───────────────────┘
                 │
                 ▼
               CLOSED

PROCESSING covers the whole time a request is owned by handler code,
including the time its blocking task spends on a worker pool. The
socket server does not watch a connection in that state.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class RequestTooLarge(ValueError):
    """The buffered request exceeds max_request_size."""


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection id for log lines.
        state: Current connection state.
        created_at: When the connection was accepted.
        last_activity: Last read or write.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0             # first request
    keep_alive_timeout: float = 5.0   # between requests
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        # Blocking with a timeout: reads only start once the selector
        # reported the socket readable, the timeout bounds slow senders.
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    @property
    def idle_time(self) -> float:
        return time.time() - self.last_activity

    @property
    def idle_limit(self) -> float:
        """How long this connection may sit idle before it is closed."""
        return self.keep_alive_timeout if self.requests_handled else self.timeout

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    def has_buffered_request(self) -> bool:
        """True if a pipelined request's headers are already buffered."""
        return b"\r\n\r\n" in self._buffer

    def fileno(self) -> int:
        return self.socket.fileno()

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        ┌─────────────────────────────────────────────────────────────────┐
        │   1. recv() until the buffer holds \\r\\n\\r\\n                   │
        │   2. Content-Length from the raw header block                    │
        │   3. recv() until the body is complete                           │
        │   4. Cut the request off the buffer, keep the rest               │
        └─────────────────────────────────────────────────────────────────┘

        Returns:
            The request bytes, or None if the client closed the connection
            (or went quiet between keep-alive requests).

        Raises:
            TimeoutError: If the first request does not arrive in time.
            RequestTooLarge: If the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            header_section = self._buffer[:header_end]
            body_start = header_end + 4

            content_length = self._parse_content_length(header_section)

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # closed mid-body; the parser reports it
                self._buffer += chunk
                self._check_size()

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if not self.is_closed:
                try:
                    self.socket.settimeout(self.timeout)
                except OSError:
                    pass

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise RequestTooLarge(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        """recv() that reports a reset connection as closed."""
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """Content-Length from raw header bytes, 0 if absent or invalid."""
        try:
            header_str = headers.decode("utf-8", errors="replace").lower()
            for line in header_str.split("\r\n"):
                if line.startswith("content-length:"):
                    return max(0, int(line.split(":", 1)[1].strip()))
        except (ValueError, IndexError):
            pass
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a full response with sendall().

        Returns:
            True if sent, False if the client is gone.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self, drain: bool = True):
        """
        Close the connection.

        shutdown(SHUT_WR) sends FIN, then unread client data is drained
        (briefly) and the descriptor released. Idle connections are
        closed with drain=False: they hold nothing worth waiting for.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        if drain:
            try:
                self.socket.settimeout(0.5)
                while self.socket.recv(1024):
                    pass
            except OSError:
                pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def set_keep_alive(self):
        """Response sent, waiting for the next request."""
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
