"""
=============================================================================
SELECTOR-BASED TCP SOCKET SERVER
=============================================================================

Accepts TCP connections and watches idle ones until they have something
to say. It never reads a request itself: a readable connection is handed
to the connection handler (the HTTP server), which runs it on an
event-loop thread.

=============================================================================
ACCEPTOR LOOP
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        acceptor thread                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   selector.select(timeout)                                           │
    │      │                                                               │
    │      ├── listening socket readable  → accept() → watch              │
    │      ├── wakeup socket readable     → register pending watch()es    │
    │      └── client socket readable     → unwatch → handler(conn)       │
    │                                                                      │
    │   close connections idle longer than their limit                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A connection is registered with the selector only while it is idle:

    accept ──► watched ──readable──► handler owns it ──► response sent
                  ▲                                          │
                  └──────────────── watch(conn) ◄────────────┘
                                  (keep-alive)

watch() may be called from any thread. It queues the connection and
writes one byte to a socketpair the selector also watches, so the
acceptor registers it on its next pass. The selector itself is only
ever touched by the acceptor thread.

=============================================================================
IDLE LIMITS
=============================================================================

    new connection, no request yet    → ServerConfig.timeout (30s)
    between keep-alive requests       → ServerConfig.keep_alive_timeout (5s)

=============================================================================
SIGNALS
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, kill) trigger shutdown().
Python only allows installing handlers from the main thread, so a server
started from any other thread (tests) skips them.

=============================================================================
"""

import selectors
import signal
import socket
import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


_LISTENER = "listener"
_WAKEUP = "wakeup"


class SocketServer:
    """
    TCP acceptor plus idle-connection watcher.

    Usage:
        def on_readable(conn: Connection):
            pool.submit(process, conn)     # read, route, respond

        server = SocketServer(config)
        server.start(on_readable)          # blocks until shutdown()

        # after the response, from any thread:
        server.watch(conn)
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._selector: Optional[selectors.BaseSelector] = None
        self._wakeup_r: Optional[socket.socket] = None
        self._wakeup_w: Optional[socket.socket] = None

        self._pending: Deque[Connection] = deque()
        self._pending_lock = threading.Lock()
        self._watched: Dict[int, Connection] = {}

        self._running = False
        self._ready = threading.Event()
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once listening on port 0."""
        if self._socket is not None:
            try:
                host, port = self._socket.getsockname()[:2]
                return (host, port)
            except OSError:
                pass
        return (self.config.host, self.config.port)

    @property
    def watched_connections(self) -> int:
        return len(self._watched)

    def _create_socket(self) -> socket.socket:
        """TCP socket with SO_REUSEADDR, SO_REUSEPORT and TCP_NODELAY."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except (AttributeError, OSError):
            pass  # Not available on Windows

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.setblocking(False)
        return sock

    # ─── Signals ─────────────────────────────────────────────────────────

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # ─── Lifecycle ───────────────────────────────────────────────────────

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the acceptor loop. Blocks until shutdown().

        Args:
            connection_handler: Called on the acceptor thread with each
                                connection that became readable. Must not
                                block.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)

        self._selector = selectors.DefaultSelector()
        self._wakeup_r, self._wakeup_w = socket.socketpair()
        self._wakeup_r.setblocking(False)
        self._wakeup_w.setblocking(False)
        self._selector.register(self._socket, selectors.EVENT_READ, _LISTENER)
        self._selector.register(self._wakeup_r, selectors.EVENT_READ, _WAKEUP)

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        self._ready.set()

        try:
            self._serve(connection_handler)
        finally:
            self._cleanup()

    def _serve(self, connection_handler: Callable[[Connection], None]):
        poll_interval = min(1.0, max(0.05, self.config.keep_alive_timeout / 2))

        while self._running:
            try:
                events = self._selector.select(timeout=poll_interval)
            except OSError as e:
                if self._running:
                    logger.error(f"Selector error: {e}")
                break

            for key, _ in events:
                if key.data == _LISTENER:
                    self._accept_all()
                elif key.data == _WAKEUP:
                    self._drain_wakeup()
                else:
                    conn = self._unwatch(key.data)
                    if conn is not None:
                        self._hand_off(conn, connection_handler)

            self._register_pending()
            self._close_idle()

    def _accept_all(self):
        """Accept every connection waiting in the backlog."""
        while True:
            try:
                client_socket, client_address = self._socket.accept()
            except (BlockingIOError, InterruptedError):
                return
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                return

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            self._register(conn)

    def _hand_off(self, conn: Connection, connection_handler: Callable[[Connection], None]):
        try:
            connection_handler(conn)
        except Exception as e:
            logger.error(f"[{conn.id}] Connection handler failed: {e}", exc_info=True)
            conn.close(drain=False)

    # ─── Watching ────────────────────────────────────────────────────────

    def watch(self, conn: Connection):
        """
        Watch conn for its next request. Safe from any thread.

        Connections handed in after shutdown are closed.
        """
        if not self._running:
            conn.close(drain=False)
            return

        with self._pending_lock:
            self._pending.append(conn)

        try:
            self._wakeup_w.send(b"\0")
        except (BlockingIOError, InterruptedError):
            pass  # a wakeup is already pending
        except (AttributeError, OSError):
            pass  # shutting down; _cleanup closes what is left

    def _register_pending(self):
        with self._pending_lock:
            pending = list(self._pending)
            self._pending.clear()

        for conn in pending:
            self._register(conn)

    def _register(self, conn: Connection):
        if conn.is_closed:
            return
        conn.last_activity = time.time()
        try:
            self._selector.register(conn.socket, selectors.EVENT_READ, conn)
        except (KeyError, ValueError, OSError) as e:
            logger.debug(f"[{conn.id}] Could not watch connection: {e}")
            conn.close(drain=False)
            return
        self._watched[conn.fileno()] = conn

    def _unwatch(self, conn: Connection) -> Optional[Connection]:
        try:
            fd = conn.fileno()
        except OSError:
            return None
        self._watched.pop(fd, None)
        try:
            self._selector.unregister(conn.socket)
        except (KeyError, ValueError, OSError):
            return None
        return conn

    def _drain_wakeup(self):
        try:
            while self._wakeup_r.recv(4096):
                pass
        except (BlockingIOError, InterruptedError):
            pass

    def _close_idle(self):
        """Close watched connections past their idle limit."""
        expired = [
            (fd, conn) for fd, conn in self._watched.items()
            if conn.is_closed or conn.idle_time > conn.idle_limit
        ]
        for fd, conn in expired:
            self._unwatch(conn)
            self._watched.pop(fd, None)
            if not conn.is_closed:
                logger.debug(f"[{conn.id}] Closing idle connection after {conn.idle_time:.1f}s")
                conn.close(drain=False)

    # ─── Shutdown ────────────────────────────────────────────────────────

    def shutdown(self):
        """Stop the acceptor loop. Idempotent, callable from any thread."""
        if not self._running:
            return
        logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()
        if self._wakeup_w is not None:
            try:
                self._wakeup_w.send(b"\0")
            except OSError:
                pass

    def _cleanup(self):
        self._running = False
        self._restore_signals()

        for conn in list(self._watched.values()):
            self._unwatch(conn)
            conn.close(drain=False)
        self._watched.clear()

        with self._pending_lock:
            pending = list(self._pending)
            self._pending.clear()
        for conn in pending:
            conn.close(drain=False)

        if self._selector is not None:
            self._selector.close()
            self._selector = None

        for sock in (self._socket, self._wakeup_r, self._wakeup_w):
            if sock is not None:
                try:
                    sock.close()
                except OSError:
                    pass
        self._socket = None
        self._wakeup_r = None
        self._wakeup_w = None

        self._ready.clear()
        self._shutdown_event.set()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is listening."""
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._shutdown_event.wait(timeout)
