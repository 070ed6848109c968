"""
=============================================================================
API SERVER
=============================================================================

The orchestrator that ties the components together: the socket server,
the event-loop group, the two blocking pools, the dispatcher, the
middleware pipeline and the router.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         API SERVER                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │       ┌──────────────┬──────────┴───────┬──────────────────┐        │
    │       ▼              ▼                  ▼                  ▼        │
    │ ┌────────────┐ ┌──────────────┐ ┌──────────────┐ ┌──────────────┐  │
    │ │SocketServer│ │EventLoopGroup│ │  Dispatcher  │ │    Router    │  │
    │ │ (accept,   │ │ (read, parse,│ │ ┌──────────┐ │ │ controllers, │  │
    │ │  idle      │ │  route)      │ │ │ default  │ │ │ monitoring   │  │
    │ │  watch)    │ │              │ │ │ named    │ │ │              │  │
    │ └────────────┘ └──────────────┘ │ └──────────┘ │ └──────────────┘  │
    │                                 └──────────────┘                    │
    │                                                                      │
    │           ┌─────────────────────────────────────────┐               │
    │           │         Middleware Pipeline             │               │
    │           │        CORS → Logging → Router          │               │
    │           └─────────────────────────────────────────┘               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. CLIENT CONNECTS
       └── SocketServer accepts, watches the socket until readable

    2. EVENT LOOP
       └── Readable connection submitted to an eventloop-thread

    3. READ + PARSE (event-loop thread)
       └── Connection.read_request → RequestParser → RequestContext

    4. MIDDLEWARE + ROUTE (event-loop thread)
       └── CORS → Logging → router.handle(ctx) → controller handler

    5. OFFLOAD
       └── Handler validates, submits its task, returns

    6. BLOCKING WORK (worker thread)
       └── Store access, simulated latency, ctx.json(...)

    7. SEND RESPONSE (whichever thread ended the context)
       └── Connection headers added, bytes sent

    8. KEEP-ALIVE OR CLOSE
       └── watch(conn) for the next request, or close

=============================================================================
"""

import logging
import uuid
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .controllers.registry import ControllerRegistry
from .core import (
    BlockingTaskDispatcher, Connection, EventLoopGroup, RejectedTask,
    RequestTooLarge, SocketServer, ThreadPool,
)
from .core.dispatcher import FAILED_MESSAGE, UNAVAILABLE_MESSAGE
from .http import (
    HTTPParseError, HTTPResponse, HTTPStatus, RequestContext, RequestParser,
    Router, error_response,
)
from .middleware import CORSMiddleware, Middleware, MiddlewarePipeline


logger = logging.getLogger(__name__)


DEFAULT_POOL_NAME = "worker-thread"


class HTTPServer:
    """
    Multi-threaded HTTP/1.1 API server.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(port=8080))
        server.use(CORSMiddleware())
        server.use(LoggingMiddleware())

        UserController(server.dispatcher).setup_routes(server.router)

        server.run()        # blocks until SIGINT/SIGTERM or shutdown()

    create_app() in offloadapi.app does all of this for the API.

    =========================================================================
    THREADS
    =========================================================================

        MainThread                 acceptor loop (SocketServer)
        eventloop-thread-N         request read, parse, route
        worker-thread-N            default blocking pool
        <pool name>-<id>-N         named blocking pool
        blocked-thread-checker     one per pool

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults are used if omitted.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        # Identity of this server instance, also part of the named pool's name
        self.instance_id = uuid.uuid4().hex[:8]
        self.worker_pool_name = f"{self.config.worker_pool_name}-{self.instance_id}"

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._socket_server = SocketServer(self.config)

        self._event_loop = EventLoopGroup.from_config(self.config)

        self._default_pool = ThreadPool(
            DEFAULT_POOL_NAME,
            size=self.config.default_pool_size,
            queue_size=self.config.task_queue_size,
            max_execute_time=self.config.max_execute_time,
            check_interval=self.config.blocked_check_interval,
        )

        self._worker_pool = ThreadPool(
            self.worker_pool_name,
            size=self.config.worker_pool_size,
            queue_size=self.config.task_queue_size,
            max_execute_time=self.config.max_execute_time,
            check_interval=self.config.blocked_check_interval,
        )

        self.dispatcher = BlockingTaskDispatcher(
            self._default_pool,
            self._worker_pool,
            self._event_loop,
        )

        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._router = Router()
        self._middleware = MiddlewarePipeline()
        self.registry = ControllerRegistry()

        # ─────────────────────────────────────────────────────────────────
        # RUNTIME STATE
        # ─────────────────────────────────────────────────────────────────

        # middleware.wrap(router.handle), built in run()
        self._handler: Optional[Callable[[RequestContext], None]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION METHODS
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware. The first added runs first."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port), with the real port when config.port is 0."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pools(self) -> Tuple[ThreadPool, ThreadPool, ThreadPool]:
        """(event loops, default pool, named pool)."""
        return (self._event_loop, self._default_pool, self._worker_pool)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server and block until it is shut down.

        Stops on SIGINT/SIGTERM (when run on the main thread) or when
        shutdown() is called from another thread.
        """
        self._setup_logging()

        self._handler = self._middleware.wrap(self._router.handle)

        self._worker_pool.start()
        self._default_pool.start()
        self._event_loop.start()
        self._running = True

        logger.info(f"Starting {self.config.server_name} instance {self.instance_id}")
        logger.info(
            f"Event loops: {self._event_loop.size}, "
            f"default pool: {self._default_pool.size} threads, "
            f"worker pool '{self.worker_pool_name}': {self._worker_pool.size} threads, "
            f"{len(self._router)} routes"
        )
        if logger.isEnabledFor(logging.DEBUG):
            self._router.print_routes()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask a running server to stop. Safe from any thread."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server accepts connections."""
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("offloadapi").setLevel(level)

    def _shutdown(self):
        """
        Graceful shutdown.

        =====================================================================
        GRACEFUL SHUTDOWN PROCESS
        =====================================================================

        1. Socket server has stopped accepting (run() got here)
        2. Worker pools drain their queued tasks (with timeout)
        3. Event loops drain, finishing the responses of those tasks
        4. Log shutdown complete

        =====================================================================
        """
        logger.info("Shutting down server...")
        self._running = False

        self._worker_pool.shutdown(wait=True, timeout=30.0)
        self._default_pool.shutdown(wait=True, timeout=30.0)
        self._event_loop.shutdown(wait=True, timeout=10.0)

        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Hand a readable connection to the event loops.

        Called by the socket server, or by a responder when a pipelined
        request is already buffered.
        """
        try:
            self._event_loop.submit(self._process_connection, conn)
        except RejectedTask:
            logger.warning(f"[{conn.id}] Event loops saturated, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, UNAVAILABLE_MESSAGE)

    def _process_connection(self, conn: Connection):
        """
        Read, parse and dispatch one request (event-loop thread).

        Returns once the handler has returned, which for offloaded work is
        long before the response exists. The responder finishes the job.
        """
        # ─────────────────────────────────────────────────────────────────
        # READ REQUEST
        # ─────────────────────────────────────────────────────────────────
        try:
            raw_request = conn.read_request()
        except TimeoutError:
            self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request Timeout")
            return
        except RequestTooLarge as e:
            self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
            return
        except OSError as e:
            logger.debug(f"[{conn.id}] Read failed: {e}")
            conn.close(drain=False)
            return

        if raw_request is None:
            # Client closed, or went quiet between keep-alive requests
            conn.close(drain=False)
            return

        # ─────────────────────────────────────────────────────────────────
        # PARSE REQUEST
        # ─────────────────────────────────────────────────────────────────
        try:
            request = self._parser.parse(raw_request, conn.address)
        except HTTPParseError as e:
            self._send_error(conn, e.status_code, str(e))
            return

        # ─────────────────────────────────────────────────────────────────
        # PROCESS REQUEST (Middleware + Router)
        # ─────────────────────────────────────────────────────────────────
        keep_alive = self.config.keep_alive and request.is_keep_alive

        def responder(ctx: RequestContext, response: HTTPResponse):
            self._respond(conn, response, keep_alive)

        ctx = RequestContext(request, responder)

        try:
            self._handler(ctx)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            if not ctx.fail(HTTPStatus.INTERNAL_SERVER_ERROR, FAILED_MESSAGE):
                logger.warning(f"[{conn.id}] Handler failed after responding")

    def _respond(self, conn: Connection, response: HTTPResponse, keep_alive: bool):
        """Send response, then keep the connection for the next request or close it."""
        if keep_alive and self._running:
            response.headers.setdefault("Connection", "keep-alive")
            response.headers.setdefault(
                "Keep-Alive",
                f"timeout={int(self.config.keep_alive_timeout)}"
            )
        else:
            response.headers["Connection"] = "close"

        if not conn.send_response(response.to_bytes(self.config.server_name)):
            conn.close(drain=False)
            return

        if response.headers.get("Connection") == "close":
            conn.close()
            return

        conn.set_keep_alive()
        if conn.has_buffered_request():
            # Pipelined request already read: the selector will not fire for it
            self._handle_connection(conn)
        else:
            self._socket_server.watch(conn)

    def _send_error(self, conn: Connection, status: int, message: str):
        """Send an error response outside any request context and close."""
        response = error_response(status, message)
        for middleware in self._middleware:
            if isinstance(middleware, CORSMiddleware):
                response.headers.update(middleware.cors_headers())
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))
        conn.close()
