"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the API server: network, HTTP, the two
thread tiers (event loops and worker pools) and logging.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m offloadapi --workers 20                         │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── OFFLOAD_WORKER_POOL_SIZE=20 python -m offloadapi          │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE TWO THREAD TIERS
=============================================================================

    event_loop_threads        default_pool_size      worker_pool_size
    (accept + parse +         (shared blocking       (named blocking
     route, never block)       pool)                  pool)
          │                        ▲                      ▲
          └──── submit ────────────┴──────────────────────┘

Event-loop threads are few (2 per CPU). Worker pools are larger because
their threads spend most of their time sleeping on simulated I/O.

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def default_event_loop_threads() -> int:
    """Two event loops per CPU core."""
    return 2 * (os.cpu_count() or 1)


@dataclass
class ServerConfig:
    """
    Configuration for the API server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    HTTP SETTINGS
    - keep_alive, keep_alive_timeout, max_request_size

    THREADING SETTINGS
    - event_loop_threads, max_event_loop_execute_time
    - default_pool_size
    - worker_pool_name, worker_pool_size
    - max_execute_time, blocked_check_interval, task_queue_size

    APPLICATION
    - latency_scale

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """The IP address to bind to."""

    port: int = 8080
    """
    The port number to listen on.
    0 asks the OS for a free port (used by the test-suite).
    """

    backlog: int = 128
    """Maximum number of queued connections."""

    buffer_size: int = 8192
    """Size of the receive buffer in bytes."""

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds while a request is being read."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Enable HTTP keep-alive connections."""

    keep_alive_timeout: float = 5.0
    """Idle keep-alive connections are closed after this many seconds."""

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Maximum allowed request size in bytes (413 above)."""

    # ─────────────────────────────────────────────────────────────────────
    # THREADING SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    event_loop_threads: int = field(default_factory=default_event_loop_threads)
    """
    Number of request-accepting threads.
    These read, parse and route requests. They must never block.
    """

    max_event_loop_execute_time: float = 2.0
    """An event-loop task running longer than this is reported as blocked."""

    default_pool_size: int = 20
    """Size of the shared (default) blocking pool."""

    worker_pool_name: str = "worker-pool"
    """
    Base name of the dedicated blocking pool.
    Each server instance appends its instance id to it.
    """

    worker_pool_size: int = 10
    """Size of the dedicated blocking pool."""

    max_execute_time: float = 60.0
    """
    Seconds a blocking task may run before it is reported as blocked.
    A warning only: tasks are never interrupted.
    """

    blocked_check_interval: float = 1.0
    """How often (seconds) running tasks are checked against their limit."""

    task_queue_size: int = 1000
    """Pending-task capacity of each pool. A full queue answers 503."""

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────

    latency_scale: float = 1.0
    """
    Multiplier for the simulated I/O delays of the controllers.
    1.0 = realistic demo delays, 0 = no delay (tests).
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format: 'json' or 'text'."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "OffloadAPI/1.0"
    """Server name for the Server header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        OFFLOAD_HOST                Server host (default: 0.0.0.0)
        OFFLOAD_PORT                Server port (default: 8080)
        OFFLOAD_TIMEOUT             Request read timeout (default: 30)
        OFFLOAD_EVENT_LOOPS         Event-loop threads (default: 2 x CPUs)
        OFFLOAD_DEFAULT_POOL_SIZE   Default blocking pool (default: 20)
        OFFLOAD_WORKER_POOL_NAME    Named pool base name (default: worker-pool)
        OFFLOAD_WORKER_POOL_SIZE    Named pool size (default: 10)
        OFFLOAD_MAX_EXECUTE_TIME    Blocked-task warning, seconds (default: 60)
        OFFLOAD_LATENCY_SCALE       Simulated delay multiplier (default: 1.0)
        OFFLOAD_LOG_LEVEL           Logging level (default: INFO)
        OFFLOAD_LOG_FORMAT          text or json (default: text)

        =====================================================================
        """
        return cls(
            host=os.getenv("OFFLOAD_HOST", "0.0.0.0"),
            port=int(os.getenv("OFFLOAD_PORT", "8080")),
            timeout=float(os.getenv("OFFLOAD_TIMEOUT", "30")),
            event_loop_threads=int(
                os.getenv("OFFLOAD_EVENT_LOOPS", str(default_event_loop_threads()))
            ),
            default_pool_size=int(os.getenv("OFFLOAD_DEFAULT_POOL_SIZE", "20")),
            worker_pool_name=os.getenv("OFFLOAD_WORKER_POOL_NAME", "worker-pool"),
            worker_pool_size=int(os.getenv("OFFLOAD_WORKER_POOL_SIZE", "10")),
            max_execute_time=float(os.getenv("OFFLOAD_MAX_EXECUTE_TIME", "60")),
            latency_scale=float(os.getenv("OFFLOAD_LATENCY_SCALE", "1.0")),
            log_level=os.getenv("OFFLOAD_LOG_LEVEL", "INFO"),
            log_format=os.getenv("OFFLOAD_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Fails fast at startup with ValueError rather than misbehaving
        later under load.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.event_loop_threads < 1:
            raise ValueError("event_loop_threads must be >= 1")

        if self.default_pool_size < 1:
            raise ValueError("default_pool_size must be >= 1")

        if self.worker_pool_size < 1:
            raise ValueError("worker_pool_size must be >= 1")

        if not self.worker_pool_name:
            raise ValueError("worker_pool_name must not be empty")

        if self.task_queue_size < 1:
            raise ValueError("task_queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.max_execute_time <= 0 or self.max_event_loop_execute_time <= 0:
            raise ValueError("execute time limits must be > 0")

        if self.latency_scale < 0:
            raise ValueError("latency_scale must be >= 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format}. Must be text or json.")


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Type-safe configuration with dataclass
# 2. Environment variable support (OFFLOAD_*)
# 3. Validation at startup (fail-fast)
# 4. Defaults: 2 event loops per CPU,
#    20 shared workers, a 10-thread named pool, 60s blocked-task warning
# =============================================================================
