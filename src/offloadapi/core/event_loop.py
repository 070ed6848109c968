"""
=============================================================================
EVENT LOOP GROUP
=============================================================================

The request-accepting threads. Each readable connection is handed to one
of them; it reads the request, parses it, runs middleware and routing,
and returns. Anything slow is pushed to a worker pool through the
dispatcher.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ──readable conn──► EventLoopGroup                    │
    │                                      │                               │
    │                     eventloop-thread-0 .. eventloop-thread-(2N-1)   │
    │                                      │                               │
    │                        read → parse → middleware → route            │
    │                                      │                               │
    │                        dispatcher ──► worker pool                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

An event-loop thread that stays busy longer than
max_event_loop_execute_time is reported by the blocked-thread checker,
the same way a worker pool reports a stuck task, only with a much
shorter limit.

=============================================================================
"""

import threading
from typing import Optional

from .thread_pool import ThreadPool
from ..config import ServerConfig


EVENT_LOOP_PREFIX = "eventloop-thread"


def current_thread_name() -> str:
    return threading.current_thread().name


def is_event_loop_thread(name: Optional[str] = None) -> bool:
    """True if name (default: the current thread) is an event-loop thread."""
    if name is None:
        name = current_thread_name()
    return name.startswith(f"{EVENT_LOOP_PREFIX}-")


class EventLoopGroup(ThreadPool):
    """
    Thread pool that runs connection handling.

    Usage:
        loops = EventLoopGroup.from_config(config).start()
        loops.submit(process_connection, conn)
    """

    def __init__(
        self,
        size: int,
        queue_size: int = 1000,
        max_execute_time: float = 2.0,
        check_interval: float = 1.0,
    ):
        super().__init__(
            EVENT_LOOP_PREFIX,
            size=size,
            queue_size=queue_size,
            max_execute_time=max_execute_time,
            check_interval=check_interval,
        )

    @classmethod
    def from_config(cls, config: ServerConfig) -> "EventLoopGroup":
        return cls(
            size=config.event_loop_threads,
            queue_size=config.task_queue_size,
            max_execute_time=config.max_event_loop_execute_time,
            check_interval=config.blocked_check_interval,
        )
