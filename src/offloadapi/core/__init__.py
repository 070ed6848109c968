"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking and threading infrastructure under the API:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Creates the listening TCP socket and accepts connections         │
    │  • Watches idle keep-alive connections with a selector              │
    │  • Handles graceful shutdown via signals (SIGTERM, SIGINT)         │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ Hands off readable connections
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                        EVENT LOOP GROUP                              │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • eventloop-thread-N, two per CPU                                  │
    │  • Reads, parses and routes one request, never blocks               │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ Submits blocking work
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                   DISPATCHER + WORKER POOLS                          │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • worker-thread-N (default) and <pool name>-<id>-N (named)         │
    │  • Runs store access, simulated latency and CPU work                │
    │  • Maps task failures onto error responses                          │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLarge
from .thread_pool import ThreadPool, RejectedTask
from .event_loop import EventLoopGroup, current_thread_name, is_event_loop_thread
from .dispatcher import BlockingTaskDispatcher

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
    "ThreadPool",
    "RejectedTask",
    "EventLoopGroup",
    "current_thread_name",
    "is_event_loop_thread",
    "BlockingTaskDispatcher",
]
