"""
=============================================================================
OFFLOADAPI - Users & Orders API with Blocking-Work Offloading
=============================================================================

A small JSON API over an HTTP/1.1 server built on raw sockets. Its point
is the threading model: a few event-loop threads accept and route
requests and never block, while every store access, simulated I/O delay
and CPU-heavy calculation runs on a worker pool.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   1. HTTP SERVER                                                    │
    │      - selector-based acceptor, keep-alive connections              │
    │      - HTTP/1.1 request parsing and response building              │
    │                                                                      │
    │   2. EVENT LOOPS + WORKER POOLS                                     │
    │      - eventloop-thread-N: read, parse, route                       │
    │      - worker-thread-N and a named pool: blocking tasks             │
    │      - blocked-thread warnings                                      │
    │                                                                      │
    │   3. API                                                            │
    │      - /api/users, /api/orders (in-memory stores)                   │
    │      - /health, /thread-info, /verticle-info, /thread-stats         │
    │      - CORS on every response, one JSON error shape                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    offloadapi/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m offloadapi)
    ├── app.py               # create_app(): the wired API
    ├── server.py            # HTTPServer orchestrator
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # ApiError taxonomy
    ├── models.py            # User, Order, OrderItem, OrderStatus
    ├── store.py             # Thread-safe EntityStore + seed data
    ├── core/                # Sockets, connections, pools, dispatcher
    ├── http/                # Request, response, context, router
    ├── middleware/          # CORS, access logging
    ├── controllers/         # Users, orders, registry
    └── handlers/            # Monitoring endpoints

=============================================================================
QUICK START
=============================================================================

    from offloadapi import ServerConfig, create_app

    server = create_app(ServerConfig(port=8080))
    server.run()

Or from the command line:

    python -m offloadapi --port 8080 --workers 10

=============================================================================
"""

from .app import create_app
from .config import ServerConfig
from .errors import ApiError, InternalFailure, InvalidInput, NotFound
from .server import HTTPServer

__version__ = "1.0.0"

__all__ = [
    "create_app",
    "HTTPServer",
    "ServerConfig",
    "ApiError",
    "InvalidInput",
    "NotFound",
    "InternalFailure",
    "__version__",
]
