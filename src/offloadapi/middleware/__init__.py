"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request processing that runs before the router:

    ┌─────────────────────────────────────────────────────────────────────┐
    │   ctx                                                                │
    │    │                                                                 │
    │    ▼                                                                 │
    │   CORSMiddleware     ──► CORS headers on every response, OPTIONS 204 │
    │    │                                                                 │
    │    ▼                                                                 │
    │   LoggingMiddleware  ──► request trace, access line, X-Request-ID    │
    │    │                                                                 │
    │    ▼                                                                 │
    │   router.handle(ctx)                                                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .base import (
    Middleware,
    MiddlewarePipeline,
    NextHandler,
)
from .cors import CORSMiddleware, CORSConfig
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "CORSMiddleware",
    "CORSConfig",
    "LoggingMiddleware",
    "RequestLog",
]
