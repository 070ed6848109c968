"""
=============================================================================
CORS MIDDLEWARE
=============================================================================

Cross-Origin Resource Sharing headers on every response, including
errors and 404s, plus the answer to browser preflight requests.

=============================================================================
PREFLIGHT
=============================================================================

Before a cross-origin PUT or DELETE, or any request with a JSON body,
the browser asks first:

    ┌─────────┐  OPTIONS /api/orders/order-1/status         ┌─────────┐
    │ Browser │  Origin: https://app.example                │ Server  │
    │         │  Access-Control-Request-Method: PUT         │         │
    │         │ ──────────────────────────────────────────► │         │
    │         │                                              │         │
    │         │  204 No Content                              │         │
    │         │  Access-Control-Allow-Origin: *              │         │
    │         │  Access-Control-Allow-Methods: GET, POST,    │         │
    │         │      PUT, DELETE, OPTIONS                    │         │
    │         │  Access-Control-Allow-Headers: Content-Type, │         │
    │         │      Authorization                           │         │
    │         │ ◄────────────────────────────────────────── │         │
    └─────────┘                                              └─────────┘

OPTIONS never reaches the router: any path answers 204.

=============================================================================
CORS HEADERS
=============================================================================

    ┌─────────────────────────────────┬───────────────────────────────────┐
    │ Header                          │ Value                             │
    ├─────────────────────────────────┼───────────────────────────────────┤
    │ Access-Control-Allow-Origin     │ *                                 │
    │ Access-Control-Allow-Methods    │ GET, POST, PUT, DELETE, OPTIONS   │
    │ Access-Control-Allow-Headers    │ Content-Type, Authorization       │
    └─────────────────────────────────┴───────────────────────────────────┘

=============================================================================
"""

from typing import Dict, List, Optional
from dataclasses import dataclass, field

from .base import Middleware, NextHandler
from ..http.context import RequestContext
from ..http.response import no_content


@dataclass
class CORSConfig:
    """
    CORS policy.

    The defaults are the API's policy: any origin, the five methods the
    API serves, and the two request headers clients send.
    """

    allow_origin: str = "*"
    allow_methods: List[str] = field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )
    allow_headers: List[str] = field(
        default_factory=lambda: ["Content-Type", "Authorization"]
    )


class CORSMiddleware(Middleware):
    """
    Puts the CORS headers on every response and answers OPTIONS.

    Placed first in the pipeline so that even responses produced by
    other middleware carry the headers.

        pipeline.add(CORSMiddleware())
        pipeline.add(LoggingMiddleware())
    """

    def __init__(self, config: Optional[CORSConfig] = None):
        self.config = config or CORSConfig()

    def __call__(self, ctx: RequestContext, next: NextHandler) -> None:
        for name, value in self.cors_headers().items():
            ctx.put_header(name, value)

        if ctx.method == "OPTIONS":
            ctx.end(no_content())
            return

        next(ctx)

    def cors_headers(self) -> Dict[str, str]:
        """The CORS headers, also used for errors sent before routing."""
        return {
            "Access-Control-Allow-Origin": self.config.allow_origin,
            "Access-Control-Allow-Methods": ", ".join(self.config.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.config.allow_headers),
        }
