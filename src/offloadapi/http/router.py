"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to handler functions.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   GET /api/users/42                                                  │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTER                                                      │   │
    │   │  GET    /api/users          → UserController.list_users      │   │
    │   │  GET    /api/users/:id      → UserController.get_user  MATCH │   │
    │   │  POST   /api/users          → UserController.create_user     │   │
    │   │  ...                                                         │   │
    │   │  ctx.path_params = {"id": "42"}                              │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   get_user(ctx)                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Handlers take a RequestContext and return nothing. They end the context
themselves, either right away or later from a worker thread.

=============================================================================
ROUTE PATTERNS
=============================================================================

    /api/users                 static, exact match
    /api/users/:id             ":id" matches one path segment
    /api/orders/:id/status     parameters may sit mid-path

Patterns compile to anchored regexes with named groups:

    /api/orders/:id/status  →  ^/api/orders/(?P<id>[^/]+)/status$

First registered, first matched.

=============================================================================
NO MATCH
=============================================================================

    path unknown                   → 404 "No route matches <path>"
    path known, method not         → 405 with an Allow header

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, List
import logging
import re

from .context import RequestContext
from .response import error_response
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


Handler = Callable[[RequestContext], None]


@dataclass
class Route:
    """A URL pattern bound to a handler for one method."""

    path: str
    method: str
    handler: Handler

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """
    Request router with ":param" path parameters.

        router = Router()
        router.add_route("/api/users/:id", get_user, method="GET")

        def get_user(ctx):
            ctx.json({"id": ctx.path_param("id")})
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(self, path: str, handler: Handler, method: str) -> Route:
        """
        Register a route.

        Args:
            path: URL pattern, e.g. "/api/orders/:id/status".
            handler: Called with the RequestContext.
            method: HTTP method.
        """
        pattern, param_names = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method.upper(),
            handler=handler,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)

        logger.debug(f"Route registered: {route.method} {path}")
        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile "/api/orders/:id/status" into
        ^/api/orders/(?P<id>[^/]+)/status$
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                # :id → (?P<id>[^/]+), one segment, no slashes
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")

        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    @staticmethod
    def _normalize(path: str) -> str:
        return "/" + path.strip("/") if path != "/" else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """First route matching method and path, or None."""
        path = self._normalize(path)
        method = method.upper()

        for route in self._routes:
            if route.method != method:
                continue
            found = route._pattern.match(path)
            if found:
                return RouteMatch(route=route, params=found.groupdict())

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for a path (for the 405 Allow header)."""
        path = self._normalize(path)
        return sorted({
            route.method for route in self._routes if route._pattern.match(path)
        })

    def handle(self, ctx: RequestContext) -> None:
        """
        Dispatch a context to its handler.

        Sets ctx.path_params on a match. Without a match the context is
        ended with 404, or 405 when only the method is wrong.
        """
        found = self.match(ctx.method, ctx.path)

        if found:
            ctx.path_params = found.params
            found.route.handler(ctx)
            return

        allowed = self.get_allowed_methods(ctx.path)
        if allowed:
            response = error_response(HTTPStatus.METHOD_NOT_ALLOWED, "Method Not Allowed")
            response.set_header("Allow", ", ".join(allowed))
            ctx.end(response)
            return

        ctx.fail(HTTPStatus.NOT_FOUND, f"No route matches {ctx.path}")

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def print_routes(self) -> None:
        """Log every registered route at INFO."""
        logger.info("Registered routes:")
        for route in self._routes:
            logger.info(f"  {route.method:8} {route.path}")

    def __len__(self) -> int:
        return len(self._routes)
