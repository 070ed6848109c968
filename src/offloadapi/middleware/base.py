"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Middleware protocol and the pipeline that chains middleware in front of
the router (Chain of Responsibility).

=============================================================================
CONTEXT-BASED CHAIN
=============================================================================

Handlers in this server do not return responses: a blocking task may end
the request long after the handler returned. Middleware therefore works
on the RequestContext instead of on a returned response:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   ctx ──► Logging ──► CORS ──► router.handle(ctx)                   │
    │             │           │                                            │
    │             │           └─ ctx.put_header("Access-Control-...")      │
    │             └─ ctx.add_end_handler(log_line)                         │
    │                                                                      │
    │   ... later, on whichever thread ends the context ...               │
    │                                                                      │
    │   ctx.end(response)                                                  │
    │     ├─ headers put by middleware are applied                        │
    │     └─ end handlers run (access log, X-Request-ID)                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A middleware can still short-circuit by ending the context itself and not
calling next (CORS answers OPTIONS this way).

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.context import RequestContext


logger = logging.getLogger(__name__)


# The next middleware or the final handler.
NextHandler = Callable[[RequestContext], None]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class MyMiddleware(Middleware):
            def __call__(self, ctx: RequestContext, next: NextHandler) -> None:
                # before the handler: inspect ctx.request, register
                # headers or end handlers, or ctx.end(...) and return
                next(ctx)
                # after next() returns the request may still be in flight
    """

    @abstractmethod
    def __call__(self, ctx: RequestContext, next: NextHandler) -> None:
        """
        Process the context.

        Call next(ctx) to continue the chain, or end ctx to short-circuit.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

    First added = outermost:

        pipeline = MiddlewarePipeline()
        pipeline.add(CORSMiddleware())
        pipeline.add(LoggingMiddleware())

        handler = pipeline.wrap(router.handle)
        handler(ctx)        # CORS → Logging → router.handle
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Wrap handler with every middleware in the pipeline.

        Wrapping happens in reverse so that the first-added middleware
        ends up outermost: [A, B, C] → A(B(C(handler))).
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(ctx: RequestContext) -> None:
            middleware(ctx, next_handler)
        return wrapped

    def __iter__(self):
        return iter(self._middleware)
