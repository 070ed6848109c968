"""
=============================================================================
BASE CONTROLLER
=============================================================================

Shared plumbing for the resource controllers: JSON responses, error
responses, body parsing and the two ways of moving work off the
event-loop thread.

=============================================================================
HANDLER SHAPE
=============================================================================

Every handler has the same two halves:

    def create_user(self, ctx):
        # ── event-loop thread: cheap checks only ──────────────────────
        user = self.parse_body(ctx, User.from_dict)
        if user is None or user.name is None:
            self.send_error(ctx, "Invalid user data", 400)
            return

        # ── worker thread: store access, latency, CPU work ────────────
        def task():
            self.simulate_latency(0.2)
            stored = self.users.insert_new(...)
            self.send_json(ctx, stored.to_dict(), 201)

        self.handle_async_with_worker(ctx, task)

A task either answers through send_json() or raises an ApiError
(NotFound, InvalidInput). The dispatcher turns the error, or any
unexpected exception, into the JSON error body.

=============================================================================
"""

import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from ..core.dispatcher import BlockingTaskDispatcher
from ..http.context import RequestContext
from ..http.router import Router
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseController(ABC):
    """
    Base class for the HTTP controllers.

    Subclasses register their routes in setup_routes() and run every
    store access through handle_async_with_worker().
    """

    def __init__(self, dispatcher: BlockingTaskDispatcher, latency_scale: float = 1.0):
        """
        Args:
            dispatcher: Runs blocking tasks on the worker pools.
            latency_scale: Multiplier for simulate_latency(); 0 disables it.
        """
        self.dispatcher = dispatcher
        self.latency_scale = latency_scale

    @abstractmethod
    def setup_routes(self, router: Router) -> None:
        """Register this controller's routes on router."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    # ─── Responses ───────────────────────────────────────────────────────

    def send_json(
        self,
        ctx: RequestContext,
        data: Any,
        status: Union[HTTPStatus, int] = HTTPStatus.OK
    ) -> bool:
        return ctx.json(data, status)

    def send_error(self, ctx: RequestContext, message: str, status: Union[HTTPStatus, int]) -> bool:
        return ctx.fail(status, message)

    # ─── Request bodies ──────────────────────────────────────────────────

    def get_request_body(self, ctx: RequestContext) -> Optional[Dict[str, Any]]:
        """The body as a JSON object, None if absent or unparsable."""
        return ctx.body_as_json()

    def parse_body(self, ctx: RequestContext, build: Callable[[Dict[str, Any]], T]) -> Optional[T]:
        """
        Parse the body into a model.

        Args:
            build: Model factory such as User.from_dict.

        Returns:
            The model, or None if the body is missing, is not a JSON
            object, or is rejected by build.
        """
        body = self.get_request_body(ctx)
        if body is None:
            return None
        try:
            return build(body)
        except (ValueError, TypeError) as e:
            logger.warning(f"Invalid request body for {ctx.method} {ctx.path}: {e}")
            return None

    # ─── Offloading ──────────────────────────────────────────────────────

    def handle_async(self, ctx: RequestContext, task: Callable[[], Any]) -> Future:
        """Run task on the default blocking pool."""
        return self.dispatcher.execute_blocking(task, ctx)

    def handle_async_with_worker(self, ctx: RequestContext, task: Callable[[], Any]) -> Future:
        """Run task on the named worker pool."""
        return self.dispatcher.execute_blocking_with_worker(task, ctx)

    def simulate_latency(self, seconds: float) -> None:
        """Stand-in for database or network I/O. Worker threads only."""
        delay = seconds * self.latency_scale
        if delay > 0:
            time.sleep(delay)
