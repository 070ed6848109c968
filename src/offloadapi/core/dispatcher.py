"""
=============================================================================
BLOCKING TASK DISPATCHER
=============================================================================

Moves blocking work off the event-loop threads.

An event-loop thread must never sleep, touch a slow store, or crunch
numbers: while it does, every other connection it serves waits. Handlers
therefore validate the request synchronously and hand the rest to the
dispatcher, which runs it on a worker pool:

    eventloop-thread-0                 worker-pool-a1b2c3-2
    ──────────────────                 ────────────────────
    handler(ctx)
      ├─ validate input
      └─ execute_blocking_with_worker(task, ctx) ──► task()
    return                                            ├─ sleep / store I/O
                                                      └─ ctx.json(result)
                                                            │
    on_done(future)  ◄──────── completion ──────────────────┘
      └─ failure? → ctx.fail(...)

=============================================================================
TWO POOLS
=============================================================================

    execute_blocking()              → default pool   ("worker-thread-N")
    execute_blocking_with_worker()  → named pool     ("worker-pool-<id>-N")

Both share one completion path. Their only difference is which threads
run the task.

=============================================================================
FAILURE MAPPING
=============================================================================

A task writes its own success response. The dispatcher only answers on
failure, and only if nothing was written yet:

    ┌─────────────────────────────┬──────────────────────────────────────┐
    │ Outcome                     │ Response                             │
    ├─────────────────────────────┼──────────────────────────────────────┤
    │ task returned               │ (task already answered)              │
    │ ApiError (NotFound, ...)    │ its status and message               │
    │ pool full / shutting down   │ 503 "Service unavailable"            │
    │ task cancelled              │ 503 "Service unavailable"            │
    │ any other exception         │ 500 "Operation failed" (logged)      │
    └─────────────────────────────┴──────────────────────────────────────┘

Completion callbacks run on the event-loop pool when one is attached,
so the response is finished from an event-loop thread like every other
response. Without one (tests) they run inline.

=============================================================================
"""

import logging
from concurrent.futures import CancelledError, Future
from typing import Any, Callable, Optional

from .thread_pool import RejectedTask, ThreadPool
from ..errors import ApiError
from ..http.context import RequestContext
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


Task = Callable[[], Any]

UNAVAILABLE_MESSAGE = "Service unavailable"
FAILED_MESSAGE = "Operation failed"


class BlockingTaskDispatcher:
    """
    Runs blocking tasks on worker pools and reports failures to the client.

    Usage:
        dispatcher = BlockingTaskDispatcher(default_pool, worker_pool, event_loop)

        def task():
            user = users.get(user_id)
            if user is None:
                raise NotFound("User not found")
            ctx.json(user.to_dict())

        dispatcher.execute_blocking_with_worker(task, ctx)
    """

    def __init__(
        self,
        default_pool: ThreadPool,
        worker_pool: ThreadPool,
        event_loop: Optional[ThreadPool] = None,
    ):
        """
        Args:
            default_pool: Pool behind execute_blocking().
            worker_pool: Named pool behind execute_blocking_with_worker().
            event_loop: Pool that runs completion callbacks, if any.
        """
        self.default_pool = default_pool
        self.worker_pool = worker_pool
        self.event_loop = event_loop

    def execute_blocking(self, task: Task, ctx: Optional[RequestContext] = None) -> Future:
        """Run task on the default pool."""
        return self._dispatch(self.default_pool, task, ctx)

    def execute_blocking_with_worker(
        self,
        task: Task,
        ctx: Optional[RequestContext] = None
    ) -> Future:
        """Run task on the named worker pool."""
        return self._dispatch(self.worker_pool, task, ctx)

    # ─── Internals ───────────────────────────────────────────────────────

    def _dispatch(
        self,
        pool: ThreadPool,
        task: Task,
        ctx: Optional[RequestContext]
    ) -> Future:
        """
        Submit task and attach the completion callback.

        A rejected submission never raises to the handler: it yields an
        already-failed Future and the usual 503.
        """
        try:
            future = pool.submit(task)
        except RejectedTask as e:
            logger.warning(f"Task rejected by '{pool.name}': {e}")
            future = Future()
            future.set_exception(e)

        future.add_done_callback(lambda done: self._on_complete(done, ctx))
        return future

    def _on_complete(self, future: Future, ctx: Optional[RequestContext]) -> None:
        if ctx is None:
            if not future.cancelled() and future.exception() is not None:
                logger.error("Blocking task failed", exc_info=future.exception())
            return

        if self.event_loop is not None and self.event_loop.is_running:
            try:
                self.event_loop.submit(self._complete, future, ctx)
                return
            except RejectedTask:
                logger.debug("Event loop unavailable, completing inline")

        self._complete(future, ctx)

    def _complete(self, future: Future, ctx: RequestContext) -> None:
        """Map the task outcome onto the request context."""
        if future.cancelled():
            self._fail(ctx, HTTPStatus.SERVICE_UNAVAILABLE, UNAVAILABLE_MESSAGE)
            return

        error = future.exception()

        if error is None:
            if not ctx.ended:
                logger.warning(f"Task for {ctx.method} {ctx.path} finished without a response")
            return

        if isinstance(error, ApiError):
            self._fail(ctx, error.status_code, error.message)
        elif isinstance(error, (RejectedTask, CancelledError)):
            self._fail(ctx, HTTPStatus.SERVICE_UNAVAILABLE, UNAVAILABLE_MESSAGE)
        else:
            logger.error(
                f"Task for {ctx.method} {ctx.path} failed: {error}",
                exc_info=(type(error), error, error.__traceback__),
            )
            self._fail(ctx, HTTPStatus.INTERNAL_SERVER_ERROR, FAILED_MESSAGE)

    @staticmethod
    def _fail(ctx: RequestContext, status: int, message: str) -> None:
        if not ctx.fail(status, message):
            logger.warning(
                f"Response already sent for {ctx.method} {ctx.path}, "
                f"dropping {status} {message!r}"
            )
