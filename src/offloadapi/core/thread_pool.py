"""
=============================================================================
NAMED THREAD POOL
=============================================================================

A fixed-size group of named worker threads pulling tasks from a shared,
bounded queue. The server runs three of them:

    ┌──────────────────────┬──────────────────────────┬──────────────────┐
    │ Pool                 │ Thread names             │ Runs             │
    ├──────────────────────┼──────────────────────────┼──────────────────┤
    │ event loops          │ eventloop-thread-N       │ read/parse/route │
    │ default blocking     │ worker-thread-N          │ blocking tasks   │
    │ named blocking       │ worker-pool-<id>-N       │ blocking tasks   │
    └──────────────────────┴──────────────────────────┴──────────────────┘

Thread names matter: the diagnostics endpoints classify live threads by
them.

=============================================================================
THREAD POOL ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ThreadPool                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   submit(fn) ──► Task(fn, Future) ──► [ bounded queue ]             │
    │        │                                     │                       │
    │        └──► returns the Future               │ get()                 │
    │                                              ▼                       │
    │   ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐              │
    │   │ name-0   │ │ name-1   │ │ name-2   │ │ name-3   │              │
    │   │ (idle)   │ │ (busy)   │ │ (busy)   │ │ (idle)   │              │
    │   └──────────┘ └──────────┘ └──────────┘ └──────────┘              │
    │                      ▲                                               │
    │                      │ every check interval                          │
    │   ┌──────────────────┴─────────────────┐                            │
    │   │ blocked-thread-checker             │                            │
    │   │ warns when a task runs longer than │                            │
    │   │ max_execute_time                   │                            │
    │   └────────────────────────────────────┘                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
FUTURES
=============================================================================

submit() hands back a concurrent.futures.Future. The worker marks it
running, then resolves it with the task's return value or exception:

    future = pool.submit(load_user, "1")
    future.add_done_callback(on_done)   # runs on the worker thread

A task that raises never kills its worker: the exception goes into the
Future and the worker moves on to the next task.

=============================================================================
BLOCKED TASKS
=============================================================================

Tasks are never interrupted. The checker only reports a task that has
been running longer than max_execute_time, once per task:

    WARNING Thread worker-thread-3 has been blocked for 61234 ms,
            time limit is 60000 ms

=============================================================================
"""

import threading
import queue
import time
import logging
from concurrent.futures import Future
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class RejectedTask(RuntimeError):
    """Raised by submit() when the pool cannot accept a task."""


class WorkerState(Enum):
    """
    Worker thread states.

    Used for monitoring and debugging the thread pool.
    """
    IDLE = "idle"      # Waiting for task
    BUSY = "busy"      # Executing task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred function call plus the Future that receives its outcome.

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
        future: Resolved with the result or exception.
        submitted_at: Time the task was queued (monotonic).
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    future: Future = field(default_factory=Future)
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """
    Worker thread that processes tasks from the queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Worker Loop                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Wait for task from queue (blocking, with idle timeout)         │
    │   2. None? ("poison pill") → exit loop                              │
    │   3. Future cancelled? → skip                                        │
    │   4. Run task, resolve Future with result or exception              │
    │   5. task_done(), back to 1                                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        name: str,
        idle_timeout: float = 1.0
    ):
        """
        Initialize the worker.

        Args:
            task_queue: Queue to pull tasks from.
            name: Thread name, e.g. "worker-thread-3".
            idle_timeout: Seconds to wait for a task before re-checking shutdown.
        """
        super().__init__(name=name, daemon=True)

        self.task_queue = task_queue
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        # Read by the blocked-thread checker without locking; a stale
        # read only delays a warning by one check interval.
        self.task_started_at: Optional[float] = None
        self.blocked_reported = False

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"{self.name} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"{self.name} stopped")

    def _execute_task(self, task: Task):
        """
        Run one task and resolve its Future.

        Exceptions are stored in the Future, never propagated: one bad
        task must not take the worker down with it.
        """
        if not task.future.set_running_or_notify_cancel():
            return  # cancelled while queued

        self.state = WorkerState.BUSY
        self.blocked_reported = False
        self.task_started_at = time.monotonic()

        try:
            result = task.func(*task.args, **task.kwargs)
        except BaseException as e:
            elapsed = time.monotonic() - self.task_started_at
            logger.debug(f"{self.name} task failed after {elapsed:.3f}s: {e!r}")
            self.tasks_failed += 1
            task.future.set_exception(e)
        else:
            elapsed = time.monotonic() - self.task_started_at
            logger.debug(f"{self.name} completed task in {elapsed:.3f}s")
            self.tasks_completed += 1
            task.future.set_result(result)
        finally:
            self.task_started_at = None
            self.state = WorkerState.IDLE

    @property
    def running_for(self) -> Optional[float]:
        """Seconds the current task has been running, None when idle."""
        started = self.task_started_at
        return None if started is None else time.monotonic() - started

    def shutdown(self):
        """Signal the worker to stop."""
        self._shutdown.set()


class BlockedThreadChecker(threading.Thread):
    """
    Periodically reports pool threads stuck in one task for too long.

    One checker per pool. It never interrupts the task, it only logs.
    """

    def __init__(self, pool: "ThreadPool", interval: float):
        super().__init__(name="blocked-thread-checker", daemon=True)
        self.pool = pool
        self.interval = interval
        self._stop_event = threading.Event()

    def run(self):
        while not self._stop_event.wait(self.interval):
            self.check()

    def check(self) -> int:
        """Run one check. Returns the number of newly reported threads."""
        reported = 0
        limit = self.pool.max_execute_time
        for worker in self.pool.workers:
            running_for = worker.running_for
            if running_for is None or running_for <= limit or worker.blocked_reported:
                continue
            worker.blocked_reported = True
            reported += 1
            logger.warning(
                f"Thread {worker.name} has been blocked for "
                f"{int(running_for * 1000)} ms, time limit is {int(limit * 1000)} ms"
            )
        return reported

    def stop(self):
        self._stop_event.set()


class ThreadPool:
    """
    Fixed-size, named thread pool for concurrent task execution.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ThreadPool Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   pool = ThreadPool("worker-thread", size=20)                       │
    │   pool.start()                                                       │
    │                                                                      │
    │   future = pool.submit(fetch_order, "order-1")                      │
    │   future.result(timeout=5)                                           │
    │                                                                      │
    │   pool.stats   # {"name": ..., "workers": {...}, "tasks": {...}}    │
    │                                                                      │
    │   pool.shutdown(wait=True, timeout=30)                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Features:
    - Named threads ("<name>-0" .. "<name>-<size-1>")
    - Bounded task queue; a full queue rejects instead of blocking
    - Futures for completion signalling
    - Blocked-task warnings past max_execute_time
    - Graceful shutdown (drain queue, poison pills)
    """

    def __init__(
        self,
        name: str,
        size: int = 4,
        queue_size: int = 1000,
        max_execute_time: float = 60.0,
        check_interval: float = 1.0,
        idle_timeout: float = 1.0
    ):
        """
        Initialize the thread pool.

        Args:
            name: Pool name; threads are called "<name>-<index>".
            size: Number of worker threads.
            queue_size: Maximum number of queued (not yet running) tasks.
            max_execute_time: Seconds before a running task is reported.
            check_interval: How often the blocked-thread checker runs.
            idle_timeout: Seconds idle workers wait before re-checking shutdown.
        """
        if size < 1:
            raise ValueError("size must be >= 1")

        self.name = name
        self.size = size
        self.max_queue_size = queue_size
        self.max_execute_time = max_execute_time
        self.check_interval = check_interval
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._checker: Optional[BlockedThreadChecker] = None
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False

    def start(self) -> "ThreadPool":
        """Create and start all worker threads plus the checker."""
        with self._lock:
            if self._started:
                return self

            logger.info(f"Starting thread pool '{self.name}' with {self.size} workers")

            for index in range(self.size):
                worker = Worker(
                    task_queue=self._task_queue,
                    name=f"{self.name}-{index}",
                    idle_timeout=self.idle_timeout,
                )
                self._workers.append(worker)
                worker.start()

            self._checker = BlockedThreadChecker(self, self.check_interval)
            self._checker.start()

            self._shutdown = False
            self._started = True
        return self

    def submit(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """
        Submit a task for execution.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    submit() Flow                                 │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │   1. Pool not running? → RejectedTask                           │
        │   2. Wrap call in Task with a fresh Future                      │
        │   3. Queue full? → RejectedTask (never blocks the caller)       │
        │   4. Return the Future                                           │
        │                                                                  │
        └─────────────────────────────────────────────────────────────────┘

        Submitting never blocks: callers are event-loop threads, which
        must not wait on a full queue.

        Returns:
            Future resolved with the function's result or exception.

        Raises:
            RejectedTask: If the pool is not started, shutting down or full.
        """
        if not self._started or self._shutdown:
            raise RejectedTask(f"Thread pool '{self.name}' is not running")

        task = Task(func=func, args=args, kwargs=kwargs)

        try:
            self._task_queue.put(task, block=False)
        except queue.Full:
            raise RejectedTask(
                f"Thread pool '{self.name}' queue is full ({self.max_queue_size} tasks)"
            ) from None

        return task.future

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Shutdown the thread pool.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    shutdown() Flow                               │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │   1. Mark as shutting down (reject new tasks)                   │
        │   2. If wait=True: let the queue drain (bounded by timeout)     │
        │   3. Send poison pills to all workers                           │
        │   4. Stop the checker, join the workers                         │
        │                                                                  │
        └─────────────────────────────────────────────────────────────────┘

        Args:
            wait: Whether to wait for queued tasks to complete.
            timeout: Maximum time to wait for the queue to drain.
        """
        with self._lock:
            if not self._started:
                return
            self._shutdown = True

        logger.info(f"Shutting down thread pool '{self.name}'...")

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            while self._task_queue.unfinished_tasks:
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning(f"Thread pool '{self.name}' shutdown timeout, forcing stop")
                    break
                time.sleep(0.05)

        if not wait:
            self._cancel_pending()

        for worker in self._workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # worker still sees its shutdown flag after idle_timeout

        if self._checker:
            self._checker.stop()

        for worker in self._workers:
            worker.join(timeout=2.0)

        with self._lock:
            self._workers.clear()
            self._checker = None
            self._started = False

        logger.info(f"Thread pool '{self.name}' shutdown complete")

    def _cancel_pending(self):
        """Cancel every queued task that has not started yet."""
        while True:
            try:
                task = self._task_queue.get_nowait()
            except queue.Empty:
                return
            if task is not None:
                task.future.cancel()
            self._task_queue.task_done()

    # =========================================================================
    # MONITORING: Check pool status
    # =========================================================================

    @property
    def workers(self) -> list[Worker]:
        """Snapshot of the worker threads."""
        with self._lock:
            return list(self._workers)

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    @property
    def busy_workers(self) -> int:
        """Get count of busy workers."""
        return sum(1 for w in self.workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        """Get count of idle workers."""
        return sum(1 for w in self.workers if w.state == WorkerState.IDLE)

    @property
    def queue_size(self) -> int:
        """Get current task queue size."""
        return self._task_queue.qsize()

    def check_blocked(self) -> int:
        """Run one blocked-thread check now. Returns newly reported threads."""
        checker = self._checker or BlockedThreadChecker(self, self.check_interval)
        return checker.check()

    @property
    def stats(self) -> dict:
        """
        Get thread pool statistics.

        Returns a dict with worker and task counts for the diagnostics
        endpoints and for logging.
        """
        workers = self.workers
        return {
            "name": self.name,
            "size": self.size,
            "workers": {
                "total": len(workers),
                "busy": sum(1 for w in workers if w.state == WorkerState.BUSY),
                "idle": sum(1 for w in workers if w.state == WorkerState.IDLE),
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in workers),
                "failed": sum(w.tasks_failed for w in workers),
            },
        }
