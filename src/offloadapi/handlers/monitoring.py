"""
=============================================================================
MONITORING ENDPOINTS
=============================================================================

Read-only diagnostics. They answer straight from the event-loop thread:
nothing here blocks, so there is nothing to offload. That is also what
makes /thread-info useful: it names the event-loop thread that served
the request.

    ┌──────────────────┬──────────────────────────────────────────────────┐
    │ Endpoint         │ Body                                             │
    ├──────────────────┼──────────────────────────────────────────────────┤
    │ /health          │ {"status": "UP", "timestamp": "<millis>"}        │
    │ /thread-info     │ {"eventLoopThread", "timestamp"}                 │
    │ /verticle-info   │ {"verticleId", "workerPoolName",                 │
    │                  │  "eventLoopThread", "timestamp"}                 │
    │ /thread-stats    │ {"systemThreads", "runtime", "currentVerticle",  │
    │                  │  "timestamp"}                                    │
    └──────────────────┴──────────────────────────────────────────────────┘

=============================================================================
THREAD CLASSIFICATION
=============================================================================

Live threads are classified by name only:

    eventloop-thread-3          → eventLoopThreads   (prefix)
    worker-thread-12            → workerThreads      ("worker" anywhere)
    worker-pool-5f3a9c1e-4      → workerThreads
    MainThread, blocked-thread-checker, ...  → otherThreads

=============================================================================
RUNTIME FIGURES
=============================================================================

    availableProcessors   os.cpu_count()
    maxMemory             total physical memory          (psutil)
    totalMemory           resident set size of this process (psutil)
    freeMemory            memory available to new processes (psutil)

=============================================================================
"""

import logging
import os
import threading
from typing import Any, Dict, Iterable

import psutil

from ..core.event_loop import EVENT_LOOP_PREFIX, current_thread_name
from ..http.context import RequestContext
from ..http.router import Router
from ..store import current_millis


logger = logging.getLogger(__name__)


def classify_threads(names: Iterable[str]) -> Dict[str, int]:
    """Count thread names per kind: event loop, worker, other."""
    total = event_loops = workers = others = 0
    for name in names:
        total += 1
        if name.startswith(f"{EVENT_LOOP_PREFIX}-"):
            event_loops += 1
        elif "worker" in name:
            workers += 1
        else:
            others += 1
    return {
        "total": total,
        "eventLoopThreads": event_loops,
        "workerThreads": workers,
        "otherThreads": others,
    }


def runtime_figures() -> Dict[str, int]:
    memory = psutil.virtual_memory()
    return {
        "availableProcessors": os.cpu_count() or 1,
        "maxMemory": memory.total,
        "totalMemory": psutil.Process().memory_info().rss,
        "freeMemory": memory.available,
    }


class MonitoringEndpoints:
    """
    Diagnostics handlers for one server instance.

    Usage:
        monitoring = MonitoringEndpoints(instance_id, "worker-pool-5f3a9c1e")
        monitoring.setup_routes(router)
    """

    def __init__(self, verticle_id: str, worker_pool_name: str):
        """
        Args:
            verticle_id: Identifier of the server instance.
            worker_pool_name: Full name of the instance's named pool.
        """
        self.verticle_id = verticle_id
        self.worker_pool_name = worker_pool_name

    def setup_routes(self, router: Router) -> None:
        router.add_route("/health", self.health_check, method="GET")
        router.add_route("/thread-info", self.thread_info, method="GET")
        router.add_route("/verticle-info", self.verticle_info, method="GET")
        router.add_route("/thread-stats", self.thread_stats, method="GET")

    def health_check(self, ctx: RequestContext) -> None:
        # timestamp is a string on this endpoint only
        ctx.json({"status": "UP", "timestamp": str(current_millis())})

    def thread_info(self, ctx: RequestContext) -> None:
        ctx.json({
            "eventLoopThread": current_thread_name(),
            "timestamp": current_millis(),
        })

    def verticle_info(self, ctx: RequestContext) -> None:
        ctx.json({
            "verticleId": self.verticle_id,
            "workerPoolName": self.worker_pool_name,
            "eventLoopThread": current_thread_name(),
            "timestamp": current_millis(),
        })

    def thread_stats(self, ctx: RequestContext) -> None:
        stats: Dict[str, Any] = {
            "systemThreads": classify_threads(t.name for t in threading.enumerate()),
            "runtime": runtime_figures(),
            "currentVerticle": {
                "verticleId": self.verticle_id,
                "eventLoopThread": current_thread_name(),
            },
            "timestamp": current_millis(),
        }
        logger.debug(f"Thread stats: {stats['systemThreads']}")
        ctx.json(stats)
