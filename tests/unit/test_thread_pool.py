"""
Unit tests for the thread pools.
"""

import logging
import threading
import time

import pytest

from offloadapi.core import EventLoopGroup, RejectedTask, ThreadPool, is_event_loop_thread
from offloadapi.core.event_loop import current_thread_name


@pytest.fixture
def pool():
    p = ThreadPool("test-pool", size=2, queue_size=2, check_interval=0.05).start()
    yield p
    p.shutdown(wait=False)


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_submit_returns_future(self, pool):
        future = pool.submit(lambda a, b: a + b, 2, 3)
        assert future.result(timeout=5) == 5

    def test_exception_in_future(self, pool):
        """Test that a failing task stores its exception and the worker survives."""
        def boom():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            pool.submit(boom).result(timeout=5)

        assert pool.submit(lambda: "still alive").result(timeout=5) == "still alive"

    def test_thread_names(self, pool):
        name = pool.submit(current_thread_name).result(timeout=5)

        assert name.startswith("test-pool-")
        assert {w.name for w in pool.workers} == {"test-pool-0", "test-pool-1"}

    def test_rejects_when_not_started(self):
        with pytest.raises(RejectedTask):
            ThreadPool("idle", size=1).submit(lambda: None)

    def test_rejects_after_shutdown(self):
        p = ThreadPool("short-lived", size=1).start()
        p.shutdown()

        assert not p.is_running
        with pytest.raises(RejectedTask):
            p.submit(lambda: None)

    def test_rejects_when_queue_full(self, pool):
        """Test that a full queue rejects instead of blocking the caller."""
        release = threading.Event()

        # Occupy both workers, then fill the queue (size 2).
        running = [pool.submit(release.wait, 5) for _ in range(2)]
        deadline = time.monotonic() + 5
        while pool.busy_workers < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        queued = [pool.submit(release.wait, 5) for _ in range(2)]

        with pytest.raises(RejectedTask):
            pool.submit(lambda: None)

        release.set()
        for future in running + queued:
            assert future.result(timeout=5) is True

    def test_shutdown_without_wait_cancels_queued(self):
        p = ThreadPool("cancel-pool", size=1, check_interval=0.05).start()
        release = threading.Event()

        p.submit(release.wait, 5)
        deadline = time.monotonic() + 5
        while p.busy_workers < 1 and time.monotonic() < deadline:
            time.sleep(0.01)
        queued = p.submit(lambda: "never")

        release.set()
        p.shutdown(wait=False)

        assert queued.cancelled() or queued.result(timeout=5) == "never"

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            ThreadPool("bad", size=0)

    def test_stats(self, pool):
        pool.submit(lambda: None).result(timeout=5)
        time.sleep(0.05)

        stats = pool.stats
        assert stats["name"] == "test-pool"
        assert stats["size"] == 2
        assert stats["workers"]["total"] == 2
        assert stats["tasks"]["completed"] >= 1


class TestBlockedThreadChecker:
    """Tests for blocked-thread warnings."""

    def test_blocked_task_is_reported_once(self, caplog):
        p = ThreadPool(
            "slow-pool", size=1, max_execute_time=0.05, check_interval=60
        ).start()
        release = threading.Event()
        try:
            p.submit(release.wait, 5)
            time.sleep(0.2)

            with caplog.at_level(logging.WARNING, logger="offloadapi.core.thread_pool"):
                assert p.check_blocked() == 1
                assert p.check_blocked() == 0

            assert "slow-pool-0 has been blocked" in caplog.text
        finally:
            release.set()
            p.shutdown()

    def test_fast_task_not_reported(self, pool):
        pool.submit(lambda: None).result(timeout=5)
        assert pool.check_blocked() == 0


class TestEventLoopGroup:
    """Tests for EventLoopGroup naming."""

    def test_thread_names(self):
        loops = EventLoopGroup(size=2, check_interval=0.05).start()
        try:
            name = loops.submit(current_thread_name).result(timeout=5)
            assert name.startswith("eventloop-thread-")
            assert loops.submit(is_event_loop_thread).result(timeout=5) is True
        finally:
            loops.shutdown()

    @pytest.mark.parametrize("name,expected", [
        ("eventloop-thread-0", True),
        ("eventloop-thread-13", True),
        ("worker-thread-0", False),
        ("MainThread", False),
    ])
    def test_is_event_loop_thread(self, name, expected):
        assert is_event_loop_thread(name) is expected

    def test_main_thread_is_not_event_loop(self):
        assert is_event_loop_thread() is False
