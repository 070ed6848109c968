"""
Unit tests for RequestContext.
"""

import threading

from offloadapi.http import HTTPRequest, RequestContext
from offloadapi.http.response import HTTPStatus, json_response


class TestRequestContext:
    """Tests for RequestContext."""

    def test_end_only_once(self):
        """Test that the first end wins and later ones are discarded."""
        sent = []
        ctx = RequestContext(HTTPRequest(method="GET", path="/"), responder=lambda c, r: sent.append(r))

        assert ctx.json({"n": 1}) is True
        assert ctx.fail(HTTPStatus.INTERNAL_SERVER_ERROR, "late") is False

        assert len(sent) == 1
        assert ctx.response.json_body() == {"n": 1}
        assert ctx.ended

    def test_concurrent_end(self):
        """Test that racing threads produce exactly one response."""
        sent = []
        ctx = RequestContext(HTTPRequest(method="GET", path="/"), responder=lambda c, r: sent.append(r))
        barrier = threading.Barrier(4)

        def finish(n):
            barrier.wait()
            ctx.json({"n": n})

        threads = [threading.Thread(target=finish, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(sent) == 1

    def test_put_header_added_to_response(self):
        ctx = RequestContext(HTTPRequest(method="GET", path="/"))
        ctx.put_header("X-Request-ID", "abc")

        ctx.end(json_response({}))

        assert ctx.response.headers["X-Request-ID"] == "abc"

    def test_response_header_wins(self):
        ctx = RequestContext(HTTPRequest(method="GET", path="/"))
        ctx.put_header("Content-Type", "text/plain")

        ctx.json({})

        assert ctx.response.headers["Content-Type"].startswith("application/json")

    def test_end_handlers_run(self):
        seen = []
        ctx = RequestContext(HTTPRequest(method="GET", path="/"))
        ctx.add_end_handler(lambda c, r: seen.append(int(r.status)))

        ctx.fail(404, "User not found")

        assert seen == [404]

    def test_failing_end_handler_does_not_block_response(self):
        sent = []
        ctx = RequestContext(HTTPRequest(method="GET", path="/"), responder=lambda c, r: sent.append(r))

        def broken(c, r):
            raise RuntimeError("boom")

        ctx.add_end_handler(broken)
        ctx.json({})

        assert len(sent) == 1

    def test_fail_body(self):
        ctx = RequestContext(HTTPRequest(method="GET", path="/"))
        ctx.fail(HTTPStatus.BAD_REQUEST, "Invalid user data")

        assert ctx.response.status == HTTPStatus.BAD_REQUEST
        assert ctx.response.json_body() == {
            "error": True,
            "message": "Invalid user data",
            "statusCode": 400,
        }

    def test_wait(self):
        ctx = RequestContext(HTTPRequest(method="GET", path="/"))
        assert ctx.wait(timeout=0.01) is None

        threading.Timer(0.05, lambda: ctx.json({"ok": True})).start()

        response = ctx.wait(timeout=5)
        assert response is not None
        assert response.json_body() == {"ok": True}

    def test_path_params_and_body(self, context_factory):
        ctx = context_factory("PUT", "/api/users/7", {"name": "Bob"})
        ctx.path_params = {"id": "7"}

        assert ctx.path_param("id") == "7"
        assert ctx.path_param("missing", "x") == "x"
        assert ctx.body_as_json() == {"name": "Bob"}
        assert ctx.elapsed_ms >= 0
