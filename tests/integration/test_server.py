"""
Integration tests against a running server over real sockets.
"""

import http.client
import json
import socket
from concurrent.futures import ThreadPoolExecutor


class TestHealthAndDiagnostics:
    """Diagnostics endpoints through the full stack."""

    def test_health(self, test_server):
        response = test_server.request("GET", "/health")

        assert response.status == 200
        assert response.body["status"] == "UP"
        assert response.headers["content-type"].startswith("application/json")

    def test_thread_info_runs_on_event_loop(self, test_server):
        body = test_server.request("GET", "/thread-info").body

        assert body["eventLoopThread"].startswith("eventloop-thread-")

    def test_verticle_info(self, test_server):
        body = test_server.request("GET", "/verticle-info").body

        assert body["verticleId"] == test_server.server.instance_id
        assert body["workerPoolName"] == f"worker-pool-{body['verticleId']}"

    def test_thread_stats_sees_pools(self, test_server):
        threads = test_server.request("GET", "/thread-stats").body["systemThreads"]

        # config fixture: 2 event loops, 4 + 4 workers (earlier tests may linger)
        assert threads["eventLoopThreads"] >= 2
        assert threads["workerThreads"] >= 8


class TestUsersAPI:
    """User CRUD end to end."""

    def test_user_lifecycle(self, test_server):
        created = test_server.request("POST", "/api/users", {"name": "Bob", "email": "bob@example.com"})
        assert created.status == 201
        user_id = created.body["id"]

        fetched = test_server.request("GET", f"/api/users/{user_id}")
        assert fetched.body == {"id": user_id, "name": "Bob", "email": "bob@example.com"}

        updated = test_server.request(
            "PUT", f"/api/users/{user_id}", {"name": "Robert", "email": "bob@example.com"}
        )
        assert updated.body["name"] == "Robert"

        deleted = test_server.request("DELETE", f"/api/users/{user_id}")
        assert deleted.body == {"message": "User deleted successfully"}

        assert test_server.request("GET", f"/api/users/{user_id}").status == 404

    def test_list_users(self, test_server):
        body = test_server.request("GET", "/api/users").body
        assert {"1", "2"} <= {user["id"] for user in body}

    def test_invalid_body(self, test_server):
        response = test_server.request("POST", "/api/users", "{not json")

        assert response.status == 400
        assert response.body == {"error": True, "message": "Invalid user data", "statusCode": 400}

    def test_concurrent_creates_get_distinct_ids(self, test_server):
        def create(n):
            return test_server.request(
                "POST", "/api/users", {"name": f"user-{n}", "email": f"u{n}@example.com"}
            )

        with ThreadPoolExecutor(max_workers=10) as executor:
            responses = list(executor.map(create, range(20)))

        assert all(r.status == 201 for r in responses)
        ids = {r.body["id"] for r in responses}
        assert len(ids) == 20

        listed = {u["id"] for u in test_server.request("GET", "/api/users").body}
        assert ids <= listed


class TestOrdersAPI:
    """Order endpoints end to end."""

    def test_create_and_calculate_total(self, test_server):
        created = test_server.request("POST", "/api/orders", {
            "customerId": "customer-7",
            "items": [
                {"productId": "p1", "productName": "Widget", "quantity": 2, "unitPrice": 10.0},
                {"productId": "p2", "productName": "Gadget", "quantity": 1, "unitPrice": 5.0},
            ],
        })
        assert created.status == 201
        assert created.body["totalAmount"] == 25.0
        assert created.body["status"] == "PENDING"

        order_id = created.body["id"]
        total = test_server.request("GET", f"/api/orders/{order_id}/calculate-total").body

        assert total["subtotal"] == 25.0
        assert total["tax"] == 2.0
        assert total["shipping"] == 9.99
        assert total["finalTotal"] == 36.99

    def test_non_finite_price_rejected(self, test_server):
        body = '{"customerId": "c", "items": [{"quantity": 1, "unitPrice": NaN}]}'

        response = test_server.request("POST", "/api/orders", body)

        assert response.status == 400
        assert response.body == {"error": True, "message": "Invalid order data", "statusCode": 400}

    def test_status_update(self, test_server):
        response = test_server.request("PUT", "/api/orders/order-2/status", {"status": "SHIPPED"})

        assert response.status == 200
        assert response.body["status"] == "SHIPPED"
        assert test_server.request("GET", "/api/orders/order-2").body["status"] == "SHIPPED"

    def test_invalid_status(self, test_server):
        response = test_server.request("PUT", "/api/orders/order-1/status", {"status": "BOGUS"})

        assert response.status == 400
        assert response.body["message"] == "Invalid status value"

    def test_unknown_order(self, test_server):
        response = test_server.request("GET", "/api/orders/order-404")

        assert response.status == 404
        assert response.body["message"] == "Order not found"


class TestHTTPBehaviour:
    """Routing, CORS and connection handling."""

    def test_cors_on_success_and_error(self, test_server):
        ok = test_server.request("GET", "/api/users")
        missing = test_server.request("GET", "/api/users/999")

        for response in (ok, missing):
            assert response.headers["access-control-allow-origin"] == "*"
            assert "PUT" in response.headers["access-control-allow-methods"]
            assert "x-request-id" in response.headers

    def test_preflight(self, test_server):
        conn = http.client.HTTPConnection("127.0.0.1", test_server.port, timeout=10)
        try:
            conn.request("OPTIONS", "/api/orders", headers={"Origin": "http://example.com"})
            response = conn.getresponse()
            body = response.read()
        finally:
            conn.close()

        assert response.status == 204
        assert body == b""
        assert response.getheader("Access-Control-Allow-Origin") == "*"

    def test_unknown_route(self, test_server):
        response = test_server.request("GET", "/nope")

        assert response.status == 404
        assert response.body["error"] is True

    def test_method_not_allowed(self, test_server):
        response = test_server.request("PATCH", "/api/users")

        assert response.status == 405

    def test_keep_alive_reuses_connection(self, test_server):
        conn = http.client.HTTPConnection("127.0.0.1", test_server.port, timeout=10)
        try:
            for path in ("/health", "/api/users/1", "/api/orders/order-1"):
                conn.request("GET", path)
                response = conn.getresponse()
                json.loads(response.read())
                assert response.status == 200
                assert response.getheader("Connection") == "keep-alive"
        finally:
            conn.close()

    def test_malformed_request(self, test_server):
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=10) as sock:
            sock.sendall(b"GARBAGE\r\n\r\n")
            data = b""
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                data += chunk

        head, _, body = data.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 400")
        assert b"Access-Control-Allow-Origin: *" in head
        assert json.loads(body)["statusCode"] == 400
