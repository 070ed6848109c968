"""
Unit tests for OrderController and the price breakdown.
"""

from decimal import Decimal

import pytest

from offloadapi.controllers import OrderController, price_breakdown
from offloadapi.models import Order, OrderItem, OrderStatus


ITEMS = [
    {"productId": "p1", "productName": "Widget", "quantity": 2, "unitPrice": 10.00},
    {"productId": "p2", "productName": "Gadget", "quantity": 1, "unitPrice": 5.00},
]


@pytest.fixture
def orders(dispatcher, router) -> OrderController:
    controller = OrderController(dispatcher, latency_scale=0)
    controller.setup_routes(router)
    return controller


def add_order(controller: OrderController, order_id: str, unit_price: str, quantity: int = 1) -> None:
    controller.orders.put(order_id, Order.seed(
        order_id,
        "customer-x",
        [OrderItem("p", "Thing", quantity, Decimal(unit_price))],
        OrderStatus.PENDING,
    ))


class TestPriceBreakdown:
    """Tests for price_breakdown()."""

    def test_small_order_pays_shipping(self):
        result = price_breakdown(Decimal("50.00"))

        assert result["tax"] == Decimal("4.00")
        assert result["shipping"] == Decimal("9.99")
        assert result["discount"] == Decimal("0")
        assert result["finalTotal"] == Decimal("63.99")

    def test_free_shipping_threshold(self):
        assert price_breakdown(Decimal("100"))["shipping"] == Decimal("0")
        assert price_breakdown(Decimal("99.99"))["shipping"] == Decimal("9.99")

    def test_discount(self):
        result = price_breakdown(Decimal("600"))

        assert result["discount"] == Decimal("30")
        assert result["finalTotal"] == Decimal("618")

    def test_zero_subtotal(self):
        assert price_breakdown(Decimal("0"))["finalTotal"] == Decimal("9.99")


class TestOrderReads:
    """GET /api/orders and /api/orders/:id."""

    def test_list_seed_orders(self, orders, call):
        body = call("GET", "/api/orders").json_body()

        assert sorted(order["id"] for order in body) == ["order-1", "order-2"]

    def test_get_by_id(self, orders, call):
        body = call("GET", "/api/orders/order-1").json_body()

        assert body["customerId"] == "customer-1"
        assert body["status"] == "CONFIRMED"
        assert body["totalAmount"] == 1059.97
        assert body["items"][1]["totalPrice"] == 59.98

    def test_get_unknown(self, orders, call):
        response = call("GET", "/api/orders/nope")

        assert response.status == 404
        assert response.json_body()["message"] == "Order not found"


class TestOrderWrites:
    """POST, PUT and DELETE."""

    def test_create(self, orders, call):
        response = call("POST", "/api/orders", {
            "customerId": "customer-9",
            "items": ITEMS,
            "status": "DELIVERED",
            "totalAmount": 1,
        })

        assert response.status == 201
        body = response.json_body()
        assert body["id"].startswith("order-")
        assert body["totalAmount"] == 25.0
        assert body["status"] == "PENDING"
        assert body["createdAt"] == body["updatedAt"]
        assert orders.orders.contains(body["id"])

    @pytest.mark.parametrize("body", [
        {"items": ITEMS},
        {"customerId": "c", "items": []},
        {"customerId": "c"},
        {"customerId": "c", "items": [{"quantity": -1, "unitPrice": 1}]},
        {"customerId": "c", "items": ITEMS, "status": "BOGUS"},
    ])
    def test_create_invalid(self, orders, call, body):
        response = call("POST", "/api/orders", body)

        assert response.status == 400
        assert response.json_body()["message"] == "Invalid order data"
        assert len(orders.orders) == 2

    @pytest.mark.parametrize("price", ["NaN", "Infinity", "-Infinity"])
    def test_create_rejects_non_finite_price(self, orders, call, price):
        body = '{"customerId": "c", "items": [{"quantity": 1, "unitPrice": ' + price + "}]}"

        response = call("POST", "/api/orders", body)

        assert response.status == 400
        assert response.json_body()["message"] == "Invalid order data"
        assert len(orders.orders) == 2

    def test_update_recalculates_and_keeps_created_at(self, orders, call):
        created_at = orders.orders.get("order-1").created_at

        response = call("PUT", "/api/orders/order-1", {"customerId": "customer-1", "items": ITEMS})

        assert response.status == 200
        stored = orders.orders.get("order-1")
        assert stored.total_amount == Decimal("25.00")
        assert stored.created_at == created_at
        assert stored.updated_at >= created_at

    def test_update_without_items_keeps_sent_total(self, orders, call):
        body = call("PUT", "/api/orders/order-2", {"customerId": "c", "totalAmount": 12.5}).json_body()

        assert body["items"] == []
        assert body["totalAmount"] == 12.5

    def test_update_unknown(self, orders, call):
        assert call("PUT", "/api/orders/missing", {"customerId": "c"}).status == 404

    def test_delete(self, orders, call):
        response = call("DELETE", "/api/orders/order-2")

        assert response.json_body() == {"message": "Order deleted successfully"}
        assert call("GET", "/api/orders/order-2").status == 404


class TestOrderStatus:
    """PUT /api/orders/:id/status."""

    def test_update_status(self, orders, call):
        before = orders.orders.get("order-1").updated_at

        response = call("PUT", "/api/orders/order-1/status", {"status": "shipped"})

        assert response.status == 200
        assert response.json_body()["status"] == "SHIPPED"
        assert orders.orders.get("order-1").updated_at >= before

    def test_bogus_status(self, orders, call):
        response = call("PUT", "/api/orders/order-1/status", {"status": "BOGUS"})

        assert response.status == 400
        assert response.json_body()["message"] == "Invalid status value"
        assert orders.orders.get("order-1").status is OrderStatus.CONFIRMED

    @pytest.mark.parametrize("body", [None, {}, {"state": "SHIPPED"}])
    def test_status_required(self, orders, call, body):
        response = call("PUT", "/api/orders/order-1/status", body)

        assert response.status == 400
        assert response.json_body()["message"] == "Status is required"

    def test_unknown_order(self, orders, call):
        assert call("PUT", "/api/orders/missing/status", {"status": "SHIPPED"}).status == 404


class TestCalculateTotal:
    """GET /api/orders/:id/calculate-total."""

    def test_shipping_charged(self, orders, call):
        add_order(orders, "order-small", "25.00", quantity=2)

        body = call("GET", "/api/orders/order-small/calculate-total").json_body()

        assert body["orderId"] == "order-small"
        assert body["subtotal"] == 50.0
        assert body["tax"] == 4.0
        assert body["shipping"] == 9.99
        assert body["discount"] == 0
        assert body["finalTotal"] == 63.99
        assert isinstance(body["calculatedAt"], int)

    def test_discount_applied(self, orders, call):
        add_order(orders, "order-big", "600")

        body = call("GET", "/api/orders/order-big/calculate-total").json_body()

        assert body["shipping"] == 0
        assert body["discount"] == 30.0
        assert body["finalTotal"] == 618.0

    def test_unknown_order(self, orders, call):
        assert call("GET", "/api/orders/missing/calculate-total").status == 404
