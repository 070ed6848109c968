"""
=============================================================================
ORDER CONTROLLER
=============================================================================

CRUD for orders, status changes and the price breakdown.

    ┌────────┬──────────────────────────────────────┬──────────┬─────────────┐
    │ Method │ Path                                 │ Success  │ Failure     │
    ├────────┼──────────────────────────────────────┼──────────┼─────────────┤
    │ GET    │ /api/orders                          │ 200 list │             │
    │ GET    │ /api/orders/:id                      │ 200      │ 404         │
    │ POST   │ /api/orders                          │ 201      │ 400         │
    │ PUT    │ /api/orders/:id                      │ 200      │ 400 / 404   │
    │ DELETE │ /api/orders/:id                      │ 200 msg  │ 404         │
    │ PUT    │ /api/orders/:id/status               │ 200      │ 400 / 404   │
    │ GET    │ /api/orders/:id/calculate-total      │ 200      │ 404         │
    └────────┴──────────────────────────────────────┴──────────┴─────────────┘

=============================================================================
PRICE BREAKDOWN
=============================================================================

    subtotal    = Σ item.unit_price × item.quantity
    tax         = subtotal × 0.08
    shipping    = 0     if subtotal ≥ 100   else 9.99
    discount    = 5 %   if subtotal ≥ 500   else 0
    final_total = subtotal + tax + shipping − discount

    subtotal  50  →  tax 4.00, shipping 9.99, discount  0, total  63.99
    subtotal 600  →  tax   48, shipping    0, discount 30, total 618

All figures are Decimal, so the totals are exact.

=============================================================================
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from .base import BaseController
from ..core.dispatcher import BlockingTaskDispatcher
from ..errors import InvalidInput, NotFound
from ..http.context import RequestContext
from ..http.router import Router
from ..http.status_codes import HTTPStatus
from ..models import Order, OrderStatus, ZERO, sum_item_totals
from ..store import EntityStore, create_order_store, current_millis


logger = logging.getLogger(__name__)


INVALID_ORDER = "Invalid order data"
ORDER_NOT_FOUND = "Order not found"
STATUS_REQUIRED = "Status is required"
INVALID_STATUS = "Invalid status value"

TAX_RATE = Decimal("0.08")
FREE_SHIPPING_THRESHOLD = Decimal("100")
SHIPPING_FEE = Decimal("9.99")
DISCOUNT_THRESHOLD = Decimal("500")
DISCOUNT_RATE = Decimal("0.05")


def price_breakdown(subtotal: Decimal) -> Dict[str, Decimal]:
    """Tax, shipping, discount and final total for a subtotal."""
    tax = subtotal * TAX_RATE
    shipping = ZERO if subtotal >= FREE_SHIPPING_THRESHOLD else SHIPPING_FEE
    discount = subtotal * DISCOUNT_RATE if subtotal >= DISCOUNT_THRESHOLD else ZERO
    return {
        "subtotal": subtotal,
        "tax": tax,
        "shipping": shipping,
        "discount": discount,
        "finalTotal": subtotal + tax + shipping - discount,
    }


class OrderController(BaseController):
    """Handlers for /api/orders."""

    LIST_DELAY = 0.15
    GET_DELAY = 0.075
    CREATE_DELAY = 0.3
    UPDATE_DELAY = 0.2
    DELETE_DELAY = 0.12
    STATUS_DELAY = 0.1
    CALCULATE_DELAY = 0.5

    def __init__(
        self,
        dispatcher: BlockingTaskDispatcher,
        store: Optional[EntityStore[Order]] = None,
        latency_scale: float = 1.0,
    ):
        super().__init__(dispatcher, latency_scale)
        self.orders = store if store is not None else create_order_store()

    def setup_routes(self, router: Router) -> None:
        router.add_route("/api/orders", self.get_all_orders, method="GET")
        router.add_route("/api/orders/:id", self.get_order_by_id, method="GET")
        router.add_route("/api/orders", self.create_order, method="POST")
        router.add_route("/api/orders/:id", self.update_order, method="PUT")
        router.add_route("/api/orders/:id", self.delete_order, method="DELETE")
        router.add_route("/api/orders/:id/status", self.update_order_status, method="PUT")
        router.add_route(
            "/api/orders/:id/calculate-total",
            self.calculate_order_total,
            method="GET",
        )

    # =========================================================================
    # CRUD
    # =========================================================================

    def get_all_orders(self, ctx: RequestContext) -> None:
        def task():
            logger.info("Fetching all orders")
            self.simulate_latency(self.LIST_DELAY)
            self.send_json(ctx, [order.to_dict() for order in self.orders.list()])

        self.handle_async_with_worker(ctx, task)

    def get_order_by_id(self, ctx: RequestContext) -> None:
        order_id = ctx.path_param("id")

        def task():
            logger.info(f"Fetching order with ID: {order_id}")
            self.simulate_latency(self.GET_DELAY)
            self.send_json(ctx, self._require(order_id).to_dict())

        self.handle_async_with_worker(ctx, task)

    def create_order(self, ctx: RequestContext) -> None:
        new_order = self.parse_body(ctx, Order.from_dict)
        if new_order is None or new_order.customer_id is None or not new_order.items:
            self.send_error(ctx, INVALID_ORDER, HTTPStatus.BAD_REQUEST)
            return

        def build(order_id: str) -> Order:
            now = datetime.now()
            new_order.id = order_id
            new_order.recalculate_total()
            new_order.status = OrderStatus.PENDING
            new_order.created_at = now
            new_order.updated_at = now
            return new_order

        def task():
            logger.info(f"Creating new order for customer: {new_order.customer_id}")
            self.simulate_latency(self.CREATE_DELAY)
            created = self.orders.insert_new(build)
            self.send_json(ctx, created.to_dict(), HTTPStatus.CREATED)

        self.handle_async_with_worker(ctx, task)

    def update_order(self, ctx: RequestContext) -> None:
        """
        Replace an order.

        id and createdAt survive the replacement. The total is recomputed
        only when the new content has items; otherwise the supplied
        totalAmount (possibly none) is kept as sent.
        """
        order_id = ctx.path_param("id")
        updated = self.parse_body(ctx, Order.from_dict)
        if updated is None:
            self.send_error(ctx, INVALID_ORDER, HTTPStatus.BAD_REQUEST)
            return

        def task():
            logger.info(f"Updating order with ID: {order_id}")
            self.simulate_latency(self.UPDATE_DELAY)
            existing = self._require(order_id)

            updated.id = order_id
            updated.created_at = existing.created_at
            updated.touch()
            if updated.items:
                updated.recalculate_total()

            self.orders.put(order_id, updated)
            self.send_json(ctx, updated.to_dict())

        self.handle_async_with_worker(ctx, task)

    def delete_order(self, ctx: RequestContext) -> None:
        order_id = ctx.path_param("id")

        def task():
            logger.info(f"Deleting order with ID: {order_id}")
            self.simulate_latency(self.DELETE_DELAY)
            if self.orders.remove(order_id) is None:
                raise NotFound(ORDER_NOT_FOUND)
            self.send_json(ctx, {"message": "Order deleted successfully"})

        self.handle_async_with_worker(ctx, task)

    # =========================================================================
    # STATUS & TOTALS
    # =========================================================================

    def update_order_status(self, ctx: RequestContext) -> None:
        order_id = ctx.path_param("id")
        body = self.get_request_body(ctx)
        if body is None or "status" not in body:
            self.send_error(ctx, STATUS_REQUIRED, HTTPStatus.BAD_REQUEST)
            return

        def task():
            logger.info(f"Updating status for order: {order_id}")
            self.simulate_latency(self.STATUS_DELAY)
            order = self._require(order_id)

            try:
                new_status = OrderStatus.parse(body["status"])
            except ValueError:
                raise InvalidInput(INVALID_STATUS) from None

            # Read-modify-write without a version check: last write wins
            order.set_status(new_status)
            self.orders.put(order_id, order)
            self.send_json(ctx, order.to_dict())

        self.handle_async_with_worker(ctx, task)

    def calculate_order_total(self, ctx: RequestContext) -> None:
        order_id = ctx.path_param("id")

        def task():
            logger.info(f"Calculating total for order: {order_id}")
            order = self._require(order_id)

            self.simulate_latency(self.CALCULATE_DELAY)

            calculation: Dict[str, Any] = {"orderId": order_id}
            calculation.update(price_breakdown(sum_item_totals(order.items)))
            calculation["calculatedAt"] = current_millis()
            self.send_json(ctx, calculation)

        self.handle_async_with_worker(ctx, task)

    def _require(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFound(ORDER_NOT_FOUND)
        return order
