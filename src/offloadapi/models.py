"""
=============================================================================
DOMAIN MODELS
=============================================================================

The two entity types the API serves, plus their JSON mapping.

    User ─── {id, name, email}

    Order ── {id, customerId, items[], totalAmount, status,
              createdAt, updatedAt}
               │
               └── OrderItem {productId, productName, quantity,
                              unitPrice, totalPrice}

=============================================================================
MONEY
=============================================================================

Monetary values are decimal.Decimal, never float:

    >>> 0.1 + 0.2
    0.30000000000000004
    >>> Decimal("0.1") + Decimal("0.2")
    Decimal('0.3')

Request bodies are decoded with parse_float=Decimal so "999.99" stays
exact from the socket to the store. Floats only appear at the very
end, when the response body is serialized, so a value with more than
about 15 significant digits is rounded on the way out.

=============================================================================
JSON MAPPING
=============================================================================

to_dict() produces the camelCase wire shape. from_dict() accepts the
same shape, ignores unknown and server-controlled fields (id,
timestamps, totalPrice) and raises ValueError on values of the wrong
type. Callers turn that ValueError into a 400.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional


ZERO = Decimal("0")


class OrderStatus(Enum):
    """
    Order lifecycle states.

    There is no enforced transition graph: any status can be set to any
    other. Only membership is validated.
    """
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"

    @classmethod
    def parse(cls, value: Any) -> "OrderStatus":
        """
        Case-insensitive lookup by name.

        Raises:
            ValueError: If value is not a string naming a member.
        """
        if not isinstance(value, str):
            raise ValueError(f"Status must be a string, got {type(value).__name__}")
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown order status: {value}") from None


# =============================================================================
# FIELD CONVERSION HELPERS
# =============================================================================

def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, (dict, list, bool)):
        raise ValueError(f"{key} must be a string")
    return str(value)


def to_decimal(value: Any, name: str = "value") -> Decimal:
    """Convert a JSON number to Decimal. Bools and strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValueError(f"{name} must be a number")
    try:
        # str() first so that 0.1 (float) becomes Decimal("0.1")
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name} must be a number") from None
    if not number.is_finite():
        raise ValueError(f"{name} must be a finite number")
    return number


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# USER
# =============================================================================

@dataclass
class User:
    """
    A user of the demo API.

    The id is assigned by the server on creation and only changes via
    an explicit update.
    """
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        """Build a User from a request body (id is ignored)."""
        return cls(
            name=_optional_str(data, "name"),
            email=_optional_str(data, "email"),
        )


# =============================================================================
# ORDER ITEM
# =============================================================================

class OrderItem:
    """
    One line of an order.

    total_price is derived: it always equals unit_price * quantity and
    follows every change to either field. It cannot be set directly.

        >>> item = OrderItem("prod-2", "Mouse", 2, Decimal("29.99"))
        >>> item.total_price
        Decimal('59.98')
        >>> item.quantity = 3
        >>> item.total_price
        Decimal('89.97')
    """

    def __init__(
        self,
        product_id: Optional[str] = None,
        product_name: Optional[str] = None,
        quantity: int = 0,
        unit_price: Decimal = ZERO,
    ):
        self.product_id = product_id
        self.product_name = product_name
        self.quantity = quantity
        self.unit_price = unit_price

    @property
    def quantity(self) -> int:
        return self._quantity

    @quantity.setter
    def quantity(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError("quantity must be an integer >= 0")
        self._quantity = value

    @property
    def unit_price(self) -> Decimal:
        return self._unit_price

    @unit_price.setter
    def unit_price(self, value: Decimal) -> None:
        self._unit_price = to_decimal(value, "unitPrice")

    @property
    def total_price(self) -> Decimal:
        return self._unit_price * self._quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "totalPrice": self.total_price,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "OrderItem":
        """Build an item from a request body; totalPrice is ignored."""
        if not isinstance(data, dict):
            raise ValueError("order item must be an object")
        if "quantity" not in data or "unitPrice" not in data:
            raise ValueError("order item requires quantity and unitPrice")
        return cls(
            product_id=_optional_str(data, "productId"),
            product_name=_optional_str(data, "productName"),
            quantity=data["quantity"],
            unit_price=data["unitPrice"],
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OrderItem):
            return NotImplemented
        return (
            self.product_id == other.product_id
            and self.product_name == other.product_name
            and self.quantity == other.quantity
            and self.unit_price == other.unit_price
        )

    def __repr__(self) -> str:
        return (
            f"OrderItem(product_id={self.product_id!r}, "
            f"product_name={self.product_name!r}, quantity={self.quantity}, "
            f"unit_price={self.unit_price!r}, total_price={self.total_price!r})"
        )


def sum_item_totals(items: List[OrderItem]) -> Decimal:
    """Sum of every item's total_price (0 for no items)."""
    return sum((item.total_price for item in items), ZERO)


# =============================================================================
# ORDER
# =============================================================================

@dataclass
class Order:
    """
    A customer order.

    Invariants kept by the code that mutates orders:
    - total_amount == sum of item totals whenever items are supplied
    - updated_at >= created_at, refreshed on every mutation
    """
    id: Optional[str] = None
    customer_id: Optional[str] = None
    items: List[OrderItem] = field(default_factory=list)
    total_amount: Optional[Decimal] = None
    status: Optional[OrderStatus] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def recalculate_total(self) -> Decimal:
        self.total_amount = sum_item_totals(self.items)
        return self.total_amount

    def set_status(self, status: OrderStatus) -> None:
        """Change status and stamp updated_at."""
        self.status = status
        self.touch()

    def touch(self) -> None:
        self.updated_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "items": [item.to_dict() for item in self.items],
            "totalAmount": self.total_amount,
            "status": self.status.value if self.status else None,
            "createdAt": _timestamp(self.created_at),
            "updatedAt": _timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """
        Build an order from a request body.

        id, createdAt and updatedAt are server-controlled and ignored.
        """
        raw_items = data.get("items")
        if raw_items is None:
            raw_items = []
        if not isinstance(raw_items, list):
            raise ValueError("items must be a list")

        total = data.get("totalAmount")
        status = data.get("status")

        return cls(
            customer_id=_optional_str(data, "customerId"),
            items=[OrderItem.from_dict(item) for item in raw_items],
            total_amount=None if total is None else to_decimal(total, "totalAmount"),
            status=None if status is None else OrderStatus.parse(status),
        )

    @classmethod
    def seed(
        cls,
        order_id: str,
        customer_id: str,
        items: List[OrderItem],
        status: OrderStatus,
    ) -> "Order":
        """Create a stored-looking order with totals and timestamps filled in."""
        now = datetime.now()
        order = cls(
            id=order_id,
            customer_id=customer_id,
            items=list(items),
            status=status,
            created_at=now,
            updated_at=now,
        )
        order.recalculate_total()
        return order
