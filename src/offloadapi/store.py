"""
=============================================================================
IN-MEMORY ENTITY STORES
=============================================================================

A thread-safe id -> entity mapping, one instance per entity type.

=============================================================================
CONCURRENCY
=============================================================================

Many worker threads read and write the same store. Each operation takes
the store's own lock, so callers never lock anything themselves:

    worker-thread-3 ──► get("1") ──┐
    worker-thread-7 ──► put("2") ──┼──► [ lock ] ──► dict
    worker-pool-a-1 ──► list() ────┘

Granularity is one key per call. There are no multi-step transactions:
a handler doing get -> modify -> put can race with another writer to
the same id, and the last put wins.

The user store and the order store have separate locks.

=============================================================================
IDENTIFIERS
=============================================================================

New ids are derived from the current time in epoch milliseconds
("1718000000000", "order-1718000000000"). Two creates inside the same
millisecond would collide, so insert_new() bumps the millisecond value
until it finds a free id, under the lock.

=============================================================================
"""

import logging
import threading
import time
from decimal import Decimal
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from .models import Order, OrderItem, OrderStatus, User


logger = logging.getLogger(__name__)

T = TypeVar("T")


def current_millis() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class EntityStore(Generic[T]):
    """
    Thread-safe keyed collection for one entity type.

    Usage:
        users = EntityStore[User]("users")
        users.put("1", User(id="1", name="John", email="j@x.com"))
        users.get("1")        # -> User
        users.list()          # -> [User]  (snapshot)
        users.remove("1")     # -> User, or None if absent
    """

    def __init__(self, name: str, id_prefix: str = ""):
        """
        Args:
            name: Store name for logging.
            id_prefix: Prefix for generated ids ("order-" for orders).
        """
        self.name = name
        self.id_prefix = id_prefix
        self._items: Dict[str, T] = {}
        self._lock = threading.Lock()

    def get(self, entity_id: str) -> Optional[T]:
        with self._lock:
            return self._items.get(entity_id)

    def list(self) -> List[T]:
        """Snapshot of all entities. Order is unspecified."""
        with self._lock:
            return list(self._items.values())

    def put(self, entity_id: str, entity: T) -> None:
        with self._lock:
            self._items[entity_id] = entity

    def remove(self, entity_id: str) -> Optional[T]:
        with self._lock:
            return self._items.pop(entity_id, None)

    def contains(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._items

    def insert_new(self, build: Callable[[str], T]) -> T:
        """
        Store a new entity under a freshly generated unique id.

        Args:
            build: Called with the new id, returns the entity to store.
                   Runs under the store lock, so keep it cheap.

        Returns:
            The stored entity.
        """
        with self._lock:
            millis = current_millis()
            entity_id = f"{self.id_prefix}{millis}"
            while entity_id in self._items:
                millis += 1
                entity_id = f"{self.id_prefix}{millis}"
            entity = build(entity_id)
            self._items[entity_id] = entity
            return entity

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __repr__(self) -> str:
        return f"EntityStore(name={self.name!r}, size={len(self)})"


# =============================================================================
# SEED DATA
# =============================================================================
#
# Every process starts with the same two users and two orders so the
# API has something to show right away. Data is never persisted.
#
# =============================================================================

def create_user_store() -> EntityStore[User]:
    """User store seeded with John Doe (1) and Jane Smith (2)."""
    store: EntityStore[User] = EntityStore("users")
    store.put("1", User(id="1", name="John Doe", email="john@example.com"))
    store.put("2", User(id="2", name="Jane Smith", email="jane@example.com"))
    logger.debug(f"Seeded {store!r}")
    return store


def create_order_store() -> EntityStore[Order]:
    """Order store seeded with order-1 (CONFIRMED) and order-2 (PROCESSING)."""
    store: EntityStore[Order] = EntityStore("orders", id_prefix="order-")

    store.put("order-1", Order.seed(
        "order-1",
        "customer-1",
        [
            OrderItem("prod-1", "Laptop", 1, Decimal("999.99")),
            OrderItem("prod-2", "Mouse", 2, Decimal("29.99")),
        ],
        OrderStatus.CONFIRMED,
    ))
    store.put("order-2", Order.seed(
        "order-2",
        "customer-2",
        [
            OrderItem("prod-3", "Keyboard", 1, Decimal("79.99")),
            OrderItem("prod-4", "Monitor", 1, Decimal("299.99")),
        ],
        OrderStatus.PROCESSING,
    ))
    logger.debug(f"Seeded {store!r}")
    return store
