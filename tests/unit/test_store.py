"""
Unit tests for the in-memory entity stores.
"""

import threading
from decimal import Decimal

from offloadapi.models import OrderStatus, User
from offloadapi.store import EntityStore, create_order_store, create_user_store


class TestEntityStore:
    """Tests for EntityStore."""

    def test_put_get_remove(self):
        store: EntityStore[User] = EntityStore("users")
        user = User("1", "John", "john@example.com")

        store.put("1", user)

        assert store.get("1") is user
        assert store.contains("1")
        assert store.remove("1") is user
        assert store.get("1") is None
        assert store.remove("1") is None

    def test_list_is_snapshot(self):
        store: EntityStore[User] = EntityStore("users")
        store.put("1", User("1"))

        snapshot = store.list()
        store.put("2", User("2"))

        assert len(snapshot) == 1
        assert len(store) == 2

    def test_insert_new_uses_prefix(self):
        store: EntityStore[User] = EntityStore("orders", id_prefix="order-")

        entity = store.insert_new(lambda new_id: User(id=new_id))

        assert entity.id.startswith("order-")
        assert entity.id[len("order-"):].isdigit()
        assert store.get(entity.id) is entity

    def test_insert_new_same_millisecond(self, monkeypatch):
        """Test that creates inside one millisecond still get distinct ids."""
        monkeypatch.setattr("offloadapi.store.current_millis", lambda: 1718000000000)
        store: EntityStore[User] = EntityStore("users")

        first = store.insert_new(lambda new_id: User(id=new_id))
        second = store.insert_new(lambda new_id: User(id=new_id))

        assert first.id == "1718000000000"
        assert second.id == "1718000000001"

    def test_concurrent_insert_new(self):
        """Test that concurrent creates never overwrite each other."""
        store: EntityStore[User] = EntityStore("users")
        barrier = threading.Barrier(8)
        ids = []
        ids_lock = threading.Lock()

        def worker():
            barrier.wait()
            for _ in range(25):
                user = store.insert_new(lambda new_id: User(id=new_id))
                with ids_lock:
                    ids.append(user.id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ids) == 200
        assert len(set(ids)) == 200
        assert len(store) == 200


class TestSeedData:
    """Tests for the seeded stores."""

    def test_user_seed(self):
        store = create_user_store()

        assert len(store) == 2
        assert store.get("1").name == "John Doe"
        assert store.get("2").email == "jane@example.com"

    def test_order_seed(self):
        store = create_order_store()

        first = store.get("order-1")
        second = store.get("order-2")

        assert first.status is OrderStatus.CONFIRMED
        assert first.total_amount == Decimal("1059.97")
        assert second.status is OrderStatus.PROCESSING
        assert second.total_amount == Decimal("379.98")

    def test_stores_are_independent(self):
        """Test that each call returns a fresh store."""
        a = create_user_store()
        b = create_user_store()
        a.remove("1")

        assert b.contains("1")
