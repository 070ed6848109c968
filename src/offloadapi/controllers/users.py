"""
=============================================================================
USER CONTROLLER
=============================================================================

CRUD for users plus a CPU-heavy endpoint.

    ┌────────┬──────────────────────────────────┬──────────┬─────────────┐
    │ Method │ Path                             │ Success  │ Failure     │
    ├────────┼──────────────────────────────────┼──────────┼─────────────┤
    │ GET    │ /api/users                       │ 200 list │             │
    │ GET    │ /api/users/:id                   │ 200      │ 404         │
    │ POST   │ /api/users                       │ 201      │ 400         │
    │ PUT    │ /api/users/:id                   │ 200      │ 400 / 404   │
    │ DELETE │ /api/users/:id                   │ 200 msg  │ 404         │
    │ GET    │ /api/users/:id/heavy-operation   │ 200      │ 404         │
    └────────┴──────────────────────────────────┴──────────┴─────────────┘

Every handler runs its store access on the named worker pool. The heavy
operation is a pure CPU loop: on an event-loop thread it would stall
every connection that thread serves.

=============================================================================
"""

import logging
import random
from typing import Optional

from .base import BaseController
from ..core.dispatcher import BlockingTaskDispatcher
from ..errors import NotFound
from ..http.context import RequestContext
from ..http.router import Router
from ..http.status_codes import HTTPStatus
from ..models import User
from ..store import EntityStore, create_user_store


logger = logging.getLogger(__name__)


INVALID_USER = "Invalid user data"
USER_NOT_FOUND = "User not found"


class UserController(BaseController):
    """Handlers for /api/users."""

    # Simulated I/O per operation, in seconds before latency_scale
    LIST_DELAY = 0.1
    GET_DELAY = 0.05
    CREATE_DELAY = 0.2
    UPDATE_DELAY = 0.15
    DELETE_DELAY = 0.1

    # Pseudo-random accumulations performed by the heavy operation
    HEAVY_ITERATIONS = 1_000_000

    def __init__(
        self,
        dispatcher: BlockingTaskDispatcher,
        store: Optional[EntityStore[User]] = None,
        latency_scale: float = 1.0,
    ):
        super().__init__(dispatcher, latency_scale)
        self.users = store if store is not None else create_user_store()

    def setup_routes(self, router: Router) -> None:
        router.add_route("/api/users", self.get_all_users, method="GET")
        router.add_route("/api/users/:id", self.get_user_by_id, method="GET")
        router.add_route("/api/users", self.create_user, method="POST")
        router.add_route("/api/users/:id", self.update_user, method="PUT")
        router.add_route("/api/users/:id", self.delete_user, method="DELETE")
        router.add_route(
            "/api/users/:id/heavy-operation",
            self.perform_heavy_operation,
            method="GET",
        )

    def get_all_users(self, ctx: RequestContext) -> None:
        def task():
            logger.info("Fetching all users")
            self.simulate_latency(self.LIST_DELAY)
            self.send_json(ctx, [user.to_dict() for user in self.users.list()])

        self.handle_async_with_worker(ctx, task)

    def get_user_by_id(self, ctx: RequestContext) -> None:
        user_id = ctx.path_param("id")

        def task():
            logger.info(f"Fetching user with ID: {user_id}")
            self.simulate_latency(self.GET_DELAY)
            user = self.users.get(user_id)
            if user is None:
                raise NotFound(USER_NOT_FOUND)
            self.send_json(ctx, user.to_dict())

        self.handle_async_with_worker(ctx, task)

    def create_user(self, ctx: RequestContext) -> None:
        new_user = self.parse_body(ctx, User.from_dict)
        if new_user is None or new_user.name is None or new_user.email is None:
            self.send_error(ctx, INVALID_USER, HTTPStatus.BAD_REQUEST)
            return

        def task():
            logger.info(f"Creating new user: {new_user.name}")
            self.simulate_latency(self.CREATE_DELAY)
            created = self.users.insert_new(
                lambda user_id: User(id=user_id, name=new_user.name, email=new_user.email)
            )
            self.send_json(ctx, created.to_dict(), HTTPStatus.CREATED)

        self.handle_async_with_worker(ctx, task)

    def update_user(self, ctx: RequestContext) -> None:
        user_id = ctx.path_param("id")
        updated = self.parse_body(ctx, User.from_dict)
        if updated is None:
            self.send_error(ctx, INVALID_USER, HTTPStatus.BAD_REQUEST)
            return

        def task():
            logger.info(f"Updating user with ID: {user_id}")
            self.simulate_latency(self.UPDATE_DELAY)
            if not self.users.contains(user_id):
                raise NotFound(USER_NOT_FOUND)
            updated.id = user_id
            self.users.put(user_id, updated)
            self.send_json(ctx, updated.to_dict())

        self.handle_async_with_worker(ctx, task)

    def delete_user(self, ctx: RequestContext) -> None:
        user_id = ctx.path_param("id")

        def task():
            logger.info(f"Deleting user with ID: {user_id}")
            self.simulate_latency(self.DELETE_DELAY)
            if self.users.remove(user_id) is None:
                raise NotFound(USER_NOT_FOUND)
            self.send_json(ctx, {"message": "User deleted successfully"})

        self.handle_async_with_worker(ctx, task)

    def perform_heavy_operation(self, ctx: RequestContext) -> None:
        user_id = ctx.path_param("id")

        def task():
            logger.info(f"Performing heavy operation for user: {user_id}")
            user = self.users.get(user_id)
            if user is None:
                raise NotFound(USER_NOT_FOUND)

            result = self.complex_calculation()

            self.send_json(ctx, {
                "userId": user_id,
                "userName": user.name,
                "calculationResult": result,
                "processingTime": "Heavy operation completed",
            })

        self.handle_async_with_worker(ctx, task)

    def complex_calculation(self) -> int:
        """Sum HEAVY_ITERATIONS random values in [0, 1000), modulo 10000."""
        total = 0
        for _ in range(self.HEAVY_ITERATIONS):
            total += random.randrange(1000)
        return total % 10000
