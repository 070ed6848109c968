"""
=============================================================================
CONTROLLERS
=============================================================================

Resource handlers for the API. Each controller validates on the
event-loop thread and runs store access on the named worker pool:

    UserController   ──► /api/users, /api/users/:id, .../heavy-operation
    OrderController  ──► /api/orders, /api/orders/:id, .../status,
                         .../calculate-total

=============================================================================
"""

from .base import BaseController
from .users import UserController
from .orders import OrderController, price_breakdown
from .registry import ControllerRegistry

__all__ = [
    "BaseController",
    "UserController",
    "OrderController",
    "price_breakdown",
    "ControllerRegistry",
]
