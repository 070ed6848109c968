"""
Controller registry.

Holds the application's controllers and installs their routes. A
controller whose setup_routes() raises is logged and skipped so that the
remaining controllers still serve.
"""

import logging
from typing import List, Optional, Type, TypeVar

from .base import BaseController
from ..http.router import Router


logger = logging.getLogger(__name__)

C = TypeVar("C", bound=BaseController)


class ControllerRegistry:
    """
    Usage:
        registry = ControllerRegistry()
        registry.register(UserController(dispatcher))
        registry.register(OrderController(dispatcher))
        registry.setup_routes(router)

        registry.get_controller(UserController).users
    """

    def __init__(self):
        self._controllers: List[BaseController] = []

    def register(self, controller: BaseController) -> "ControllerRegistry":
        self._controllers.append(controller)
        logger.debug(f"Registered controller: {controller.name}")
        return self

    def setup_routes(self, router: Router) -> int:
        """
        Install every controller's routes.

        Returns:
            Number of controllers whose routes were installed.
        """
        logger.info(f"Setting up routes for {len(self._controllers)} controllers")

        configured = 0
        for controller in self._controllers:
            try:
                controller.setup_routes(router)
            except Exception as e:
                logger.error(
                    f"Failed to setup routes for controller: {controller.name}: {e}",
                    exc_info=True,
                )
                continue
            configured += 1
            logger.info(f"Routes configured for: {controller.name}")

        logger.info(f"Configured routes for {configured}/{len(self._controllers)} controllers")
        return configured

    @property
    def controllers(self) -> List[BaseController]:
        return list(self._controllers)

    def get_controller(self, controller_type: Type[C]) -> Optional[C]:
        """First registered controller that is an instance of controller_type."""
        for controller in self._controllers:
            if isinstance(controller, controller_type):
                return controller
        return None

    def __len__(self) -> int:
        return len(self._controllers)
