"""
Application wiring.

create_app() builds the API on an HTTPServer: CORS first so that every
response carries its headers, access logging next, then the user and
order controllers and the monitoring endpoints.
"""

import logging
from typing import Optional

from .config import ServerConfig
from .controllers import OrderController, UserController
from .handlers import MonitoringEndpoints
from .middleware import CORSMiddleware, LoggingMiddleware
from .server import HTTPServer


logger = logging.getLogger(__name__)


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Create the API server, ready to run().

        server = create_app(ServerConfig(port=8080))
        server.run()
    """
    config = config or ServerConfig()
    server = HTTPServer(config)

    server.use(CORSMiddleware())
    server.use(LoggingMiddleware(log_format=config.log_format))

    logger.info("Registering HTTP controllers...")
    server.registry.register(
        UserController(server.dispatcher, latency_scale=config.latency_scale)
    )
    server.registry.register(
        OrderController(server.dispatcher, latency_scale=config.latency_scale)
    )
    logger.info(f"Registered {len(server.registry)} controllers")
    server.registry.setup_routes(server.router)

    MonitoringEndpoints(server.instance_id, server.worker_pool_name).setup_routes(server.router)

    return server
