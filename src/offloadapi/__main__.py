"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    # Run with defaults (0.0.0.0:8080)
    python -m offloadapi

    # Custom port
    python -m offloadapi --port 3000

    # Bigger named worker pool, fewer event loops
    python -m offloadapi --workers 32 --event-loops 4

    # No simulated latency, JSON access log
    python -m offloadapi --latency-scale 0 --log-format json

Command-line values override OFFLOAD_* environment variables, which
override the ServerConfig defaults.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .app import create_app
from .config import ServerConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="offloadapi",
        description="Users & orders API that offloads blocking work to worker pools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m offloadapi                          # Run with defaults
  python -m offloadapi --port 3000              # Custom port
  python -m offloadapi --workers 32             # 32-thread named pool
  python -m offloadapi --latency-scale 0        # No simulated I/O delay
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 8080)")

    # ─────────────────────────────────────────────────────────────────────
    # THREADING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--event-loops", "-e",
        type=int,
        help="Number of event-loop threads (default: 2 x CPU cores)"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Size of the named worker pool (default: 10)"
    )
    parser.add_argument(
        "--pool-name",
        help="Base name of the named worker pool (default: worker-pool)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION / LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--latency-scale",
        type=float,
        help="Multiplier for simulated I/O delays, 0 disables them (default: 1.0)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"offloadapi {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment-based config with every given CLI option applied on top."""
    config = ServerConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "event_loop_threads": args.event_loops,
        "worker_pool_size": args.workers,
        "worker_pool_name": args.pool_name,
        "latency_scale": args.latency_scale,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)

    return config


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = create_app(config)
        server.run()
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
