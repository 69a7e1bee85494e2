"""Command-line interface for termrelay.

Provides the main entry point for starting the relay server and for
inspecting the effective configuration.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="termrelay",
        description="WebSocket to SSH terminal relay",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/termrelay.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the relay server")
    serve_parser.add_argument("--host", type=str, default=None, help="Override listen address")
    serve_parser.add_argument("--port", type=int, default=None, help="Override listen port")

    subparsers.add_parser("check-config", help="Print the effective configuration and exit")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the termrelay CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from termrelay.config.settings import load_settings
    from termrelay.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        if args.host:
            settings.server.host = args.host
        if args.port:
            settings.server.port = args.port

        logger.info("Starting relay server on %s:%d", settings.server.host, settings.server.port)
        from termrelay.endpoint.server import create_app
        import uvicorn

        app = create_app(settings)
        uvicorn.run(
            app,
            host=settings.server.host,
            port=settings.server.port,
            log_config=None,
        )

    elif args.command == "check-config":
        print(json.dumps(settings.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    main()
