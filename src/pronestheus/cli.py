"""Command-line interface for pronestheus"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from pronestheus import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pronestheus",
        description="Export Nest thermostat, temperature sensor and weather data to Prometheus",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        help="Path to config file (default: auto-detect)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--web-host",
        type=str,
        help="Address to listen on (default: from config, 0.0.0.0)",
    )
    parser.add_argument(
        "--web-port",
        type=int,
        help="Port to listen on (default: from config, 9777)",
    )
    return parser


async def async_main(argv: Optional[list[str]] = None) -> int:
    """Async main entry point"""
    args = build_parser().parse_args(argv)

    import uvicorn

    from pronestheus.config import load_config
    from pronestheus.context import AppContext
    from pronestheus.errors import PronestheusError
    from pronestheus.logging_utils import setup_logging
    from pronestheus.web.app import create_app

    try:
        config = load_config(args.config)
    except PronestheusError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.web_host:
        config.web.host = args.web_host
    if args.web_port:
        config.web.port = args.web_port

    # Setup logging (override with verbose flag if set)
    log_level = "DEBUG" if args.verbose else config.logging.level
    setup_logging(log_level, config.logging.file)

    logger = logging.getLogger(__name__)
    logger.info(f"Starting ProNestheus {__version__}")

    # A reader that cannot be built or authenticated aborts startup
    try:
        context = AppContext.create(config)
        await context.start()
    except PronestheusError as e:
        logger.error(f"Startup failed: {e}")
        return 1

    try:
        app = create_app(context=context)
        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=config.web.host,
                port=config.web.port,
                log_level=log_level.lower(),
                log_config=None,  # Prevent uvicorn from reconfiguring logging
            )
        )
        logger.info(f"Listening on {config.web.host}:{config.web.port}")
        # uvicorn handles SIGINT/SIGTERM and returns from serve()
        await server.serve()
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1
    finally:
        logger.info("Shutting down...")
        await context.shutdown()
        logger.info("Cleanup complete")


def main() -> int:
    """Main entry point - wraps async_main()"""
    return asyncio.run(async_main())


if __name__ == "__main__":
    sys.exit(main())
