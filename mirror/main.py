"""
Main entry point for Mirror Search.
"""

import asyncio
import functools
import os
import signal

from aiohttp import web

from mirror.server import create_app
from mirror.service import build_service
from mirror.utils.config import get_settings
from mirror.utils.logging import configure_logging, get_logger


async def serve(host: str, port: int) -> None:
    """Run the HTTP server until SIGINT or SIGTERM."""
    logger = get_logger(__name__)
    settings = get_settings()

    service = build_service(settings)
    app = create_app(service.orchestrator, service.engine, settings, client=service.client)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(
        "Mirror Search running",
        host=host,
        port=port,
        version=settings.general.version,
    )

    # Wait for shutdown signal
    stop_event = asyncio.Event()

    def handle_signal(sig: int) -> None:
        logger.info("Received shutdown signal", signal=sig)
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, functools.partial(handle_signal, sig))

    await stop_event.wait()

    logger.info("Shutting down Mirror Search")
    await runner.cleanup()


def main() -> None:
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Mirror Search - privacy-first search with query anonymization"
    )
    parser.add_argument("--host", type=str, help="Bind address (default: server.host)")
    parser.add_argument("--port", "-p", type=int, help="Bind port (default: server.port)")
    parser.add_argument(
        "--config-dir",
        type=str,
        help="Directory containing settings.yaml (default: ./config)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override general.log_level",
    )

    args = parser.parse_args()

    if args.config_dir:
        os.environ["MIRROR_CONFIG_DIR"] = args.config_dir
        get_settings.cache_clear()

    settings = get_settings()
    configure_logging(log_level=args.log_level or settings.general.log_level)

    try:
        asyncio.run(serve(args.host or settings.server.host, args.port or settings.server.port))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
