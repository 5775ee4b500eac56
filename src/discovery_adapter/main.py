"""Command-line entry point: serve the adapter over HTTP or stdio."""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from .config import Settings, get_settings
from .logging import configure_logging
from .server import HTTP_TRANSPORTS, build_server

logger = logging.getLogger(__name__)


async def serve(settings: Settings) -> None:
    mcp, app = await build_server(settings)
    transport = settings.adapter_transport.lower()

    if transport not in HTTP_TRANSPORTS:
        logger.info("Serving %s on stdio", settings.service_name)
        await mcp.run_stdio_async()
        return

    if app is None:
        raise RuntimeError(f"FastMCP returned no ASGI app for transport={transport}")
    logger.info(
        "Serving %s over %s on %s:%s",
        settings.service_name,
        transport,
        settings.adapter_host,
        settings.adapter_port,
    )
    await uvicorn.Server(
        uvicorn.Config(app, host=settings.adapter_host, port=settings.adapter_port)
    ).serve()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.adapter_log_level)
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
