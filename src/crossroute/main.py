"""Main entry point - serves the route discovery API."""

import asyncio
import logging
import signal
from typing import Optional

import uvicorn

from crossroute.api.app import create_app
from crossroute.config import Settings, get_settings
from crossroute.routing.factory import create_route_service

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    if settings.debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


class Application:
    """Owns the route service and the uvicorn server serving it."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.server: Optional[uvicorn.Server] = None

    def _build_server(self) -> uvicorn.Server:
        service = create_route_service(self.settings)
        venues = ", ".join(f"{a.name}({a.priority})" for a in service.adapters.all())
        logger.info(f"Venues: {venues}")
        bridges = ", ".join(p.name for p in service.cross_chain.bridge.registry.all())
        logger.info(f"Bridges: {bridges}")

        config = uvicorn.Config(
            create_app(route_service=service),
            host=self.settings.api_host,
            port=self.settings.api_port,
            log_level="debug" if self.settings.debug else "info",
        )
        return uvicorn.Server(config)

    async def start(self):
        """Serve until shutdown is requested; the app lifespan closes the service."""
        logger.info("Starting Crossroute...")
        logger.info(f"Environment: {self.settings.environment}")
        if self.settings.dry_run:
            logger.warning("DRY_RUN enabled - quotes come from simulated venues")

        self.server = self._build_server()
        logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
        try:
            await self.server.serve()
        except Exception as e:
            logger.error(f"API error: {e}")
            raise
        logger.info("Shutdown complete")

    def shutdown(self):
        logger.info("Shutdown requested")
        if self.server is not None:
            self.server.should_exit = True


def main():
    """Main entry point."""
    settings = get_settings()
    configure_logging(settings)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    app = Application(settings)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
