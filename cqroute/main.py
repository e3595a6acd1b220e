"""
Main entry point for the cqroute webhook receiver.
"""

import asyncio
import signal
import sys
from typing import Optional

from cqroute.bot.middleware.logging import LoggingMiddleware
from cqroute.bot.sender import Sender
from cqroute.bot.server import Server, create_server
from cqroute.config.settings import get_settings
from cqroute.core.app import App
from cqroute.infra.exceptions import StartupError
from cqroute.infra.logger import setup_logger, get_logger


logger = get_logger(__name__)


class Application:
    """Wires settings, sender, app and server together."""

    def __init__(self):
        self.settings = get_settings()
        self.sender: Optional[Sender] = None
        self.app: Optional[App] = None
        self.server: Optional[Server] = None
        self._shutdown_event = asyncio.Event()

    def initialize(self) -> App:
        """Create the app and its collaborators. Plugins are installed on the returned app."""
        logger.info("Initializing application components...")

        self.sender = Sender(
            server=self.settings.server,
            token=self.settings.token
        )
        self.app = App(settings=self.settings, sender=self.sender)
        self.app.plugin(LoggingMiddleware())
        self.server = create_server(self.app)

        logger.info(f"Settings: {self.settings.to_dict()}")
        return self.app

    async def start(self) -> None:
        """Start listening and block until a shutdown signal arrives."""
        if self.app is None:
            self.initialize()

        self._setup_signal_handlers()

        try:
            await self.server.listen()
        except OSError as e:
            raise StartupError(f"Cannot listen on port {self.settings.port}: {e}", component="server")

        try:
            logger.info("Receiver is running. Press Ctrl+C to stop.")
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Gracefully shutdown the application."""
        logger.info("Shutting down application...")

        if self.server:
            await self.server.stop()

        if self.sender:
            await self.sender.close()

        logger.info("Application shutdown complete")

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._shutdown_event.set)


async def main() -> None:
    """Main entry point."""
    settings = get_settings()
    setup_logger(
        level=settings.log_level,
        log_file=settings.log_file,
        format_string=settings.log_format,
        force=True
    )

    application = Application()

    try:
        await application.start()
    except StartupError as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
