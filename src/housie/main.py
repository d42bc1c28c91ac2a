#!/usr/bin/env python3
"""
Housie Live Server

Main entry point: wires the game store, room hub, session controller and
the FastAPI web server, then runs until SIGINT/SIGTERM.
"""

import asyncio
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from housie.game.controller import DEFAULT_AUTO_PLAY_INTERVAL, GameController
from housie.game.draw_engine import DrawEngine
from housie.game.rooms import RoomHub
from housie.game.store import MemoryStore
from housie.game.tickets import seed_demo_game
from housie.utils.config import as_bool, get_config_value, load_config
from housie.utils.logger import configure_logging, get_logger, resolve_log_path
from housie.web_server import HousieWebServer

logger = get_logger(__name__)


class HousieServerApp:
    """Housie live server application.

    Responsible for building the store, room hub, controller and web server,
    and for a graceful shutdown that stops every auto-play timer.
    """

    def __init__(self, config=None):
        self.config = config if config is not None else load_config()
        configure_logging(
            get_config_value(self.config, "logging.level"),
            get_config_value(self.config, "logging.file"),
        )
        self.store = None
        self.hub = None
        self.controller = None
        self.web_server = None
        self.running = True

        logger.info("🎱 Housie server application initialized")

    def _display_config_summary(self):
        """Display key configuration options for diagnostics."""
        logger.info("=" * 60)
        logger.info("📋 CONFIGURATION SUMMARY")
        logger.info("=" * 60)
        logger.info(f"⏱️  Auto-play interval: {self.auto_play_interval}s")
        logger.info(f"🌍 Server Host: {get_config_value(self.config, 'server.host', '0.0.0.0')}")
        logger.info(f"🔌 Server Port: {get_config_value(self.config, 'server.port', 3001)}")
        logger.info(f"🧪 Seed demo game: {as_bool(get_config_value(self.config, 'app.seed_demo', False))}")
        logger.info(f"📝 Log file: {resolve_log_path(get_config_value(self.config, 'logging.file')) or 'console only'}")
        logger.info("=" * 60)

    @property
    def auto_play_interval(self) -> float:
        return float(get_config_value(self.config, "game.auto_play_interval_sec", DEFAULT_AUTO_PLAY_INTERVAL))

    def initialize(self):
        """Build store, hub, controller and web server instances."""
        self._display_config_summary()

        self.store = MemoryStore()
        self.hub = RoomHub()
        self.controller = GameController(
            games=self.store,
            tickets=self.store,
            users=self.store,
            hub=self.hub,
            engine=DrawEngine(),
            auto_play_interval=self.auto_play_interval,
        )
        self.web_server = HousieWebServer(self.config, self.controller, self.hub)

        if as_bool(get_config_value(self.config, "app.seed_demo", False)):
            tickets = int(get_config_value(self.config, "app.demo_tickets", 6))
            game = seed_demo_game(self.store, tickets=tickets)
            logger.info(f"🎟️  Demo game ready: {game.id} (store: {self.store.counts()})")

        logger.info("🎉 Application initialization completed")

    async def start(self):
        """Start the web server and run until a shutdown signal is received."""
        self.initialize()

        host = get_config_value(self.config, "server.host", "0.0.0.0")
        port = int(get_config_value(self.config, "server.port", 3001))

        logger.info(f"🌍 Starting web server on {host}:{port}...")
        server_task = asyncio.create_task(self.web_server.start(host=host, port=port))
        try:
            # Give the server a moment to attempt bind
            await asyncio.sleep(0.2)
            if server_task.done() and server_task.exception():
                raise server_task.exception()

            logger.info(f"📡 WebSocket API: ws://{host}:{port}/ws/game")
            logger.info(f"🔧 API Endpoints: http://{host}:{port}/api/")

            while self.running and not server_task.done():
                await asyncio.sleep(1)

            logger.info("🛑 Shutdown signal received, stopping application...")
        finally:
            await self.stop()
            if not server_task.done():
                server_task.cancel()
                try:
                    await server_task
                except asyncio.CancelledError:
                    pass

    async def stop(self):
        """Stop all services. Safe to call more than once."""
        self.running = False
        if self.web_server:
            try:
                await self.web_server.stop()
                logger.info("✅ Web server stopped")
            except Exception as e:
                logger.error(f"❌ Error stopping web server: {e}")
        logger.info("🟢 Housie server stopped")

    def _handle_signal(self, signum, frame):
        logger.info(f"📡 Received signal {signum}, initiating graceful shutdown...")
        self.running = False


async def main():
    """Main entry point for the Housie server"""
    env_path = Path.cwd() / ".env"
    load_dotenv(env_path)

    app = HousieServerApp()
    signal.signal(signal.SIGINT, app._handle_signal)
    signal.signal(signal.SIGTERM, app._handle_signal)

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("🛑 Interrupted by user")
    except Exception as e:
        logger.exception(f"❌ Housie server failed: {e}")
        sys.exit(1)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
