"""
Quote Stream runner.
Ties config, logging and a quote session together: startup, subscriptions, shutdown.
"""

from __future__ import annotations
import asyncio
import sys
import signal
import logging
from typing import Optional

from dotenv import load_dotenv

from config import StreamConfig
from protocol.errors import StreamError
from streaming.processors import QuoteProcessor
from streaming.session import QuoteSession

logger = logging.getLogger(__name__)


def setup_logging(config: StreamConfig):
    handlers = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


class Streamer:
    """Owns one session and logs cached quotes until stopped."""

    def __init__(self, config: StreamConfig):
        self.config = config
        self.session: Optional[QuoteSession] = None
        self._running = False

    async def start(self):
        """Full startup sequence."""
        self.session = await QuoteSession.create(
            config=self.config.session,
            connection=self.config.connection,
        )
        self.session.register_processor(
            QuoteProcessor(
                self.session.store,
                price_field=self.config.price_field,
                indicator_field=self.config.indicator_field,
            )
        )

        await self.session.connect()
        for symbol in self.config.symbols:
            await self.session.add_symbol(symbol)

        self._running = True
        logger.info(f"[BOOT] Streaming {len(self.config.symbols)} symbols")

        status = asyncio.create_task(self._status_loop())
        try:
            await self.session.wait_closed()
        finally:
            self._running = False
            status.cancel()

    async def stop(self):
        """Graceful shutdown."""
        logger.info("[SHUTDOWN] Stopping...")
        self._running = False
        if self.session:
            await self.session.close()
        logger.info("[SHUTDOWN] Complete.")

    async def _status_loop(self):
        """Periodically log the cached (price, indicator) pairs."""
        while self._running:
            await asyncio.sleep(self.config.status_interval)
            for symbol in self.session.symbols():
                price, indicator = self.session.get_data(symbol)
                logger.info(f"[DATA] {symbol}: price={price} indicator={indicator}")


async def main():
    """Entry point."""
    load_dotenv()
    config = StreamConfig.from_env()
    setup_logging(config)

    if not config.symbols:
        logger.critical("TV_SYMBOLS must list at least one EXCHANGE:TICKER symbol")
        sys.exit(1)

    streamer = Streamer(config)

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}. Initiating shutdown...")
            asyncio.create_task(streamer.stop())

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))

    try:
        await streamer.start()
    except StreamError as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        await streamer.stop()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
