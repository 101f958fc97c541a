"""Application entry point and drop-folder polling loop.

Main owns the IconService for the lifetime of the process: it loads persisted
settings, ingests the drop folder, loads the catalog and starts rotation.
The loop then rescans the drop folder every INPUT_POLL_SECONDS so images
copied into input-icons/ appear without an explicit process command.

The host (a game server bridge) calls Main.service.on_status_query() for each
status ping and the /icon command dispatcher calls the other IconService
operations. Both run on this event loop.
"""

import asyncio

from loguru import logger

from .config import get_config
from .db import database
from .service import IconService

INPUT_POLL_SECONDS = 60


class Main:
    def __init__(self):
        """Initialize the main application (sync setup only). Call start() to load icons."""
        self.service: IconService | None = None

    async def start(self) -> None:
        """Load settings from the database and bring the icon service up."""
        self.service = await IconService.load()
        await self.service.start()
        logger.info(f"Serving {len(self.service.list())} icons in {self.service.mode} mode.")

    async def poll_once(self) -> None:
        """Run a cycle of the main polling loop."""
        assert self.service is not None, "Must call start() before poll_once()"
        logger.debug("Checking for input icons...")
        await self.service.process_input()

    async def stop(self) -> None:
        if self.service is not None:
            await self.service.stop()


async def _async_main():
    """Async entry point for iconic."""
    # Set up logging
    cfg = get_config()
    log_file = cfg.logs_dir / "iconic.log"
    log_fmt = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
    logger.add(log_file, rotation="10 MB", retention="7 days", level="DEBUG", format=log_fmt)
    logger.info("============================================================================================")
    logger.info("iconic - rotating server list icons")
    logger.debug(f"iconic-home: {cfg.home}")
    logger.debug(f"Logging to file: {log_file}")
    logger.info(f"Place new icon images in: {cfg.input_dir}")
    async with database():
        worker = Main()
        await worker.start()
        consecutive_errors = 0
        try:
            while True:
                try:
                    await asyncio.sleep(INPUT_POLL_SECONDS)
                except (KeyboardInterrupt, asyncio.CancelledError):
                    logger.info("Exiting due to user interrupt.")
                    return
                try:
                    await worker.poll_once()
                    consecutive_errors = 0  # Reset on success
                except Exception as e:
                    consecutive_errors += 1
                    logger.error(f"Error during polling cycle: {e} (consecutive errors: {consecutive_errors})")
                    if consecutive_errors >= 3:
                        logger.critical("Three consecutive errors encountered. Exiting.")
                        raise
        finally:
            await worker.stop()


def main():
    """Main entry point for iconic."""
    asyncio.run(_async_main())


if __name__ == "__main__":
    main()
