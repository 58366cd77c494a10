import sys
import asyncio
import logging
from typing import Optional
from sani.config import LOG_LEVEL
from sani.utils.logger import setup_logging, get_logger
from sani.database.db import DatabaseManager, CacheStoreError
from sani.core.library_manager import LibraryManager
from sani.core.picker import Picker, PickerError
from sani.core.playback_tracker import PlaybackTracker, PlayerError
from sani.core.session import Session

logger = get_logger("sani")

async def run(db: Optional[DatabaseManager] = None, library: Optional[LibraryManager] = None,
              picker: Optional[Picker] = None) -> int:
    db = db or DatabaseManager()
    try:
        first_run = await db.initialize()
    except CacheStoreError as e:
        logger.critical(f"Cannot continue without the cache database: {e}")
        return 1

    library = library or LibraryManager()
    refresh = library.start_refresh()
    try:
        if first_run:
            logger.info("Building the episode catalog for the first time...")
            await refresh

        session = Session(db, picker or Picker(), PlaybackTracker(db))
        return await session.run()
    except (PickerError, PlayerError) as e:
        logger.error(str(e))
        return 1
    finally:
        if not refresh.done():
            refresh.cancel()
            try:
                await refresh
            except asyncio.CancelledError:
                pass
        await db.close()

def main():
    setup_logging(level=logging.getLevelName(LOG_LEVEL))
    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        pass

if __name__ == "__main__":
    main()
