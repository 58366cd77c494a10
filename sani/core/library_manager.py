import asyncio
import os
from pathlib import Path
from typing import Optional, List, Callable, Dict
from ..database.db import open_connection, identity_to_columns
from ..utils.file_scanner import FileScanner
from ..config import DB_PATH, LIBRARY_DIRS, SCAN_MAX_DEPTH
from ..utils.logger import get_logger

logger = get_logger(__name__)

class LibraryManager:
    """
    Keeps the episode catalog in step with the library folders on disk.

    The scan uses its own database connection so the interactive queries on
    DatabaseManager's connection keep working while it runs (WAL mode).
    Every insert is insert-or-ignore: existing rows, and the resume
    positions stored on them, are never overwritten.
    """

    def __init__(self, db_path: str = str(DB_PATH), library_dirs: Optional[List[str]] = None,
                 max_depth: int = SCAN_MAX_DEPTH):
        self.db_path = db_path
        self.library_dirs = list(LIBRARY_DIRS if library_dirs is None else library_dirs)
        self.max_depth = max_depth
        self._scanner = FileScanner()

    async def scan_library(self, progress_callback: Optional[Callable[[str], None]] = None) -> Dict[str, int]:
        """Scan every library root and sync series and episodes into the database."""
        logger.info(f"Starting library scan: {os.pathsep.join(self.library_dirs)}")
        stats = {"series": 0, "episodes": 0}

        async with open_connection(self.db_path) as db:
            for library_path in self.library_dirs:
                series_folders = await asyncio.to_thread(self._series_folders, library_path)

                for folder in series_folders:
                    if progress_callback:
                        progress_callback(f"Scanning {folder.name}...")

                    # 1. Add series and where it lives
                    await db.execute("INSERT OR IGNORE INTO series (dir_name) VALUES (?)", (folder.name,))
                    await db.execute(
                        "INSERT OR IGNORE INTO location (location, dir_name) VALUES (?, ?)",
                        (str(folder), folder.name)
                    )

                    # 2. Scan episodes in folder (blocking filesystem walk)
                    episodes = await asyncio.to_thread(self._scanner.scan_series_folder, str(folder), self.max_depth)
                    logger.debug(f"  Found {len(episodes)} media files in {folder.name}")

                    # 3. Add episodes
                    await db.executemany(
                        """INSERT OR IGNORE INTO episode (path, dir_name, ep, s, special)
                           VALUES (?, ?, ?, ?, ?)""",
                        [(ep.full_path, ep.directory_name, *identity_to_columns(ep.identity)) for ep in episodes]
                    )
                    await db.commit()

                    stats["series"] += 1
                    stats["episodes"] += len(episodes)

        logger.info(f"Library scan complete! {stats['series']} series, {stats['episodes']} files")
        if progress_callback:
            progress_callback("Scan complete!")
        return stats

    def _series_folders(self, library_path: str) -> List[Path]:
        """Immediate subdirectories of a library root; an unreadable root yields nothing."""
        try:
            with os.scandir(library_path) as entries:
                return sorted(Path(e.path) for e in entries if e.is_dir())
        except OSError as e:
            logger.warning(f"Skipping library root {library_path}: {e}")
            return []

    def start_refresh(self) -> asyncio.Task:
        """
        Run scan_library on its own task. Await the task to block on the
        result (first run); otherwise failures only end up in the log.
        """
        task = asyncio.create_task(self.scan_library())
        task.add_done_callback(self._on_refresh_done)
        return task

    @staticmethod
    def _on_refresh_done(task: asyncio.Task):
        if task.cancelled():
            logger.info("Library refresh cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Library refresh failed: {exc}", exc_info=exc)
