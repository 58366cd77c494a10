import asyncio
import os
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Set, Tuple

import aiosqlite

from .models import (
    DEFAULT_EPISODE, EpisodeIdentity, Numbered, RelativeEpisode, SeriesRecord, Special, episode_sort_key,
)
from ..config import DB_PATH, STATEMENT_CACHE_SIZE
from ..utils.logger import get_logger

logger = get_logger(__name__)

PRAGMAS = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA foreign_keys = ON",
)

class CacheStoreError(Exception):
    """The cache database could not be opened or initialized."""

def identity_to_columns(identity: EpisodeIdentity) -> Tuple[Optional[int], Optional[int], Optional[str]]:
    """Split an identity into the (ep, s, special) columns of the episode table."""
    if isinstance(identity, Special):
        return None, None, identity.label
    return identity.episode, identity.season, None

def identity_from_columns(ep: Optional[int], s: Optional[int], special: Optional[str]) -> EpisodeIdentity:
    if special is not None:
        return Special(special)
    return Numbered(season=s, episode=ep)

async def _apply_pragmas(db: aiosqlite.Connection):
    for pragma in PRAGMAS:
        await db.execute(pragma)

@asynccontextmanager
async def open_connection(db_path: str, **kwargs):
    """Short-lived connection for work that runs beside the query connection."""
    async with aiosqlite.connect(db_path, **kwargs) as db:
        await _apply_pragmas(db)
        yield db

class DatabaseManager:
    def __init__(self, db_path: str = str(DB_PATH), statement_cache_size: int = STATEMENT_CACHE_SIZE):
        self.db_path = db_path
        self.statement_cache_size = statement_cache_size
        self.created = False
        self._conn: Optional[aiosqlite.Connection] = None
        self._pending_writes: Set[asyncio.Task] = set()
        logger.debug(f"DatabaseManager initialized with path: {self.db_path}")

    async def initialize(self) -> bool:
        """
        Open the query connection and create the schema.
        Returns True when the database file did not exist before.
        Any failure here is fatal to the caller.
        """
        logger.info("Initializing database...")
        self.created = not Path(self.db_path).is_file()
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            # Surface open errors before aiosqlite starts its worker thread
            await asyncio.to_thread(self._check_openable)
            # sqlite3 keeps compiled statements keyed by SQL text
            self._conn = await aiosqlite.connect(self.db_path, cached_statements=self.statement_cache_size)
            await _apply_pragmas(self._conn)
            await self._create_schema(self._conn)
        except (sqlite3.Error, OSError) as e:
            logger.critical(f"Failed to open cache database {self.db_path}: {e}")
            if self._conn is not None:
                await self._conn.close()
                self._conn = None
            raise CacheStoreError(f"Failed to open cache database {self.db_path}") from e
        return self.created

    def _check_openable(self):
        sqlite3.connect(self.db_path).close()

    async def _create_schema(self, db: aiosqlite.Connection):
        # Series table
        await db.execute("""
            CREATE TABLE IF NOT EXISTS series (
                dir_name TEXT PRIMARY KEY NOT NULL,
                current_ep INTEGER,
                current_s INTEGER,
                last_watched INTEGER
            )
        """)

        # Where each series lives on disk
        await db.execute("""
            CREATE TABLE IF NOT EXISTS location (
                location TEXT PRIMARY KEY NOT NULL,
                dir_name TEXT NOT NULL,
                FOREIGN KEY (dir_name) REFERENCES series (dir_name)
            )
        """)

        # Episodes table
        await db.execute("""
            CREATE TABLE IF NOT EXISTS episode (
                path TEXT PRIMARY KEY NOT NULL,
                dir_name TEXT NOT NULL,
                ep INTEGER,
                s INTEGER,
                special TEXT,
                resume_timestamp INTEGER NOT NULL DEFAULT 0,
                FOREIGN KEY (dir_name) REFERENCES series (dir_name),
                CHECK ((special IS NULL AND ep IS NOT NULL AND s IS NOT NULL)
                    OR (special IS NOT NULL AND ep IS NULL AND s IS NULL))
            )
        """)

        await db.execute("CREATE UNIQUE INDEX IF NOT EXISTS series_dir_name_idx ON series(dir_name)")
        await db.execute("CREATE INDEX IF NOT EXISTS episode_season_idx ON episode(ep, s)")

        # Migrations
        async with db.execute("PRAGMA table_info(episode)") as cursor:
            columns = [row[1] for row in await cursor.fetchall()]
            if 'resume_timestamp' not in columns:
                await db.execute("ALTER TABLE episode ADD COLUMN resume_timestamp INTEGER NOT NULL DEFAULT 0")

        await db.commit()

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise CacheStoreError("DatabaseManager.initialize() has not been called")
        return self._conn

    # Series Operations

    async def list_series(self) -> List[str]:
        """Series names, most recently watched first, limited to folders that still exist."""
        async with self.conn.execute("""
            SELECT series.dir_name, location.location
            FROM series
            INNER JOIN location ON series.dir_name = location.dir_name
            ORDER BY series.last_watched DESC, series.dir_name DESC
        """) as cursor:
            rows = await cursor.fetchall()

        # A series may have several locations; keep it if any still exists
        names = {}
        for dir_name, location in rows:
            if dir_name not in names and os.path.isdir(location):
                names[dir_name] = True
        logger.debug(f"Listing {len(names)} of {len(rows)} series locations")
        return list(names)

    async def get_series(self, directory_name: str) -> Optional[SeriesRecord]:
        async with self.conn.execute(
            "SELECT dir_name, current_ep, current_s, last_watched FROM series WHERE dir_name = ?",
            (directory_name,)
        ) as cursor:
            row = await cursor.fetchone()
        if not row:
            return None
        current = Numbered(season=row[2], episode=row[1]) if row[1] is not None and row[2] is not None else None
        return SeriesRecord(
            directory_name=row[0],
            current_episode=current,
            last_watched=datetime.fromtimestamp(row[3]) if row[3] is not None else None,
        )

    # Episode Operations

    async def list_episodes(self, directory_name: str) -> List[EpisodeIdentity]:
        async with self.conn.execute(
            "SELECT ep, s, special FROM episode WHERE dir_name = ?", (directory_name,)
        ) as cursor:
            rows = await cursor.fetchall()
        episodes = {identity_from_columns(*row) for row in rows}
        return sorted(episodes, key=episode_sort_key)

    async def find_paths(self, directory_name: str, identity: EpisodeIdentity) -> Set[str]:
        if isinstance(identity, Special):
            query = "SELECT path FROM episode WHERE special = ? AND dir_name = ?"
            params = (identity.label, directory_name)
        else:
            query = "SELECT path FROM episode WHERE ep = ? AND s = ? AND dir_name = ?"
            params = (identity.episode, identity.season, directory_name)
        async with self.conn.execute(query, params) as cursor:
            return {row[0] for row in await cursor.fetchall()}

    async def exists(self, directory_name: str, season: int, episode: int) -> bool:
        async with self.conn.execute(
            "SELECT 1 FROM episode WHERE dir_name = ? AND ep = ? AND s = ? LIMIT 1",
            (directory_name, episode, season)
        ) as cursor:
            return await cursor.fetchone() is not None

    async def next_episode(self, directory_name: str, current: Numbered) -> Optional[Numbered]:
        """
        The episode after current: the next episode of the same season, or
        else the first episode of the next season. Nothing further is searched.
        """
        candidate = Numbered(season=current.season, episode=current.episode + 1)
        if await self.exists(directory_name, candidate.season, candidate.episode):
            return candidate

        # Season rollover
        candidate = Numbered(season=current.season + 1, episode=1)
        if await self.exists(directory_name, candidate.season, candidate.episode):
            return candidate
        return None

    async def relative_episode(self, directory_name: str) -> RelativeEpisode:
        series = await self.get_series(directory_name)
        current = series.current_episode if series and series.current_episode else DEFAULT_EPISODE
        return RelativeEpisode(current=current, next=await self.next_episode(directory_name, current))

    # Progress Operations

    def record_progress(self, directory_name: str, identity: EpisodeIdentity,
                        timestamp: Optional[datetime] = None) -> asyncio.Task:
        """
        Store the series' current episode and when it was watched.
        Runs on its own task and connection; the returned task never raises.
        """
        watched_at = int((timestamp or datetime.now()).timestamp())
        return self._dispatch(self._write_progress(directory_name, identity, watched_at))

    def _dispatch(self, write) -> asyncio.Task:
        task = asyncio.create_task(write)
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)
        return task

    async def _write_progress(self, directory_name: str, identity: EpisodeIdentity, watched_at: int):
        logger.debug(f"Recording progress for {directory_name}: {identity}")
        try:
            async with open_connection(self.db_path) as db:
                if isinstance(identity, Numbered):
                    await db.execute(
                        """INSERT INTO series (dir_name, current_ep, current_s, last_watched)
                           VALUES (?, ?, ?, ?)
                           ON CONFLICT(dir_name) DO UPDATE SET
                           current_ep = excluded.current_ep,
                           current_s = excluded.current_s,
                           last_watched = excluded.last_watched""",
                        (directory_name, identity.episode, identity.season, watched_at)
                    )
                else:
                    # Specials do not move the series position
                    await db.execute(
                        """INSERT INTO series (dir_name, last_watched) VALUES (?, ?)
                           ON CONFLICT(dir_name) DO UPDATE SET last_watched = excluded.last_watched""",
                        (directory_name, watched_at)
                    )
                await db.commit()
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to record progress for {directory_name}: {e}")

    def record_resume_timestamp(self, full_path: str, timestamp: int) -> asyncio.Task:
        """Store where playback of a file stopped, on its own task like record_progress."""
        return self._dispatch(self._write_resume_timestamp(full_path, int(timestamp)))

    async def _write_resume_timestamp(self, full_path: str, timestamp: int):
        try:
            async with open_connection(self.db_path) as db:
                await db.execute(
                    "UPDATE episode SET resume_timestamp = ? WHERE path = ?",
                    (timestamp, full_path)
                )
                await db.commit()
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to store resume position for {full_path}: {e}")

    async def read_resume_timestamp(self, full_path: str) -> int:
        # A resume write for this file may still be in flight
        await self.drain()
        try:
            async with self.conn.execute(
                "SELECT resume_timestamp FROM episode WHERE path = ?", (full_path,)
            ) as cursor:
                row = await cursor.fetchone()
        except (sqlite3.Error, CacheStoreError) as e:
            logger.warning(f"Could not read resume position for {full_path}: {e}")
            return 0
        return int(row[0]) if row and row[0] is not None else 0

    async def drain(self):
        """Wait for progress and resume writes that are still in flight."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    async def close(self):
        await self.drain()
        if self._conn is not None:
            await self._conn.execute("PRAGMA optimize")
            await self._conn.close()
            self._conn = None
