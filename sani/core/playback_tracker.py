import asyncio
import json
import os
from dataclasses import dataclass
from typing import List, Optional

from ..config import PLAYER_COMMAND, IPC_SOCKET, WATCH_POLL_INTERVAL
from ..database.db import DatabaseManager
from ..database.models import EpisodeIdentity
from ..utils.format_utils import format_time
from ..utils.logger import get_logger

logger = get_logger(__name__)

class PlayerError(Exception):
    """The player program could not be started."""

@dataclass
class PlaybackResult:
    path: str
    exit_code: int
    position: int  # seconds

    @property
    def success(self) -> bool:
        return self.exit_code == 0

class PlaybackTracker:
    """
    Plays one episode in an external mpv and remembers where it stopped.

    Two tasks run while the player is alive: play() waits for the process,
    and the watcher polls mpv's JSON IPC socket for the playback time. When
    the process exits its exit code is handed to the watcher, which then
    dispatches the resume write for the last known position and returns.
    """

    def __init__(self, db: DatabaseManager, player_command: Optional[List[str]] = None,
                 socket_path: str = IPC_SOCKET, poll_interval: float = WATCH_POLL_INTERVAL):
        self.db = db
        self.player_command = list(player_command or PLAYER_COMMAND)
        self.socket_path = socket_path
        self.poll_interval = poll_interval
        self.position = 0
        self._request_id = 0

    async def play(self, directory_name: str, identity: EpisodeIdentity, path: str) -> PlaybackResult:
        start_time = await self.db.read_resume_timestamp(path)
        self.position = start_time
        self._remove_socket()

        cmd = [
            *self.player_command,
            path,
            f"--start={start_time}",
            f"--input-ipc-server={self.socket_path}",
        ]
        logger.info(f"Launching player: {path} (resume at {format_time(start_time)})")

        try:
            process = await asyncio.create_subprocess_exec(*cmd)
        except OSError as e:
            raise PlayerError(f"Could not start player '{self.player_command[0]}': {e}") from e

        exited = asyncio.get_running_loop().create_future()
        watcher = asyncio.create_task(self._watch(exited, directory_name, identity, path))

        try:
            exit_code = await process.wait()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.terminate()
            exit_code = await process.wait()
            exited.set_result(exit_code)
            await watcher
            raise
        finally:
            if not exited.done():
                exited.set_result(exit_code)
            self._remove_socket()

        position = await watcher
        logger.info(f"Player exited with {exit_code} at {format_time(position)}")
        return PlaybackResult(path=path, exit_code=exit_code, position=position)

    async def _watch(self, exited: asyncio.Future, directory_name: str,
                     identity: EpisodeIdentity, path: str) -> int:
        while not exited.done():
            position = await self._query_position()
            if position is not None:
                self.position = int(position)
            await asyncio.wait([exited], timeout=self.poll_interval)

        # The player is gone; persist what we saw last
        self.db.record_resume_timestamp(path, self.position)
        if exited.result() == 0:
            self.db.record_progress(directory_name, identity)
        return self.position

    async def _query_position(self) -> Optional[float]:
        """Ask mpv for playback-time; None when it is not reachable or has no answer."""
        try:
            reader, writer = await asyncio.open_unix_connection(self.socket_path)
        except OSError:
            return None

        self._request_id += 1
        request_id = self._request_id
        message = json.dumps({"command": ["get_property", "playback-time"], "request_id": request_id}) + "\n"

        try:
            writer.write(message.encode("utf-8"))
            await writer.drain()

            while True:
                line = await asyncio.wait_for(reader.readline(), timeout=self.poll_interval)
                if not line:
                    return None
                try:
                    response = json.loads(line)
                except json.JSONDecodeError:
                    continue
                # mpv interleaves event messages, which carry no request_id
                if response.get("request_id") != request_id:
                    continue
                if response.get("error") != "success":
                    return None
                return float(response.get("data"))
        except (OSError, asyncio.TimeoutError, AttributeError, TypeError, ValueError):
            return None
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    def _remove_socket(self):
        try:
            os.remove(self.socket_path)
        except FileNotFoundError:
            pass
