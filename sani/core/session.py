from enum import Enum, auto
from typing import List, Optional, Tuple

from ..database.db import DatabaseManager
from ..database.models import EpisodeIdentity, Numbered, RelativeEpisode
from ..utils.format_utils import format_episode, parse_episode_label
from ..utils.logger import get_logger
from .picker import Picker
from .playback_tracker import PlaybackTracker

logger = get_logger(__name__)

class AppState(Enum):
    SHOW_SELECT = auto()
    EPISODE_SELECT = auto()
    WATCHING = auto()
    QUIT = auto()

class Session:
    CURRENT_HEADER = "Current Episode:"
    NEXT_HEADER = "Next Episode:"

    def __init__(self, db: DatabaseManager, picker: Picker, tracker: PlaybackTracker):
        self.db = db
        self.picker = picker
        self.tracker = tracker
        self.state = AppState.SHOW_SELECT
        self.series: Optional[str] = None
        # Kept in memory after watching; the progress write may still be in flight
        self.relative: Optional[RelativeEpisode] = None
        self.selection: Optional[Tuple[EpisodeIdentity, List[str]]] = None

    async def run(self) -> int:
        while self.state is not AppState.QUIT:
            if self.state is AppState.SHOW_SELECT:
                await self.select_show()
            elif self.state is AppState.EPISODE_SELECT:
                await self.select_episode()
            elif self.state is AppState.WATCHING:
                await self.watch()
        return 0

    async def select_show(self):
        series = await self.db.list_series()
        choice = await self.picker.choose(series, prompt="Select series")

        if choice is None:
            self.state = AppState.QUIT
        elif choice in series:
            self.series = choice
            self.relative = None
            self.state = AppState.EPISODE_SELECT

    async def select_episode(self):
        if self.relative is None:
            self.relative = await self.db.relative_episode(self.series)

        lines = self.episode_lines(await self.db.list_episodes(self.series))
        choice = await self.picker.choose(lines, prompt=self.series)
        if choice is None:
            self.state = AppState.SHOW_SELECT
            return

        identity = self.parse_choice(choice)
        if identity is None:
            return

        paths = await self.db.find_paths(self.series, identity)
        if not paths:
            logger.info(f"No file found for {choice} in {self.series}")
            return

        self.selection = (identity, sorted(paths))
        self.state = AppState.WATCHING

    async def watch(self):
        identity, paths = self.selection
        # Duplicates of one episode: play the first copy the player accepts
        for path in paths:
            result = await self.tracker.play(self.series, identity, path)
            if not result.success:
                logger.warning(f"Player failed on {path} (exit {result.exit_code})")
                continue
            if isinstance(identity, Numbered):
                self.relative = RelativeEpisode(
                    current=identity,
                    next=await self.db.next_episode(self.series, identity),
                )
            break
        self.state = AppState.EPISODE_SELECT

    def episode_lines(self, episodes: List[EpisodeIdentity]) -> List[str]:
        lines = [self.CURRENT_HEADER, format_episode(self.relative.current)]
        if self.relative.next is not None:
            lines += [self.NEXT_HEADER, format_episode(self.relative.next)]
        lines += [format_episode(ep) for ep in episodes]
        return lines

    def parse_choice(self, choice: str) -> Optional[EpisodeIdentity]:
        if choice == self.CURRENT_HEADER:
            return self.relative.current
        if choice == self.NEXT_HEADER:
            return self.relative.next
        return parse_episode_label(choice)
