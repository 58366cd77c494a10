from dataclasses import dataclass
from datetime import datetime
from functools import cmp_to_key
from typing import Optional, Union

@dataclass(frozen=True)
class Numbered:
    season: int = 1
    episode: int = 1

@dataclass(frozen=True)
class Special:
    label: str

EpisodeIdentity = Union[Numbered, Special]

DEFAULT_EPISODE = Numbered()

def compare_episodes(a: EpisodeIdentity, b: EpisodeIdentity) -> int:
    """
    Total order over episode identities.

    Numbered episodes compare on (season, episode). Any Numbered episode is
    greater than any Special. Specials compare by label.
    """
    if isinstance(a, Numbered) and isinstance(b, Numbered):
        left, right = (a.season, a.episode), (b.season, b.episode)
    elif isinstance(a, Special) and isinstance(b, Special):
        left, right = a.label, b.label
    else:
        # Mixed variants: Numbered always sorts after Special
        return 1 if isinstance(a, Numbered) else -1
    return (left > right) - (left < right)

episode_sort_key = cmp_to_key(compare_episodes)

@dataclass
class SeriesRecord:
    directory_name: str
    current_episode: Optional[Numbered] = None
    last_watched: Optional[datetime] = None

@dataclass
class EpisodeRecord:
    full_path: str
    directory_name: str
    identity: EpisodeIdentity = DEFAULT_EPISODE
    resume_timestamp: int = 0

@dataclass
class RelativeEpisode:
    current: Numbered
    next: Optional[Numbered] = None
