import re
from typing import Optional

from ..database.models import EpisodeIdentity, Numbered, Special

_LABEL_PATTERN = re.compile(r'^S(\d+) E(\d+)$')

def format_time(seconds: float) -> str:
    s = int(seconds)
    hours = s // 3600
    minutes = (s % 3600) // 60
    seconds = s % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"

def format_episode(identity: EpisodeIdentity) -> str:
    if isinstance(identity, Special):
        return identity.label
    return f"S{identity.season:02d} E{identity.episode:02d}"

def parse_episode_label(label: str) -> Optional[EpisodeIdentity]:
    """Inverse of format_episode for a line chosen in the picker."""
    label = label.strip()
    if not label:
        return None
    match = _LABEL_PATTERN.match(label)
    if match:
        return Numbered(season=int(match.group(1)), episode=int(match.group(2)))
    return Special(label)
