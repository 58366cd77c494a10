import os
import re
from pathlib import Path
from typing import List, Optional
from ..config import VIDEO_EXTENSIONS, SCAN_MAX_DEPTH
from ..database.models import EpisodeIdentity, EpisodeRecord, Numbered, Special, DEFAULT_EPISODE
from .logger import get_logger

logger = get_logger(__name__)

class FileScanner:
    # Special content, checked before any numbering (case-sensitive)
    # 1. [OVA] / OVA 2 -> whole name is the label
    # 2. NCED1 / NCOP  -> creditless endings and openings
    # 3. - OP1 - / _ED_ -> isolated opening/ending tokens
    SPECIAL_PATTERNS = [
        re.compile(r'^.*\bOVA.*$'),
        re.compile(r'(?<![A-Z])NC(?:ED|OP)\d*'),
        re.compile(r'(?<=[\s_.\-])(?:OP|ED)\d*(?=[\s_.\-]|$)'),
    ]

    # Digit runs that are never episode or season numbers
    NOISE_PATTERNS = [
        re.compile(r'\[[0-9A-Fa-f]{8}\]'),              # [CRC32]
        re.compile(r'(?:2160|1080|720|480)[pPiI]?'),    # resolution
        re.compile(r'[xXhH]\.?26[45]|HEVC'),            # codec
        re.compile(r'10[\s._-]?bits?', re.IGNORECASE),  # 10bit
        re.compile(r'(?<!\d)\d{3,}(?!\d)'),             # years, bitrates, ...
    ]

    # S01E01 / s1e01 / S01 - E01 / S01EP01
    STRICT_PATTERN = re.compile(r'[Ss](?P<season>\d{1,2})[\s._-]?[Ee][Pp]?(?P<episode>\d{1,2})(?!\d)')
    # 01x05 / Show - 05 / Show_E05 / Show EP05v2
    GENERAL_PATTERN = re.compile(
        r'(?:(?:^|(?<=[\s_.\-])|[Ss])(?P<season>\d{2}))?'
        r'(?:EP|Ep|ep|[_xEe ])(?P<episode>\d{1,2})'
        r'(?=[\s_.\-v\[\(]|$)'
    )

    @staticmethod
    def find_special(name: str) -> Optional[str]:
        for pattern in FileScanner.SPECIAL_PATTERNS:
            match = pattern.search(name)
            if match:
                label = match.group(0).strip(" _-.")
                if label:
                    return label
        return None

    @staticmethod
    def strip_noise(name: str) -> str:
        for pattern in FileScanner.NOISE_PATTERNS:
            name = pattern.sub(' ', name)
        return name

    @staticmethod
    def classify(filename: str) -> EpisodeIdentity:
        """
        Turn a filename into an episode identity.

        Never fails: names without a recognizable episode number become
        episode 1 of season 1, and a missing season defaults to 1.
        """
        name = os.path.splitext(os.path.basename(filename))[0]

        special = FileScanner.find_special(name)
        if special is not None:
            return Special(special)

        cleaned = FileScanner.strip_noise(name)

        match = FileScanner.STRICT_PATTERN.search(cleaned) or FileScanner.GENERAL_PATTERN.search(cleaned)
        if not match:
            return DEFAULT_EPISODE

        episode = int(match.group("episode"))
        season = int(match.group("season")) if match.group("season") else 1
        return Numbered(season=season, episode=episode)

    @staticmethod
    def is_video(path: Path) -> bool:
        return path.suffix.lower() in VIDEO_EXTENSIONS

    @staticmethod
    def get_video_files(directory: str, max_depth: int = SCAN_MAX_DEPTH) -> List[Path]:
        """
        Get all video files below a directory, at most max_depth levels deep.
        Directories that cannot be read are skipped.
        """
        video_files = []
        pending = [(Path(directory), 1)]

        while pending:
            current, depth = pending.pop()
            try:
                entries = list(os.scandir(current))
            except OSError as e:
                logger.warning(f"Skipping unreadable directory {current}: {e}")
                continue

            for entry in entries:
                try:
                    if entry.is_dir():
                        if depth < max_depth:
                            pending.append((Path(entry.path), depth + 1))
                    elif entry.is_file() and FileScanner.is_video(Path(entry.name)):
                        video_files.append(Path(entry.path))
                except OSError as e:
                    logger.warning(f"Skipping {entry.path}: {e}")

        return sorted(video_files)

    @staticmethod
    def series_name_for(file_path: Path, library_root: Path) -> str:
        """Walk back up from a file to the series folder directly under the library root."""
        return file_path.relative_to(library_root).parts[0]

    @staticmethod
    def scan_series_folder(series_path: str, max_depth: int = SCAN_MAX_DEPTH) -> List[EpisodeRecord]:
        """
        Scan a single series folder.
        Handles:
        - Series/Episode.mkv
        - Series/Season 1/Episode.mkv
        - Series/Season 1/Extras/Episode.mkv
        """
        base_path = Path(series_path)
        episodes = []

        for file_path in FileScanner.get_video_files(series_path, max_depth):
            episodes.append(EpisodeRecord(
                full_path=str(file_path),
                directory_name=FileScanner.series_name_for(file_path, base_path.parent),
                identity=FileScanner.classify(file_path.name),
            ))

        return episodes
