import os
import shlex
import tempfile
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base Paths
_xdg_cache = os.getenv("XDG_CACHE_HOME") or str(Path.home() / ".cache")
CACHE_DIR = Path(os.getenv("SANI_CACHE", os.path.join(_xdg_cache, "sani"))).expanduser()
DB_PATH = CACHE_DIR / "sani.db"
LOG_FILE = CACHE_DIR / "sani.log"

# Library Settings
LIBRARY_DIRS = [
    str(Path(p).expanduser())
    for p in os.getenv("SANI_LIBRARY_DIRS", str(Path.home() / "Videos")).split(os.pathsep)
    if p.strip()
]

# Supported Formats (mpv plays almost everything, but these are for scanning)
VIDEO_EXTENSIONS = {
    ".mkv", ".mp4", ".avi", ".webm", ".flv", ".m4v", ".ts", ".mov", ".wmv", ".mpg", ".mpeg"
}
SCAN_MAX_DEPTH = int(os.getenv("SCAN_MAX_DEPTH", "3"))  # levels below a series folder

# Database Settings
STATEMENT_CACHE_SIZE = int(os.getenv("STATEMENT_CACHE_SIZE", "128"))

# Playback Settings
PLAYER_COMMAND = shlex.split(os.getenv("SANI_PLAYER", "mpv"))
IPC_SOCKET = os.getenv(
    "SANI_IPC_SOCKET", os.path.join(tempfile.gettempdir(), f"sani-mpv-{os.getpid()}.sock")
)
WATCH_POLL_INTERVAL = float(os.getenv("WATCH_POLL_INTERVAL", "1.0"))  # seconds

# Picker Settings (dmenu compatible)
PICKER_COMMAND = shlex.split(os.getenv("SANI_PICKER", "dmenu"))
PICKER_ARGS = shlex.split(os.getenv("SANI_PICKER_ARGS", "-i -l 15"))
# Flag that introduces the prompt text; empty when the picker has none
PICKER_PROMPT_FLAG = os.getenv("SANI_PICKER_PROMPT_FLAG", "-p")

# Logging
LOG_LEVEL = os.getenv("SANI_LOG_LEVEL", "INFO").upper()
