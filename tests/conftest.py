import pytest
import pytest_asyncio

from sani.database.db import DatabaseManager
from sani.core.library_manager import LibraryManager

SHOW_FILES = ["S01E01.mkv", "S01E02.mkv", "S02E01.mkv"]

def make_library(root, series):
    """series: {name: [relative file paths]}"""
    for name, files in series.items():
        for rel in files:
            path = root / name / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("dummy")
    return root

@pytest.fixture
def library(tmp_path):
    return make_library(tmp_path / "library", {"Show": SHOW_FILES})

@pytest_asyncio.fixture
async def db_manager(tmp_path):
    manager = DatabaseManager(str(tmp_path / "sani.db"))
    await manager.initialize()
    yield manager
    await manager.close()

@pytest_asyncio.fixture
async def indexed(db_manager, library):
    """db_manager with the library fixture scanned into it."""
    await LibraryManager(db_manager.db_path, [str(library)]).scan_library()
    return db_manager
