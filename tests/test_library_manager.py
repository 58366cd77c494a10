import pytest
from sani.core.library_manager import LibraryManager
from sani.database.models import Numbered
from conftest import make_library

@pytest.mark.asyncio
async def test_scan_library(db_manager, library):
    manager = LibraryManager(db_manager.db_path, [str(library)])
    stats = await manager.scan_library()

    assert stats == {"series": 1, "episodes": 3}
    assert await db_manager.list_series() == ["Show"]
    assert await db_manager.list_episodes("Show") == [Numbered(1, 1), Numbered(1, 2), Numbered(2, 1)]

@pytest.mark.asyncio
async def test_rescan_is_idempotent(db_manager, library):
    manager = LibraryManager(db_manager.db_path, [str(library)])
    await manager.scan_library()
    before = await db_manager.list_episodes("Show")

    path = str(library / "Show" / "S01E01.mkv")
    await db_manager.record_resume_timestamp(path, 300)

    await manager.scan_library()
    assert await db_manager.list_episodes("Show") == before
    # Existing rows are left alone
    assert await db_manager.read_resume_timestamp(path) == 300

@pytest.mark.asyncio
async def test_season_folders_belong_to_series(db_manager, tmp_path):
    library = make_library(tmp_path / "lib", {
        "Show": ["Season 1/S01E01.mkv", "Season 2/S02E01.mkv", "Season 2/Extras/Show - NCOP1.mkv"],
    })
    await LibraryManager(db_manager.db_path, [str(library)]).scan_library()

    assert await db_manager.next_episode("Show", Numbered(1, 1)) == Numbered(2, 1)
    assert len(await db_manager.list_episodes("Show")) == 3

@pytest.mark.asyncio
async def test_multiple_roots_and_missing_root(db_manager, tmp_path):
    first = make_library(tmp_path / "one", {"Show": ["S01E01.mkv"]})
    second = make_library(tmp_path / "two", {"Show": ["S01E02.mkv"], "Other": ["01.mkv"]})
    manager = LibraryManager(db_manager.db_path, [str(tmp_path / "missing"), str(first), str(second)])

    stats = await manager.scan_library()
    assert stats["series"] == 3
    assert sorted(await db_manager.list_series()) == ["Other", "Show"]
    assert await db_manager.list_episodes("Show") == [Numbered(1, 1), Numbered(1, 2)]

@pytest.mark.asyncio
async def test_start_refresh_returns_awaitable_task(db_manager, library):
    manager = LibraryManager(db_manager.db_path, [str(library)])
    task = manager.start_refresh()

    stats = await task
    assert stats["episodes"] == 3
    assert await db_manager.exists("Show", 1, 2)

@pytest.mark.asyncio
async def test_progress_callback(db_manager, library):
    messages = []
    await LibraryManager(db_manager.db_path, [str(library)]).scan_library(messages.append)
    assert messages == ["Scanning Show...", "Scan complete!"]
