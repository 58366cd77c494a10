import pytest
from sani.core.picker import Picker, PickerError
from sani.core.playback_tracker import PlaybackResult
from sani.core.session import Session, AppState
from sani.database.models import Numbered

class ScriptedPicker(Picker):
    def __init__(self, answers):
        super().__init__(command=["dmenu"], args=[])
        self.answers = list(answers)
        self.offered = []

    async def choose(self, lines, prompt=None):
        self.offered.append(list(lines))
        return self.answers.pop(0)

class RecordingTracker:
    def __init__(self, db, exit_code=0):
        self.db = db
        self.exit_code = exit_code
        self.played = []

    async def play(self, directory_name, identity, path):
        self.played.append((directory_name, identity, path))
        if self.exit_code == 0:
            self.db.record_progress(directory_name, identity)
        return PlaybackResult(path=path, exit_code=self.exit_code, position=10)

@pytest.mark.asyncio
async def test_watch_next_episode_then_quit(indexed, library):
    picker = ScriptedPicker(["Show", "Next Episode:", None, None])
    tracker = RecordingTracker(indexed)
    session = Session(indexed, picker, tracker)

    assert await session.run() == 0
    assert session.state is AppState.QUIT
    assert tracker.played == [("Show", Numbered(1, 2), str(library / "Show" / "S01E02.mkv"))]

    assert picker.offered[0] == ["Show"]
    assert picker.offered[1] == [
        "Current Episode:", "S01 E01", "Next Episode:", "S01 E02", "S01 E01", "S01 E02", "S02 E01",
    ]
    # After watching, the list moves on without waiting for the database write
    assert picker.offered[2][:4] == ["Current Episode:", "S01 E02", "Next Episode:", "S02 E01"]

    await indexed.drain()
    assert (await indexed.relative_episode("Show")).current == Numbered(1, 2)

@pytest.mark.asyncio
async def test_unknown_choices_are_offered_again(indexed):
    picker = ScriptedPicker(["Nope", "Show", "S09 E09", None, None])
    tracker = RecordingTracker(indexed)
    session = Session(indexed, picker, tracker)

    await session.run()
    assert tracker.played == []
    assert picker.offered[0] == picker.offered[1] == ["Show"]
    assert picker.offered[2] == picker.offered[3]

@pytest.mark.asyncio
async def test_failed_playback_keeps_current_episode(indexed):
    picker = ScriptedPicker(["Show", "S02 E01", None, None])
    tracker = RecordingTracker(indexed, exit_code=2)
    session = Session(indexed, picker, tracker)

    await session.run()
    assert len(tracker.played) == 1
    assert picker.offered[2][:2] == ["Current Episode:", "S01 E01"]

@pytest.mark.asyncio
async def test_picker_cancel_is_none(tmp_path):
    script = tmp_path / "picker.sh"
    script.write_text("#!/bin/sh\ncat > /dev/null\n")
    script.chmod(0o755)
    assert await Picker(command=[str(script)], args=[]).choose(["a", "b"]) is None

@pytest.mark.asyncio
async def test_picker_returns_trimmed_line(tmp_path):
    script = tmp_path / "picker.sh"
    script.write_text("#!/bin/sh\nsed -n 2p\n")
    script.chmod(0o755)
    assert await Picker(command=[str(script)], args=[]).choose(["first", "  second  "]) == "second"

@pytest.mark.asyncio
async def test_missing_picker():
    with pytest.raises(PickerError):
        await Picker(command=["/nonexistent/dmenu"], args=[]).choose(["a"])

@pytest.mark.asyncio
async def test_picker_prompt_flag(tmp_path):
    # Answers with its own arguments
    script = tmp_path / "picker.sh"
    script.write_text('#!/bin/sh\ncat > /dev/null\necho "$*"\n')
    script.chmod(0o755)

    dmenu = Picker(command=[str(script)], args=["-i"], prompt_flag="-p")
    assert await dmenu.choose(["a"], prompt="Select series") == "-i -p Select series"

    fzf = Picker(command=[str(script)], args=["-i"], prompt_flag="--prompt")
    assert await fzf.choose(["a"], prompt="Pick") == "-i --prompt Pick"

    bare = Picker(command=[str(script)], args=["-i"], prompt_flag="")
    assert await bare.choose(["a"], prompt="Select series") == "-i"
