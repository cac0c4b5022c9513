"""Tests for stail.file_tailer module."""

import asyncio
import os
from pathlib import Path

import pytest
from conftest import FakeObserver, run
from watchdog.events import FileClosedEvent, FileModifiedEvent, FileOpenedEvent
from watchdog.observers import Observer

from stail.file_tailer import FileReader, FileTailer, _PathEventHandler
from stail.messages import OutputUpdate


class TestFileReader:
    """Tests for incremental file reading."""

    def test_appended_content_extends_buffer(self, tmp_path: Path) -> None:
        """Test that A then A+B is observed, never losing or repeating the prefix."""
        path = tmp_path / "slurm-1.out"
        path.write_text("A\n")
        reader = FileReader(str(path))
        assert reader.read() == "A\n"
        with open(path, "a") as f:
            f.write("B\n")
        assert reader.read() == "A\nB\n"
        assert reader.read() == "A\nB\n"
        assert reader.offset == 4

    def test_truncation_restarts_from_zero(self, tmp_path: Path) -> None:
        """Test that a truncated file is read again from the start."""
        path = tmp_path / "out"
        path.write_text("old content\n")
        reader = FileReader(str(path))
        reader.read()
        path.write_text("new\n")
        assert reader.read() == "new\n"

    def test_split_multibyte_character(self, tmp_path: Path) -> None:
        """Test that a UTF-8 character written in two parts decodes once complete."""
        path = tmp_path / "out"
        data = "é\n".encode("utf-8")
        path.write_bytes(data[:1])
        reader = FileReader(str(path))
        assert reader.read() == ""
        with open(path, "ab") as f:
            f.write(data[1:])
        assert reader.read() == "é\n"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """Test that a missing file surfaces as OSError."""
        reader = FileReader(str(tmp_path / "missing"))
        with pytest.raises(OSError):
            reader.read()


class TestPathEventHandler:
    """Tests for filtering watchdog events."""

    def test_only_change_events_for_target(self, tmp_path: Path) -> None:
        """Test that opens and other files are ignored."""
        target = str(tmp_path / "out")
        hits = []
        handler = _PathEventHandler(target, lambda: hits.append(1))
        handler.dispatch(FileOpenedEvent(target))
        handler.dispatch(FileModifiedEvent(str(tmp_path / "other")))
        assert hits == []
        handler.dispatch(FileModifiedEvent(target))
        handler.dispatch(FileClosedEvent(target))
        assert len(hits) == 2


def drain(inbox: asyncio.Queue):
    items = []
    while not inbox.empty():
        items.append(inbox.get_nowait())
    return items


class TestFileTailer:
    """Tests for subscription handling."""

    def test_same_path_registers_watch_once(self, tmp_path: Path, fake_observer: FakeObserver) -> None:
        """Test that setting the current path again is a no-op."""
        path = str(tmp_path / "out")

        async def scenario():
            tailer = FileTailer(fake_observer, asyncio.Queue())
            tailer.set_path(path)
            generation = tailer.generation
            tailer.set_path(path)
            tailer.close()
            return generation, tailer.generation

        first, second = run(scenario())
        assert first == second == 1
        assert fake_observer.calls == [("schedule", str(tmp_path)), ("unschedule", str(tmp_path))]

    def test_switching_unschedules_before_scheduling(self, tmp_path: Path, fake_observer: FakeObserver) -> None:
        """Test that there is never more than one watch."""
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()

        async def scenario():
            tailer = FileTailer(fake_observer, asyncio.Queue())
            tailer.set_path(str(tmp_path / "a" / "out"))
            tailer.set_path(str(tmp_path / "b" / "out"))
            assert fake_observer.active_watches == 1
            tailer.close()
            return tailer.generation

        assert run(scenario()) == 2
        assert fake_observer.calls == [
            ("schedule", str(tmp_path / "a")),
            ("unschedule", str(tmp_path / "a")),
            ("schedule", str(tmp_path / "b")),
            ("unschedule", str(tmp_path / "b")),
        ]
        assert fake_observer.active_watches == 0

    def test_none_publishes_empty_output(self, tmp_path: Path, fake_observer: FakeObserver) -> None:
        """Test that clearing the path publishes an empty buffer right away."""

        async def scenario():
            inbox: asyncio.Queue = asyncio.Queue()
            tailer = FileTailer(fake_observer, inbox)
            tailer.set_path(str(tmp_path / "out"))
            tailer.set_path(None)
            return tailer, drain(inbox)

        tailer, updates = run(scenario())
        assert updates == [OutputUpdate(2, "")]
        assert not tailer.active
        assert fake_observer.active_watches == 0

    def test_watch_failure_is_reported_once(self, tmp_path: Path) -> None:
        """Test that a failed registration publishes one error and starts no reader."""
        observer = FakeObserver(fail=True)

        async def scenario():
            inbox: asyncio.Queue = asyncio.Queue()
            tailer = FileTailer(observer, inbox, interval=0.01)
            tailer.set_path(str(tmp_path / "gone" / "out"))
            await asyncio.sleep(0.05)
            return tailer, drain(inbox)

        tailer, updates = run(scenario())
        assert len(updates) == 1
        assert updates[0].generation == 1
        assert "Cannot watch" in updates[0].error
        assert not tailer.active

    def test_reader_publishes_growing_buffer(self, tmp_path: Path, fake_observer: FakeObserver) -> None:
        """Test the timer fallback picks up appended content."""
        path = tmp_path / "slurm-7.out"
        path.write_text("A\n")

        async def scenario():
            inbox: asyncio.Queue = asyncio.Queue()
            tailer = FileTailer(fake_observer, inbox, interval=0.01)
            tailer.set_path(str(path))
            first = await inbox.get()
            with open(path, "a") as f:
                f.write("B\n")
            update = await inbox.get()
            while update.content == "A\n":
                update = await inbox.get()
            tailer.close()
            return first, update

        first, update = run(scenario())
        assert first == OutputUpdate(1, "A\n")
        assert update == OutputUpdate(1, "A\nB\n")

    def test_notification_wakes_reader(self, tmp_path: Path, fake_observer: FakeObserver) -> None:
        """Test that a watchdog event triggers a read before the fallback interval."""
        path = tmp_path / "out"
        path.write_text("A\n")

        async def scenario():
            inbox: asyncio.Queue = asyncio.Queue()
            tailer = FileTailer(fake_observer, inbox, interval=60)
            tailer.set_path(str(path))
            await inbox.get()
            with open(path, "a") as f:
                f.write("B\n")
            [handler] = fake_observer.handlers.values()
            handler.dispatch(FileModifiedEvent(str(path)))
            update = await inbox.get()
            tailer.close()
            return update

        assert run(scenario()).content == "A\nB\n"

    def test_unreadable_file_publishes_error(self, tmp_path: Path, fake_observer: FakeObserver) -> None:
        """Test that read errors replace the content and heal once the file exists."""
        path = tmp_path / "later.out"

        async def scenario():
            inbox: asyncio.Queue = asyncio.Queue()
            tailer = FileTailer(fake_observer, inbox, interval=0.01)
            tailer.set_path(str(path))
            error = await inbox.get()
            path.write_text("ready\n")
            update = await inbox.get()
            while update.error is not None:
                update = await inbox.get()
            tailer.close()
            return error, update

        error, update = run(scenario())
        assert error.error is not None
        assert error.content == ""
        assert update.content == "ready\n"

    def test_stale_reader_is_cancelled(self, tmp_path: Path, fake_observer: FakeObserver) -> None:
        """Test that nothing from an old subscription arrives after a switch."""
        old = tmp_path / "old.out"
        old.write_text("old\n")
        new = tmp_path / "new.out"
        new.write_text("new\n")

        async def scenario():
            inbox: asyncio.Queue = asyncio.Queue()
            tailer = FileTailer(fake_observer, inbox, interval=0.01)
            tailer.set_path(str(old))
            await inbox.get()
            tailer.set_path(str(new))
            drain(inbox)
            await asyncio.sleep(0.05)
            updates = drain(inbox)
            tailer.close()
            return updates

        updates = run(scenario())
        assert updates
        assert all(u.generation == 2 and u.content == "new\n" for u in updates)


def test_reader_offset_counts_bytes(tmp_path: Path) -> None:
    """Test that the offset tracks bytes, not characters."""
    path = tmp_path / "out"
    path.write_text("ü\n", encoding="utf-8")
    reader = FileReader(str(path))
    reader.read()
    assert reader.offset == os.path.getsize(path) == 3


class TestWithWatchdogObserver:
    """Tests against a running watchdog observer."""

    def test_watch_lifecycle(self, tmp_path: Path) -> None:
        """Test a missing directory, rescheduling one directory and a change notification."""
        path = tmp_path / "slurm-9.out"
        path.write_text("A\n")

        async def scenario():
            observer = Observer()
            observer.start()
            inbox: asyncio.Queue = asyncio.Queue()
            # Only notifications can wake the reader within the test timeout
            tailer = FileTailer(observer, inbox, interval=60)
            try:
                tailer.set_path(str(tmp_path / "missing" / "out"))
                failed = inbox.get_nowait()
                failed_active = tailer.active

                tailer.set_path(str(tmp_path / "other.out"))
                await inbox.get()
                tailer.set_path(str(path))
                first = await inbox.get()

                with open(path, "a") as f:
                    f.write("B\n")
                second = await inbox.get()
                while second.content == "A\n":
                    second = await inbox.get()
                return failed, failed_active, first, second, tailer.generation
            finally:
                tailer.close()
                observer.stop()
                observer.join(timeout=2.0)

        failed, failed_active, first, second, generation = run(scenario())
        assert failed.error is not None
        assert not failed_active
        assert first == OutputUpdate(3, "A\n")
        assert second == OutputUpdate(3, "A\nB\n")
        assert generation == 3
