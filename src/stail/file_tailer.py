"""Tail the output file of the selected job.

A :class:`FileTailer` follows at most one file at a time. Every call to
:meth:`FileTailer.set_path` with a new path tears down the current watch and
reader before the next ones are set up, and bumps a generation counter that
is attached to everything the new reader publishes. The orchestrator drops
updates whose generation is no longer current.

The reader wakes up on a filesystem notification from the injected watchdog
observer, or after ``interval`` seconds when no notification arrives (network
filesystems often never deliver one).
"""

import asyncio
import codecs
import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers.api import BaseObserver, ObservedWatch

from .messages import OutputUpdate

logger = logging.getLogger(__name__)

# Opening the file ourselves produces "opened" and "closed_no_write" events,
# so only react to events that mean the content may have changed.
CHANGE_EVENTS = frozenset({"modified", "created", "moved", "closed"})


class FileReader:
    """Incrementally read a growing file.

    Keeps the byte offset of what has been consumed and the decoded text so
    far. :meth:`read` returns the whole buffer, not just the new part.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.offset = 0
        self.content = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def reset(self) -> None:
        self.offset = 0
        self.content = ""
        self._decoder.reset()

    def read(self) -> str:
        """Append any bytes written since the last read and return the buffer.

        Raises:
            OSError: if the file cannot be opened or read.
        """
        with open(self.path, "rb") as f:
            if os.fstat(f.fileno()).st_size < self.offset:
                # Truncated or replaced
                self.reset()
            f.seek(self.offset)
            data = f.read()
        self.offset += len(data)
        self.content += self._decoder.decode(data)
        return self.content


class _PathEventHandler(FileSystemEventHandler):
    """Forward change events for one file in a watched directory."""

    def __init__(self, path: str, notify: Callable[[], None]) -> None:
        super().__init__()
        self.path = path
        self.notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in CHANGE_EVENTS:
            return
        paths = (event.src_path, getattr(event, "dest_path", ""))
        if any(p and os.path.abspath(os.fsdecode(p)) == self.path for p in paths):
            self.notify()


@dataclass
class _Subscription:
    path: str
    generation: int
    watch: ObservedWatch
    task: "asyncio.Task"


class FileTailer:
    """Keep exactly one file subscription and publish its content to the inbox."""

    def __init__(self, observer: BaseObserver, inbox: "asyncio.Queue", interval: float = 10.0) -> None:
        self.observer = observer
        self.inbox = inbox
        self.interval = interval
        self.generation = 0
        self._path: Optional[str] = None
        self._subscription: Optional[_Subscription] = None

    @property
    def path(self) -> Optional[str]:
        return self._path

    @property
    def active(self) -> bool:
        """True while a watch and its reader are running."""
        return self._subscription is not None

    def set_path(self, path: Optional[str]) -> None:
        """Switch the tailed file. Setting the current path again does nothing.

        Must be called from the event loop that consumes the inbox.
        """
        if path == self._path:
            return

        self._teardown()
        self.generation += 1
        self._path = path
        generation = self.generation

        if path is None:
            self.inbox.put_nowait(OutputUpdate(generation, ""))
            return

        loop = asyncio.get_running_loop()
        target = os.path.abspath(path)
        wake = asyncio.Event()
        handler = _PathEventHandler(target, lambda: loop.call_soon_threadsafe(wake.set))
        try:
            watch = self.observer.schedule(handler, os.path.dirname(target), recursive=False)
        except OSError as e:
            logger.warning("cannot watch %s: %s", path, e)
            self.inbox.put_nowait(OutputUpdate(generation, error=f"Cannot watch {path}: {e}"))
            return

        logger.debug("tailing %s (generation %d)", path, generation)
        task = loop.create_task(self._read_loop(FileReader(path), wake, generation))
        self._subscription = _Subscription(path, generation, watch, task)

    def close(self) -> None:
        """Drop the current subscription. The observer itself is owned by the caller."""
        self._teardown()

    def _teardown(self) -> None:
        sub = self._subscription
        if sub is None:
            return
        self._subscription = None
        sub.task.cancel()
        try:
            self.observer.unschedule(sub.watch)
        except KeyError:
            # Watch already gone, e.g. its directory was removed
            logger.debug("watch for %s was already removed", sub.path)

    async def _read_loop(self, reader: FileReader, wake: asyncio.Event, generation: int) -> None:
        while True:
            wake.clear()
            try:
                content = await asyncio.to_thread(reader.read)
            except OSError as e:
                update = OutputUpdate(generation, error=f"{reader.path}: {e.strerror or e}")
            else:
                update = OutputUpdate(generation, content)
            await self.inbox.put(update)
            try:
                await asyncio.wait_for(wake.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
