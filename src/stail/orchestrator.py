"""The single owner of all dashboard state.

The :class:`Orchestrator` waits on one inbox queue that the job poller, the
file tailer, the job controller and the UI input handlers all write to. It
handles exactly one message per wake, re-derives which file should be tailed,
and then hands a read-only :class:`DashboardView` to the renderer.

Nothing else mutates this state, so none of it is locked.
"""

import asyncio
import enum
import logging
import os
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .file_tailer import FileTailer
from .job_controller import ControllerBusyError, JobController
from .jobs import JobRecord, filter_active
from .messages import (
    ActionKind,
    ControlRequest,
    ControlResult,
    KeyInput,
    OutputUpdate,
    RegistryUpdate,
    ScrollDirection,
    ScrollInput,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
WAITING_STATUS = "Waiting for job list..."

QUIT_KEYS = frozenset({"q", "escape", "ctrl+c"})
NEXT_KEYS = frozenset({"down", "j"})
PREVIOUS_KEYS = frozenset({"up", "k"})
TOP_KEYS = frozenset({"home", "g"})
BOTTOM_KEYS = frozenset({"end", "G"})
PAGE_DOWN_KEYS = frozenset({"pagedown", "ctrl+d"})
PAGE_UP_KEYS = frozenset({"pageup", "ctrl+u"})
CONTROL_KEYS = {"c": ActionKind.CANCEL, "R": ActionKind.REQUEUE}


class Focus(enum.Enum):
    JOB_LIST = "jobs"
    OUTPUT = "output"


def clamp(index: Optional[int], length: int) -> Optional[int]:
    """Clamp an index into ``[0, length - 1]``; None for an empty list."""
    if length <= 0:
        return None
    if index is None:
        return 0
    return max(0, min(index, length - 1))


def move(index: Optional[int], length: int, key: str) -> Optional[int]:
    """Apply a navigation key to a list index.

    All lists clamp at their ends; nothing wraps around.
    """
    if length <= 0:
        return None
    current = 0 if index is None else index
    if key in NEXT_KEYS:
        current += 1
    elif key in PREVIOUS_KEYS:
        current -= 1
    elif key in TOP_KEYS:
        current = 0
    elif key in BOTTOM_KEYS:
        current = length - 1
    elif key in PAGE_DOWN_KEYS:
        current += PAGE_SIZE
    elif key in PAGE_UP_KEYS:
        current -= PAGE_SIZE
    return clamp(current, length)


def derive_output_path(job: Optional[JobRecord]) -> Optional[str]:
    """The file to tail for a job: its stdout, else Slurm's default name."""
    if job is None:
        return None
    if job.stdout:
        return job.stdout
    return os.path.join(job.work_dir, f"slurm-{job.job_id}.out")


@dataclass(frozen=True)
class DashboardView:
    """Everything the renderer needs for one frame."""

    jobs: Tuple[JobRecord, ...]
    selected: Optional[int]
    output_lines: Tuple[str, ...]
    output_index: Optional[int]
    focus: Focus
    pending: Optional[ControlRequest]
    running_only: bool
    status: str
    output_path: Optional[str] = None
    summary: str = ""

    @property
    def pending_action(self) -> bool:
        return self.pending is not None

    @property
    def selected_job(self) -> Optional[JobRecord]:
        if self.selected is None:
            return None
        return self.jobs[self.selected]


class Orchestrator:
    """Multiplex worker and input messages into one consistent state."""

    def __init__(
        self,
        inbox: "asyncio.Queue",
        tailer: FileTailer,
        controller: JobController,
        *,
        running_only: bool = False,
        render: Optional[Callable[[DashboardView], None]] = None,
    ) -> None:
        self.inbox = inbox
        self.tailer = tailer
        self.controller = controller
        self.render = render

        self.registry: Tuple[JobRecord, ...] = ()
        self.jobs: List[JobRecord] = []
        self.selected: Optional[int] = None
        self.running_only = running_only

        self.output_lines: List[str] = []
        self.output_index: Optional[int] = None

        self.focus = Focus.JOB_LIST
        self.pending: Optional[ControlRequest] = None
        self.summary = ""
        self.status = WAITING_STATUS
        self.running = True

    @property
    def selected_job(self) -> Optional[JobRecord]:
        if self.selected is None:
            return None
        return self.jobs[self.selected]

    async def run(self) -> None:
        """Handle messages until a quit key is received."""
        self._render()
        while self.running:
            message = await self.inbox.get()
            self.handle(message)
            self._render()

    def handle(self, message: object) -> None:
        """Apply one message, then re-derive the tailed path from the new state."""
        if isinstance(message, RegistryUpdate):
            self._on_registry(message)
        elif isinstance(message, OutputUpdate):
            self._on_output(message)
        elif isinstance(message, ControlResult):
            self._on_control_result(message)
        elif isinstance(message, KeyInput):
            self._on_key(message.key)
        elif isinstance(message, ScrollInput):
            key = "up" if message.direction is ScrollDirection.UP else "down"
            self.output_index = move(self.output_index, len(self.output_lines), key)
        else:
            logger.warning("ignoring unexpected message %r", message)
        self._sync_output_path()

    def view(self) -> DashboardView:
        return DashboardView(
            jobs=tuple(self.jobs),
            selected=self.selected,
            output_lines=tuple(self.output_lines),
            output_index=self.output_index,
            focus=self.focus,
            pending=self.pending,
            running_only=self.running_only,
            status=self.status,
            summary=self.summary,
            output_path=self.tailer.path,
        )

    def _render(self) -> None:
        if self.render is not None:
            self.render(self.view())

    def _on_registry(self, message: RegistryUpdate) -> None:
        self.registry = message.jobs
        self._apply_filter()
        if self.status == WAITING_STATUS:
            self.status = ""

    def _apply_filter(self) -> None:
        self.jobs = filter_active(self.registry) if self.running_only else list(self.registry)
        self.selected = clamp(self.selected, len(self.jobs))
        self.summary = f"{len(self.jobs)} of {len(self.registry)} jobs" if self.running_only else f"{len(self.jobs)} jobs"

    def _on_output(self, message: OutputUpdate) -> None:
        if message.generation != self.tailer.generation:
            logger.debug("dropping output from stale generation %d", message.generation)
            return
        follow = self.output_index is None or self.output_index == len(self.output_lines) - 1
        if message.error is not None:
            self.output_lines = [f"Error: {message.error}"]
        else:
            self.output_lines = message.content.splitlines()
        if follow:
            self.output_index = clamp(len(self.output_lines) - 1, len(self.output_lines))
        else:
            self.output_index = clamp(self.output_index, len(self.output_lines))

    def _on_control_result(self, message: ControlResult) -> None:
        self.pending = None
        if message.success:
            self.status = message.message or f"{message.request.kind.value} of job {message.request.job_id} done"
        else:
            self.status = f"Failed to {message.request.kind.value} job {message.request.job_id}: {message.message}"

    def _on_key(self, key: str) -> None:
        if key in QUIT_KEYS:
            self.running = False
        elif key == "tab":
            self.focus = Focus.OUTPUT if self.focus is Focus.JOB_LIST else Focus.JOB_LIST
        elif key == "f":
            self.running_only = not self.running_only
            self._apply_filter()
            self.status = "Showing running/pending jobs" if self.running_only else "Showing all jobs"
        elif key in CONTROL_KEYS:
            self._request_action(CONTROL_KEYS[key])
        elif self.focus is Focus.JOB_LIST:
            self.selected = move(self.selected, len(self.jobs), key)
        else:
            self.output_index = move(self.output_index, len(self.output_lines), key)

    def _request_action(self, kind: ActionKind) -> None:
        job = self.selected_job
        if job is None:
            self.status = "No job selected"
            return
        if self.pending is not None:
            self.status = f"Still waiting for {self.pending.kind.value} of job {self.pending.job_id}"
            return
        request = ControlRequest(kind, job)
        try:
            self.controller.submit(request)
        except ControllerBusyError as e:
            self.status = str(e)
            return
        self.pending = request
        self.status = f"Sent {kind.value} for job {job.job_id}..."

    def _sync_output_path(self) -> None:
        path = derive_output_path(self.selected_job)
        if path == self.tailer.path:
            return
        # The old buffer belongs to another file
        self.output_lines = []
        self.output_index = None
        self.tailer.set_path(path)
