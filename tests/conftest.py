"""Pytest fixtures for stail tests."""

import asyncio
from typing import List, Optional, Tuple

import pytest

from stail.jobs import SQUEUE_DELIMITER, SQUEUE_FIELDS, JobRecord
from stail.slurm_client import SlurmClient


class FakeWatch:
    def __init__(self, path: str) -> None:
        self.path = path


class FakeObserver:
    """Stands in for a watchdog observer and records schedule/unschedule calls."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[Tuple[str, str]] = []
        self.handlers = {}
        self.started = False
        self.stopped = False

    def schedule(self, handler, path: str, recursive: bool = False) -> FakeWatch:
        if self.fail:
            raise FileNotFoundError(2, "No such file or directory", path)
        self.calls.append(("schedule", path))
        watch = FakeWatch(path)
        self.handlers[watch] = handler
        return watch

    def unschedule(self, watch: FakeWatch) -> None:
        self.calls.append(("unschedule", watch.path))
        self.handlers.pop(watch)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: Optional[float] = None) -> None:
        pass

    @property
    def active_watches(self) -> int:
        return len(self.handlers)


class FakeController:
    """Accepts requests without running anything."""

    def __init__(self) -> None:
        self.requests = []

    def submit(self, request) -> None:
        self.requests.append(request)


class FakeSlurmClient:
    """Returns canned command output, or raises like a failing command."""

    def __init__(self, sacct: str = "", squeue: str = "", error: Optional[str] = None) -> None:
        self.sacct = sacct
        self.squeue = squeue
        self.error = error
        self.cancelled: List[str] = []
        self.requeued: List[str] = []
        self.control_result = (True, "ok")

    async def list_completed_jobs(self, user: str, lookback_hours: int) -> str:
        if self.error:
            raise RuntimeError(self.error)
        return self.sacct

    async def list_live_jobs(self, user: str) -> str:
        if self.error:
            raise RuntimeError(self.error)
        return self.squeue

    async def cancel_job(self, jobid: str) -> Tuple[bool, str]:
        self.cancelled.append(jobid)
        return self.control_result

    async def requeue_job(self, job: JobRecord) -> Tuple[bool, str]:
        self.requeued.append(job.job_id)
        return self.control_result


def squeue_line(**values: str) -> str:
    """Build one squeue line; unspecified fields are empty."""
    return "".join(values.get(name, "").ljust(8) + SQUEUE_DELIMITER for name, _width in SQUEUE_FIELDS)


def sacct_line(job_id: str, name: str = "job", state: str = "COMPLETED", start: str = "2024-05-01T10:00:00", work_dir: str = "/work") -> str:
    return "|".join(
        [job_id, name, "gpu", "lab", "2024-05-01T09:59:00", start, "Unknown", state, work_dir, "None", "01:00:00", "00:10:00", "node01"]
    )


def make_jobs(*job_ids: str, state: str = "R", work_dir: str = "/work") -> Tuple[JobRecord, ...]:
    return tuple(JobRecord(job_id=job_id, name=f"job-{job_id}", state=state, work_dir=work_dir) for job_id in job_ids)


@pytest.fixture
def slurm_client() -> SlurmClient:
    """Create a SlurmClient instance for testing."""
    return SlurmClient(mock_mode=True)


@pytest.fixture
def fake_observer() -> FakeObserver:
    return FakeObserver()


@pytest.fixture
def sample_sacct() -> str:
    """sacct --parsable2 output with job steps mixed in."""
    return "\n".join(
        [
            "JobID|JobName|Partition|Account|Submit|Start|End|State|WorkDir|Reason|TimeLimit|Elapsed|NodeList",
            sacct_line("100", "train", state="RUNNING"),
            sacct_line("100.batch", "batch", state="RUNNING"),
            sacct_line("100.extern", "extern", state="RUNNING"),
            sacct_line("100.0", "python", state="RUNNING"),
            sacct_line("101", "eval", state="CANCELLED by 1000"),
            sacct_line("102", "_interactive", state="RUNNING"),
            sacct_line("103_2", "sweep", state="RUNNING", start="Unknown"),
            sacct_line("104", "odd", state="BOOT_FAIL"),
        ]
    )


def run(coro):
    """Run a coroutine to completion with a safety timeout."""
    return asyncio.run(asyncio.wait_for(coro, timeout=5))
