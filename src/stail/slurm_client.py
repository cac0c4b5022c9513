"""Slurm client for interacting with Slurm commands."""

import datetime
import logging
import shlex
from dataclasses import dataclass
from typing import Optional, Tuple

from .jobs import SACCT_FIELDS, SQUEUE_DELIMITER, SQUEUE_FIELDS, JobRecord
from .utils import run_cmd, which

logger = logging.getLogger(__name__)


@dataclass
class SlurmCommands:
    """Paths to Slurm commands."""

    sacct: str = "sacct"
    squeue: str = "squeue"
    scancel: str = "scancel"
    scontrol: str = "scontrol"


class SlurmClient:
    """Client for listing and controlling a user's Slurm jobs."""

    COMMAND_NAMES = ("sacct", "squeue", "scancel", "scontrol")
    REQUIRED_COMMANDS = ("sacct", "squeue")

    def __init__(self, cmds: Optional[SlurmCommands] = None, mock_mode: bool = False) -> None:
        self.cmds = cmds or SlurmCommands()
        self._mock_mode = mock_mode
        if mock_mode:
            return

        missing = []
        for name in self.COMMAND_NAMES:
            found = which(getattr(self.cmds, name))
            if found:
                setattr(self.cmds, name, shlex.quote(found))
            elif name in self.REQUIRED_COMMANDS:
                missing.append(getattr(self.cmds, name))
        if missing:
            raise RuntimeError(f"Slurm commands not found: {', '.join(missing)} (use --mock to run without Slurm)")

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    @staticmethod
    def lookback_start(hours: int, now: Optional[datetime.datetime] = None) -> str:
        """Return the sacct ``-S`` timestamp for a lookback window in hours."""
        now = now or datetime.datetime.now()
        return (now - datetime.timedelta(hours=hours)).strftime("%Y-%m-%dT%H:%M:%S")

    def sacct_command(self, user: str, lookback_hours: int) -> str:
        fmt = ",".join(SACCT_FIELDS)
        return (
            f"{self.cmds.sacct} -u {shlex.quote(user)} -S {self.lookback_start(lookback_hours)} "
            f"--format={fmt} --parsable2 --noheader"
        )

    def squeue_command(self, user: str) -> str:
        fmt = ",".join(f"{name}:{width}{SQUEUE_DELIMITER}" for name, width in SQUEUE_FIELDS)
        return f"{self.cmds.squeue} -h -u {shlex.quote(user)} -O {shlex.quote(fmt)}"

    async def list_completed_jobs(self, user: str, lookback_hours: int) -> str:
        """Get sacct output for the user's jobs over the lookback window."""
        if self._mock_mode:
            return self._mock_sacct_output()
        rc, out, err = await run_cmd(self.sacct_command(user, lookback_hours), timeout=10)
        if rc != 0:
            raise RuntimeError(f"sacct failed: {err.strip() or 'unknown error'}")
        return out

    async def list_live_jobs(self, user: str) -> str:
        """Get delimited squeue output for the user's queued and running jobs."""
        if self._mock_mode:
            return self._mock_squeue_output()
        rc, out, err = await run_cmd(self.squeue_command(user), timeout=10)
        if rc != 0:
            raise RuntimeError(f"squeue failed: {err.strip() or 'unknown error'}")
        return out

    async def cancel_job(self, jobid: str) -> Tuple[bool, str]:
        """Cancel a job using scancel.

        Returns:
            Tuple of (success, message)
        """
        if self._mock_mode:
            return True, f"Job {jobid} cancelled (mock)"
        if not which(shlex.split(self.cmds.scancel)[0]):
            return False, "scancel command not found"

        rc, _out, err = await run_cmd(f"{self.cmds.scancel} {shlex.quote(jobid)}", timeout=10)
        if rc == 0:
            return True, f"Job {jobid} cancelled"
        return False, err.strip() or "Unknown error"

    async def requeue_job(self, job: JobRecord) -> Tuple[bool, str]:
        """Requeue a job using scontrol.

        Takes the full record since resubmission may depend on the job's
        metadata; ``scontrol requeue`` itself only needs the id.
        """
        if self._mock_mode:
            return True, f"Job {job.job_id} requeued (mock)"
        if not which(shlex.split(self.cmds.scontrol)[0]):
            return False, "scontrol command not found"

        rc, _out, err = await run_cmd(f"{self.cmds.scontrol} requeue {shlex.quote(job.job_id)}", timeout=10)
        if rc == 0:
            return True, f"Job {job.job_id} requeued"
        return False, err.strip() or "Unknown error"

    def _mock_sacct_output(self) -> str:
        """Return mock sacct output for testing without Slurm."""
        rows = [
            "12340|preprocess|cpu|lab|2024-05-01T09:00:00|2024-05-01T09:00:05|2024-05-01T09:12:40|COMPLETED|/tmp|None|01:00:00|00:12:35|cpu01",
            "12340.batch|batch||lab|2024-05-01T09:00:05|2024-05-01T09:00:05|2024-05-01T09:12:40|COMPLETED|||||cpu01",
            "12340.extern|extern||lab|2024-05-01T09:00:05|2024-05-01T09:00:05|2024-05-01T09:12:40|COMPLETED|||||cpu01",
            "12341|train-resnet-50|h100|lab|2024-05-01T10:00:00|2024-05-01T10:02:00|Unknown|RUNNING|/tmp|None|1-00:00:00|02:15:30|dgx-h100-01",
            "12342|eval-sweep|a100|lab|2024-05-01T10:05:00|2024-05-01T10:06:00|2024-05-01T10:06:42|FAILED|/tmp|NonZeroExitCode|04:00:00|00:00:42|dgx-a100-02",
            "12343_1|array-task|cpu|lab|2024-05-01T11:00:00|2024-05-01T11:00:02|2024-05-01T11:30:00|CANCELLED by 1000|/tmp|None|01:00:00|00:29:58|cpu02",
            "12344|_interactive|cpu|lab|2024-05-01T11:10:00|2024-05-01T11:10:01|Unknown|RUNNING|/tmp|None|01:00:00|00:20:00|cpu03",
        ]
        return "\n".join(rows) + "\n"

    def _mock_squeue_output(self) -> str:
        """Return mock squeue output for testing without Slurm."""
        rows = [
            ["12341", "12341", "N/A", "train-resnet-50", "h100", "lab", "2024-05-01T10:00:00", "2024-05-01T10:02:00", "N/A",
             "RUNNING", "/tmp", "None", "1-00:00:00", "2:15:30", "/tmp/slurm-12341.out", "/tmp/slurm-12341.out", "dgx-h100-01"],
            ["12345", "12345", "N/A", "inference-bert", "a100", "lab", "2024-05-01T12:00:00", "N/A", "N/A",
             "PENDING", "/tmp", "Resources", "12:00:00", "0:00", "/tmp/slurm-12345.out", "/tmp/slurm-12345.out", ""],
        ]
        return "\n".join(SQUEUE_DELIMITER.join(row) + SQUEUE_DELIMITER for row in rows) + "\n"
