"""Job records and parsing of Slurm job listings."""

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Long Slurm state names mapped to the short codes squeue prints with %t
STATE_CODES = {
    "PENDING": "PD",
    "RUNNING": "R",
    "COMPLETED": "CD",
    "FAILED": "F",
    "CANCELLED": "CA",
    "TIMEOUT": "TO",
    "PREEMPTED": "PR",
    "NODE_FAIL": "NF",
    "REVOKED": "RV",
    "SUSPENDED": "S",
}

ACTIVE_STATES = frozenset({"R", "PD"})

# Job steps sacct reports alongside the allocation itself
EXCLUDED_ID_PARTS = ("batch", "extern")
EXCLUDED_ID_SUFFIX = ".0"
EXCLUDED_NAMES = frozenset({"_interactive"})

SACCT_FIELDS = [
    "JobID",
    "JobName",
    "Partition",
    "Account",
    "Submit",
    "Start",
    "End",
    "State",
    "WorkDir",
    "Reason",
    "TimeLimit",
    "Elapsed",
    "NodeList",
]
SACCT_DELIMITER = "|"

# squeue -O field name and column width; values are padded to the width
SQUEUE_FIELDS = [
    ("JobID", 32),
    ("ArrayJobID", 32),
    ("ArrayTaskID", 32),
    ("Name", 256),
    ("Partition", 64),
    ("Account", 64),
    ("SubmitTime", 32),
    ("StartTime", 32),
    ("EndTime", 32),
    ("State", 32),
    ("WorkDir", 1024),
    ("Reason", 128),
    ("TimeLimit", 32),
    ("TimeUsed", 32),
    ("STDOUT", 1024),
    ("STDERR", 1024),
    ("NodeList", 512),
]
SQUEUE_DELIMITER = "|#|"

UNKNOWN = "Unknown"
_MISSING_VALUES = frozenset({"", "N/A", "(null)"})


@dataclass(frozen=True)
class JobRecord:
    """A single Slurm job as shown in the job table."""

    job_id: str
    name: str = ""
    partition: str = ""
    account: str = ""
    state: str = ""
    submit: str = UNKNOWN
    start: str = UNKNOWN
    end: str = UNKNOWN
    work_dir: str = ""
    reason: str = ""
    time_limit: str = ""
    elapsed: str = ""
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    node_list: str = ""

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES


def state_code(state: str) -> str:
    """Map a native state such as ``CANCELLED by 1234`` to its short code.

    Unknown states are returned unchanged.
    """
    words = state.split()
    if not words:
        return state
    return STATE_CODES.get(words[0], state)


def is_excluded(job_id: str, name: str) -> bool:
    """Return True for job steps and interactive allocations."""
    if any(part in job_id for part in EXCLUDED_ID_PARTS):
        return True
    if job_id.endswith(EXCLUDED_ID_SUFFIX):
        return True
    return name in EXCLUDED_NAMES


def _optional(value: str) -> Optional[str]:
    value = value.strip()
    return None if value in _MISSING_VALUES else value


def parse_sacct_output(text: str) -> List[JobRecord]:
    """Parse ``sacct --parsable2`` output into job records.

    Lines with too few fields are skipped, as are the header row and the
    records rejected by :func:`is_excluded`.
    """
    jobs: List[JobRecord] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        parts = [p.strip() for p in line.split(SACCT_DELIMITER)]
        if len(parts) < len(SACCT_FIELDS) - 1 or parts[0] == SACCT_FIELDS[0]:
            continue
        row = {k: parts[i] if i < len(parts) else "" for i, k in enumerate(SACCT_FIELDS)}
        if is_excluded(row["JobID"], row["JobName"]):
            continue
        jobs.append(
            JobRecord(
                job_id=row["JobID"],
                name=row["JobName"],
                partition=row["Partition"],
                account=row["Account"],
                state=state_code(row["State"]),
                submit=row["Submit"] or UNKNOWN,
                start=row["Start"] or UNKNOWN,
                end=row["End"] or UNKNOWN,
                work_dir=row["WorkDir"],
                reason=row["Reason"],
                time_limit=row["TimeLimit"],
                elapsed=row["Elapsed"],
                node_list=row["NodeList"],
            )
        )
    return jobs


def parse_squeue_output(text: str) -> List[Tuple[JobRecord, Optional[str]]]:
    """Parse delimited ``squeue -O`` output.

    Returns pairs of (record, array key). The record keeps squeue's raw JobID;
    the array key is ``"{ArrayJobID}_{ArrayTaskID}"`` for array tasks, which
    is how sacct names them, and None otherwise.
    """
    names = [name for name, _width in SQUEUE_FIELDS]
    result: List[Tuple[JobRecord, Optional[str]]] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        parts = [p.strip() for p in line.split(SQUEUE_DELIMITER)]
        if len(parts) < len(names):
            continue
        row = dict(zip(names, parts))
        if row["JobID"] == "JOBID":
            continue

        array_key = None
        task_id = _optional(row["ArrayTaskID"])
        parent_id = _optional(row["ArrayJobID"])
        if task_id and parent_id:
            # Pending ranges such as "0-9%2" are bracketed by sacct
            array_key = f"{parent_id}_{task_id}" if task_id.isdigit() else f"{parent_id}_[{task_id}]"

        result.append(
            (
                JobRecord(
                    job_id=row["JobID"],
                    name=row["Name"],
                    partition=row["Partition"],
                    account=row["Account"],
                    state=state_code(row["State"]),
                    submit=_optional(row["SubmitTime"]) or UNKNOWN,
                    start=_optional(row["StartTime"]) or UNKNOWN,
                    end=_optional(row["EndTime"]) or UNKNOWN,
                    work_dir=row["WorkDir"],
                    reason=row["Reason"],
                    time_limit=row["TimeLimit"],
                    elapsed=row["TimeUsed"],
                    stdout=_optional(row["STDOUT"]),
                    stderr=_optional(row["STDERR"]),
                    node_list=row["NodeList"],
                ),
                array_key,
            )
        )
    return result


def _existing_file(path: Optional[str]) -> Optional[str]:
    if path and os.path.isfile(path):
        return path
    return None


def merge_job_sources(
    completed: Iterable[JobRecord],
    live: Iterable[Tuple[JobRecord, Optional[str]]],
) -> Tuple[JobRecord, ...]:
    """Merge sacct records with squeue records into one sorted snapshot.

    Matched jobs take only stdout/stderr from squeue (and only when the file
    exists) plus the start time when sacct did not know it yet. Jobs only
    squeue knows about are added, array tasks under their array key.
    """
    merged: Dict[str, JobRecord] = {}
    for job in completed:
        merged[job.job_id] = job

    for live_job, array_key in live:
        key = live_job.job_id
        if key not in merged and array_key and array_key in merged:
            key = array_key
        known = merged.get(key)
        if known is None:
            job_id = array_key or live_job.job_id
            merged[job_id] = dataclasses.replace(live_job, job_id=job_id)
            continue
        changes = {
            "stdout": _existing_file(live_job.stdout),
            "stderr": _existing_file(live_job.stderr),
        }
        if known.start == UNKNOWN and live_job.start != UNKNOWN:
            changes["start"] = live_job.start
        merged[key] = dataclasses.replace(known, **changes)

    return tuple(sorted(merged.values(), key=lambda job: job.job_id))


def filter_active(jobs: Iterable[JobRecord]) -> List[JobRecord]:
    """Keep running and pending jobs, preserving order."""
    return [job for job in jobs if job.is_active]
