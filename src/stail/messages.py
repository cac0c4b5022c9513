"""Messages exchanged between the background workers and the orchestrator.

Every worker talks to the orchestrator by putting one of these immutable
values on its inbox queue. Nothing else is shared between them.
"""

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

from .jobs import JobRecord


class ActionKind(enum.Enum):
    CANCEL = "cancel"
    REQUEUE = "requeue"


class ScrollDirection(enum.Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class RegistryUpdate:
    """A complete, sorted job snapshot from the poller."""

    jobs: Tuple[JobRecord, ...]


@dataclass(frozen=True)
class OutputUpdate:
    """Tailed file content, or the error that replaced it."""

    generation: int
    content: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class ControlRequest:
    kind: ActionKind
    job: JobRecord

    @property
    def job_id(self) -> str:
        return self.job.job_id


@dataclass(frozen=True)
class ControlResult:
    request: ControlRequest
    success: bool
    message: str = ""


@dataclass(frozen=True)
class KeyInput:
    """A key press, named the way Textual names keys (``up``, ``ctrl+d``, ``G``)."""

    key: str


@dataclass(frozen=True)
class ScrollInput:
    direction: ScrollDirection
