"""Background worker that runs cancel/requeue commands."""

import asyncio
import logging
from typing import Optional

from .messages import ActionKind, ControlRequest, ControlResult
from .slurm_client import SlurmClient

logger = logging.getLogger(__name__)


class ControllerBusyError(RuntimeError):
    """Raised when a request is submitted while another one is in flight."""


class JobController:
    """Execute one job-control request at a time.

    The command runs in its own task; its outcome is put on the inbox as a
    :class:`ControlResult`. Failures are reported, never retried.
    """

    def __init__(self, client: SlurmClient, inbox: "asyncio.Queue") -> None:
        self.client = client
        self.inbox = inbox
        self._task: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, request: ControlRequest) -> None:
        if self.busy:
            raise ControllerBusyError(f"a {request.kind.value} request cannot start while another is running")
        self._task = asyncio.get_running_loop().create_task(self._execute(request))

    async def _execute(self, request: ControlRequest) -> None:
        logger.info("%s job %s", request.kind.value, request.job_id)
        try:
            if request.kind is ActionKind.CANCEL:
                success, message = await self.client.cancel_job(request.job_id)
            else:
                success, message = await self.client.requeue_job(request.job)
        except OSError as e:
            success, message = False, str(e)
        if not success:
            logger.warning("%s job %s failed: %s", request.kind.value, request.job_id, message)
        await self.inbox.put(ControlResult(request, success, message))

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
