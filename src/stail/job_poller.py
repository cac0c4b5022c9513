"""Background worker that keeps the job registry up to date."""

import asyncio
import logging
from typing import Optional, Tuple

from .jobs import JobRecord, merge_job_sources, parse_sacct_output, parse_squeue_output
from .messages import RegistryUpdate
from .slurm_client import SlurmClient

logger = logging.getLogger(__name__)


class JobPoller:
    """Poll sacct and squeue on an interval and publish merged snapshots.

    Each tick either puts one :class:`RegistryUpdate` on the inbox or nothing.
    A failed command skips the tick; there is no retry until the next one.
    """

    def __init__(
        self,
        client: SlurmClient,
        inbox: "asyncio.Queue",
        *,
        user: str,
        lookback_hours: int = 24,
        interval: float = 10.0,
    ) -> None:
        self.client = client
        self.inbox = inbox
        self.user = user
        self.lookback_hours = lookback_hours
        self.interval = interval

    async def poll_once(self) -> Optional[Tuple[JobRecord, ...]]:
        """Fetch both sources and merge them. Returns None when there is nothing to publish."""
        try:
            completed_text, live_text = await asyncio.gather(
                self.client.list_completed_jobs(self.user, self.lookback_hours),
                self.client.list_live_jobs(self.user),
            )
        except (RuntimeError, OSError) as e:
            logger.warning("job poll skipped: %s", e)
            return None

        # Merging stats output paths, so it runs off the event loop
        jobs = await asyncio.to_thread(self._merge, completed_text, live_text)
        if not jobs:
            logger.debug("job poll returned no jobs")
            return None
        return jobs

    @staticmethod
    def _merge(completed_text: str, live_text: str) -> Tuple[JobRecord, ...]:
        return merge_job_sources(parse_sacct_output(completed_text), parse_squeue_output(live_text))

    async def run(self) -> None:
        """Poll until cancelled, starting immediately."""
        while True:
            jobs = await self.poll_once()
            if jobs is not None:
                await self.inbox.put(RegistryUpdate(jobs))
            await asyncio.sleep(self.interval)
