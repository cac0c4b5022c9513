"""Textual front end: renders orchestrator state and feeds it input events."""

import asyncio
import logging
from typing import Optional, Tuple

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import DataTable, Footer, Header, Static
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from .file_tailer import FileTailer
from .job_controller import JobController
from .job_poller import JobPoller
from .jobs import JobRecord
from .messages import KeyInput, ScrollDirection, ScrollInput
from .orchestrator import DashboardView, Focus, Orchestrator
from .slurm_client import SlurmClient
from .styles import APP_CSS
from .widgets import OutputViewer, StatusBar

logger = logging.getLogger(__name__)


class JobDashboard(App):
    """Live view of a user's Slurm jobs with the selected job's output."""

    CSS = APP_CSS
    TITLE = "stail"

    JOB_STATE_COLORS = {
        "R": "green",
        "PD": "yellow",
        "CD": "dim",
        "F": "red",
        "CA": "red",
        "TO": "red",
        "NF": "red",
        "PR": "magenta",
        "S": "magenta",
        "RV": "magenta",
    }

    COLUMNS = ["JOBID", "NAME", "PARTITION", "STATE", "ELAPSED", "TIMELIMIT", "NODELIST"]

    HELP = "tab focus | j/k move | g/G top/bottom | c cancel | R requeue | f running only | q quit"

    def __init__(
        self,
        *,
        client: SlurmClient,
        user: str,
        refresh_sec: float = 10.0,
        file_refresh_sec: float = 10.0,
        lookback_hours: int = 24,
        running_only: bool = False,
        observer: Optional[BaseObserver] = None,
    ) -> None:
        super().__init__()
        self.client = client
        self.user = user
        self.refresh_sec = refresh_sec
        self.file_refresh_sec = file_refresh_sec
        self.lookback_hours = lookback_hours
        self.running_only = running_only
        self.observer = observer or Observer()
        self.status = StatusBar(classes="bar")
        self.inbox: Optional[asyncio.Queue] = None
        self.orchestrator: Optional[Orchestrator] = None
        self._shown_jobs: Optional[Tuple[JobRecord, ...]] = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield self.status
        with Horizontal(classes="split-container"):
            with Vertical(id="jobs_list_pane", classes="list-pane focused"):
                yield DataTable(id="jobs_table")
            with Vertical(id="jobs_detail_pane", classes="detail-pane"):
                yield Static("Select a job to see details.", id="job_detail", classes="detail-section")
                yield Static("Output", id="output_header", classes="section-header")
                yield OutputViewer("No output", id="output_viewer", classes="output-viewer")
        yield Static(self.HELP, classes="bar")
        yield Footer()

    async def on_mount(self) -> None:
        table: DataTable = self.query_one("#jobs_table", DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        # Keys are handled by the orchestrator, not the table
        table.can_focus = False
        for col in self.COLUMNS:
            table.add_column(col, key=col)

        self.inbox = asyncio.Queue()
        self.observer.start()
        tailer = FileTailer(self.observer, self.inbox, interval=self.file_refresh_sec)
        controller = JobController(self.client, self.inbox)
        poller = JobPoller(
            self.client,
            self.inbox,
            user=self.user,
            lookback_hours=self.lookback_hours,
            interval=self.refresh_sec,
        )
        self.orchestrator = Orchestrator(
            self.inbox,
            tailer,
            controller,
            running_only=self.running_only,
            render=self.render_view,
        )
        self.run_worker(poller.run(), group="poller", exit_on_error=False)
        self.run_worker(self._run_orchestrator(), group="orchestrator")

    async def _run_orchestrator(self) -> None:
        assert self.orchestrator is not None
        try:
            await self.orchestrator.run()
        finally:
            self.orchestrator.tailer.close()
            await self.orchestrator.controller.close()
            self.observer.stop()
            self.observer.join(timeout=2.0)
        self.exit()

    def on_key(self, event: events.Key) -> None:
        if self.inbox is None:
            return
        self.inbox.put_nowait(KeyInput(event.key))
        event.stop()
        event.prevent_default()

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        if self.inbox is not None:
            self.inbox.put_nowait(ScrollInput(ScrollDirection.UP))

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        if self.inbox is not None:
            self.inbox.put_nowait(ScrollInput(ScrollDirection.DOWN))

    def render_view(self, view: DashboardView) -> None:
        """Draw one frame from an orchestrator snapshot."""
        self._populate_jobs(view)
        self._show_detail(view.selected_job)

        output_focused = view.focus is Focus.OUTPUT
        self.query_one("#jobs_list_pane").set_class(not output_focused, "focused")
        viewer = self.query_one("#output_viewer", OutputViewer)
        viewer.set_class(output_focused, "focused")
        placeholder = "No job selected" if view.output_path is None else "Waiting for output..."
        viewer.show(view.output_lines, view.output_index, placeholder)

        header = "Output" if view.output_path is None else f"Output: {view.output_path}"
        if view.output_lines and view.output_index is not None:
            header += f"  [{view.output_index + 1}/{len(view.output_lines)}]"
        self.query_one("#output_header", Static).update(Text(header))

        self.status.message = self.status_text(view)

    @staticmethod
    def status_text(view: DashboardView) -> str:
        parts = [part for part in (view.summary, view.status) if part]
        if view.running_only:
            parts.append("filter: R/PD")
        message = " | ".join(parts)
        if view.pending_action:
            message = f"⏳ {message}"
        return message

    def _populate_jobs(self, view: DashboardView) -> None:
        table: DataTable = self.query_one("#jobs_table", DataTable)
        if view.jobs != self._shown_jobs:
            self._fill_table(table, view.jobs)
        if view.selected is not None and table.cursor_row != view.selected:
            table.move_cursor(row=view.selected)

    def _fill_table(self, table: DataTable, jobs: Tuple[JobRecord, ...]) -> None:
        self._shown_jobs = jobs
        table.clear()
        for job in jobs:
            table.add_row(
                job.job_id,
                job.name[:30],
                job.partition,
                Text(job.state, style=self.JOB_STATE_COLORS.get(job.state, "white")),
                job.elapsed,
                job.time_limit,
                job.node_list,
                key=job.job_id,
            )

    def _show_detail(self, job: Optional[JobRecord]) -> None:
        detail = self.query_one("#job_detail", Static)
        if job is None:
            detail.update("Select a job to see details.")
            return
        lines = [
            f"State: {job.state}  Reason: {job.reason or '-'}",
            f"Partition: {job.partition}  Account: {job.account}",
            f"Submit: {job.submit}",
            f"Start:  {job.start}",
            f"End:    {job.end}",
            f"WorkDir: {job.work_dir}",
        ]
        if job.stderr and job.stderr != job.stdout:
            lines.append(f"Stderr: {job.stderr}")
        # Plain Text so that job names are not parsed as markup
        detail.update(Text.assemble((f"Job {job.job_id}", "bold"), f"  {job.name}\n", "\n".join(lines)))
