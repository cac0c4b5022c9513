"""
stail - live Slurm job dashboard (Textual)

Terminal UI that follows your Slurm jobs and tails the output of the one
you select.

Features:
- Job list merged from sacct (finished jobs over a lookback window) and
  squeue (queued and running jobs, with their stdout/stderr paths)
- Live tail of the selected job's stdout, driven by filesystem
  notifications with a polling fallback for network filesystems
- Cancel ('c') and requeue ('R') the selected job
- Running/pending-only filter ('f')
- Vim-style navigation in both panes, 'tab' switches focus

Logging goes to a file since the terminal belongs to the UI.
"""

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .app import JobDashboard
from .config import Config
from .slurm_client import SlurmClient

LOG_FORMAT = "[%(asctime)s %(levelname)s %(name)s] %(message)s"


def default_log_file() -> Path:
    state_dir = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / "stail"
    return state_dir / "stail.log"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    p = argparse.ArgumentParser(description="Live Slurm job dashboard (Textual)")
    p.add_argument("--user", "-u", type=str, default=None, help="User whose jobs to show (default: $USER)")
    p.add_argument(
        "--time-period",
        "-t",
        type=int,
        default=None,
        help="Lookback window for finished jobs, in hours (default: 24)",
    )
    p.add_argument("--refresh", type=float, default=None, help="Job list refresh interval (s)")
    p.add_argument("--file-refresh", type=float, default=None, help="Output file fallback poll interval (s)")
    p.add_argument("--running-only", action="store_true", help="Start with only running/pending jobs shown")
    p.add_argument(
        "--save-config",
        action="store_true",
        help="Save the effective settings as defaults for later runs",
    )
    p.add_argument(
        "--mock",
        action="store_true",
        help="Use mock data (for development/testing without Slurm)",
    )
    p.add_argument("--log-file", type=Path, default=None, help="Log file (default: $XDG_STATE_HOME/stail/stail.log)")
    p.add_argument(
        "--log-level",
        type=str.upper,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )
    return p.parse_args(argv)


def effective_config(args: argparse.Namespace, config: Config) -> Config:
    """Overlay command line flags on the loaded config."""
    return Config(
        refresh_sec=args.refresh if args.refresh is not None else config.refresh_sec,
        file_refresh_sec=args.file_refresh if args.file_refresh is not None else config.file_refresh_sec,
        user=args.user or config.user,
        lookback_hours=args.time_period if args.time_period is not None else config.lookback_hours,
        running_only=args.running_only or config.running_only,
    )


def setup_logging(log_file: Path, level: str) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(filename=str(log_file), level=getattr(logging, level), format=LOG_FORMAT)


def main() -> None:
    """Main entry point for stail."""
    args = parse_args()
    setup_logging(args.log_file or default_log_file(), args.log_level)

    config = effective_config(args, Config.load())
    if args.save_config:
        config.save()

    user = config.user or os.getenv("USER") or getpass.getuser()

    try:
        client = SlurmClient(mock_mode=args.mock)
    except RuntimeError as e:
        print(f"stail: {e}", file=sys.stderr)
        sys.exit(1)

    app = JobDashboard(
        client=client,
        user=user,
        refresh_sec=config.refresh_sec,
        file_refresh_sec=config.file_refresh_sec,
        lookback_hours=config.lookback_hours,
        running_only=config.running_only,
    )
    app.run()


if __name__ == "__main__":
    main()
