"""Utility functions for stail."""

import asyncio
import contextlib
import logging
import os
import signal
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

# Time a command gets to exit after SIGINT before it is killed
KILL_GRACE_SEC = 1.0


def which(cmd: str) -> Optional[str]:
    """Find the full path of a command in PATH."""
    if os.path.isabs(cmd):
        return cmd if os.path.isfile(cmd) and os.access(cmd, os.X_OK) else None
    for path in os.environ.get("PATH", "").split(os.pathsep):
        full = os.path.join(path, cmd)
        if os.path.isfile(full) and os.access(full, os.X_OK):
            return full
    return None


async def run_cmd(cmd: str, timeout: float = 10.0) -> Tuple[int, str, str]:
    """Run a shell command asynchronously with timeout.

    Args:
        cmd: Shell command to execute
        timeout: Timeout in seconds

    Returns:
        Tuple of (return_code, stdout, stderr). A timeout is reported as
        return code 124, like coreutils ``timeout``.
    """
    logger.debug("running: %s", cmd)
    proc = await asyncio.create_subprocess_shell(
        cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        executable=os.environ.get("SHELL", "/bin/bash"),
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            proc.send_signal(signal.SIGINT)
        try:
            await asyncio.wait_for(proc.wait(), timeout=KILL_GRACE_SEC)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
        logger.warning("command timed out after %ss: %s", timeout, cmd)
        return 124, "", f"Timeout after {timeout}s for: {cmd}"
    return proc.returncode or 0, stdout.decode(errors="replace"), stderr.decode(errors="replace")
