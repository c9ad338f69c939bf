"""Async subprocess helper for external converters (ffmpeg, LibreOffice)."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


class ProcessTimeout(Exception):
    """Raised when an external process runs past its timeout."""


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def last_error_line(self) -> str:
        lines = [line for line in self.stderr.splitlines() if line.strip()]
        return lines[-1].strip() if lines else f"exit status {self.returncode}"


async def run_process(args: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
    """
    Run an external command without blocking the event loop.

    Args:
        args: Command and arguments
        timeout: Seconds before the process is killed (None = no limit)

    Returns:
        ProcessResult with return code and decoded stderr

    Raises:
        FileNotFoundError: if the executable does not exist
        ProcessTimeout: if the process ran longer than timeout
    """
    logger.debug("Running: %s", " ".join(args))
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise ProcessTimeout(f"{args[0]} timed out after {timeout:.0f}s")

    return ProcessResult(
        returncode=proc.returncode,
        stderr=(stderr or b"").decode("utf-8", errors="replace"),
    )
