"""Bounded execution of external command-line tools."""

import asyncio
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Grace period between terminate() and kill() for a timed-out process
KILL_GRACE_SECONDS = 5.0


class CommandTimeout(Exception):
    """An external command exceeded its time limit and was terminated."""

    def __init__(self, args: tuple[str, ...], timeout: float):
        super().__init__(f"{args[0]} timed out after {timeout:g}s")
        self.command = args
        self.timeout = timeout


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an external command.

    Attributes:
        returncode: Process exit status.
        stdout: Decoded standard output.
        stderr: Decoded standard error.
    """

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, for diagnostics."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


async def run_command(*args: str, timeout: float) -> CommandResult:
    """Run an external command and wait for it, bounded by ``timeout``.

    Args:
        *args: Program and arguments (no shell is involved).
        timeout: Seconds before the process is terminated.

    Returns:
        CommandResult: Exit status and decoded output.

    Raises:
        FileNotFoundError: If the program does not exist.
        CommandTimeout: If the program did not finish in time.
    """
    logger.debug(f"Running: {' '.join(args)}")
    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), KILL_GRACE_SECONDS)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
        raise CommandTimeout(args, timeout) from None

    return CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
