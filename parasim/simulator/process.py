"""
Subprocess helpers shared by the simctl and xctool backends.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

from loguru import logger

from parasim.simulator.errors import ToolNotFoundError


@dataclass
class CommandResult:
    """Captured result of a finished command."""
    returncode: int
    stdout: str
    stderr: str


async def run_command(
    *args: str,
    timeout: Optional[float] = None,
) -> CommandResult:
    """
    Run a command to completion and capture its output.

    Args:
        *args: Executable and arguments.
        timeout: Optional timeout in seconds.

    Returns:
        CommandResult with decoded stdout and stderr.

    Raises:
        ToolNotFoundError: If the executable does not exist.
        asyncio.TimeoutError: If the command outlives ``timeout``.
    """
    logger.debug(f"Running: {format_command(args)}")
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise ToolNotFoundError(args[0])

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise

    return CommandResult(
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


def format_command(args: Sequence[str]) -> str:
    """Render a command line for logs."""
    return " ".join(args)
