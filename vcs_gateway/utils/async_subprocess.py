"""Async subprocess utilities.

Provides non-blocking subprocess execution for use in async contexts.
Commands are always given as discrete arguments and never pass through a
shell, so paths, messages and branch names containing shell
metacharacters reach the program unchanged.

Example:
    >>> from vcs_gateway.utils.async_subprocess import run_command
    >>> stdout, stderr, code = await run_command("git", "status", cwd="/repo", check=False)
    >>> if code == 0:
    ...     print(stdout)

Thread Safety:
    Safe to call concurrently from multiple async tasks. Each call creates
    an independent subprocess with no shared state.
"""

import asyncio
import subprocess
from collections.abc import Mapping
from pathlib import Path


async def run_command(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[str, str, int]:
    """Run a command asynchronously without shell interpolation.

    Args:
        *args: Command and arguments as separate strings. The first argument
            is the executable.
        cwd: Working directory. If None, uses the parent's.
        check: If True (default), raise CalledProcessError when the command
            returns a non-zero exit code.
        timeout: Maximum seconds to wait. If exceeded, the process is killed
            and TimeoutError is raised. None means wait indefinitely.
        env: Full environment for the child. If None, inherits the parent's.

    Returns:
        Tuple of (stdout, stderr, return_code); output is decoded UTF-8 with
        replacement for invalid bytes.

    Raises:
        subprocess.CalledProcessError: If check=True and the command fails
        TimeoutError: If timeout is exceeded
        FileNotFoundError: If the executable is not found
        PermissionError: If the executable cannot be executed
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(),
            timeout=timeout,
        )
    except TimeoutError:
        process.kill()
        await process.wait()
        raise

    stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
    stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")

    if check and process.returncode != 0:
        raise subprocess.CalledProcessError(
            process.returncode,
            args,
            stdout,
            stderr,
        )

    return stdout, stderr, process.returncode or 0
