"""Process runner for external build tools.

This module handles:
- Executing docker, git, artifactor and gpg commands with subprocess
- Streaming command output to the console while capturing stdout
- Translating launch failures, non-zero exits and timeouts into errors

Every other component talks to external tools through run_command().
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
import threading
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


class CommandExecutionError(Exception):
    """Raised when an external command fails to start or exits non-zero."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "command_failed",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


def _stream_stdout(proc: subprocess.Popen[bytes]) -> bytes:
    """Echo a process's stdout line by line and return everything read."""
    assert proc.stdout is not None
    chunks: list[bytes] = []
    for line in iter(proc.stdout.readline, b""):
        chunks.append(line)
        sys.stdout.write(line.decode("utf-8", errors="replace"))
        sys.stdout.flush()
    proc.stdout.close()
    return b"".join(chunks)


def run_command(
    program: str,
    args: Sequence[str],
    cwd: Path | None = None,
    stream: bool = True,
    timeout: float | None = None,
) -> bytes:
    """Run an external program and return its captured stdout.

    Args:
        program: Executable name or path.
        args: Arguments passed to the program.
        cwd: Working directory for the process (inherits ours if None).
        stream: Echo stdout to the console and pass stderr through. When
            False both streams are captured silently, and stderr is
            included in the error message on failure.
        timeout: Kill the process after this many seconds (None = no limit).

    Returns:
        Raw stdout bytes.

    Raises:
        CommandExecutionError: If the program cannot be started, exits
            non-zero or times out.
    """
    cmd = [program, *args]
    cmd_str = shlex.join(cmd)
    logger.info("Executing: %s", cmd_str)
    if cwd is not None:
        logger.debug("Working directory: %s", cwd)

    try:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=None if stream else subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise CommandExecutionError(
            f"Command not found: {program}",
            code="command_not_found",
        ) from e
    except OSError as e:
        raise CommandExecutionError(
            f"Failed to execute {cmd_str}: {e}",
            code="execution_error",
        ) from e

    timed_out = threading.Event()

    def _kill() -> None:
        timed_out.set()
        proc.kill()

    timer = threading.Timer(timeout, _kill) if timeout else None
    if timer is not None:
        timer.start()

    try:
        if stream:
            stdout = _stream_stdout(proc)
            stderr = b""
        else:
            stdout, stderr = proc.communicate()
        exit_code = proc.wait()
    finally:
        if timer is not None:
            timer.cancel()

    if timed_out.is_set():
        message = f"{cmd_str} timed out after {timeout} seconds"
        logger.error(message)
        raise CommandExecutionError(message, exit_code=-1, code="command_timeout")

    if exit_code != 0:
        message = f"{cmd_str} failed with exit code {exit_code}"
        detail = stderr.decode("utf-8", errors="replace").strip()
        if detail:
            message = f"{message}: {detail}"
        logger.error(message)
        raise CommandExecutionError(message, exit_code=exit_code)

    return stdout


__all__ = [
    "CommandExecutionError",
    "run_command",
]
