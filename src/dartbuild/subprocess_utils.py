"""Process invocation boundary.

Every external tool dartbuild drives (dart2js, the dart VM, pub) is
started through ``run_process``. It runs one command to completion,
captures stdout/stderr, and returns a ``ProcessResult``. A process that
could not be started at all raises ``LaunchError``, which callers treat
as a broken toolchain rather than a per-file failure.

The lower-level ``safe_run`` applies platform-specific flags so that
batches of hundreds of invocations do not flash console windows on
Windows or steal keystrokes from the parent terminal.
"""

import logging
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class LaunchError(Exception):
    """Raised when an external process could not be started.

    Distinct from a process that started and returned a nonzero exit
    code. Always fatal to the batch that hit it.

    Attributes:
        executable: The executable that failed to start
        candidate: The source or test file being processed, if known
        outcomes: Outcomes of the batch up to and including the failed
            candidate, set by the orchestrator that aborted
    """

    def __init__(
        self,
        executable: Path,
        reason: str,
        candidate: Optional[Path] = None,
        outcomes: Sequence[Any] = (),
    ):
        self.executable = executable
        self.reason = reason
        self.candidate = candidate
        self.outcomes = tuple(outcomes)
        message = f"Unable to launch {executable}: {reason}"
        if candidate is not None:
            message += f" (while processing {candidate})"
        super().__init__(message)

    def with_candidate(self, candidate: Path, outcomes: Sequence[Any] = ()) -> "LaunchError":
        """Return a copy of this error that names the offending candidate."""
        return LaunchError(self.executable, self.reason, candidate, outcomes)


@dataclass(frozen=True)
class ProcessResult:
    """Exit code and captured streams of one finished process."""

    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""


class ProcessRunner(Protocol):
    """Callable that runs one external command synchronously."""

    def __call__(self, executable: Path, args: Sequence[str], cwd: Path) -> ProcessResult: ...


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def safe_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
    """Execute subprocess.run with platform-specific flags.

    Automatically applies:
    - CREATE_NO_WINDOW on Windows (prevents console window)
    - stdin=DEVNULL (prevents console input handle inheritance)

    Args:
        cmd: Command and arguments (same as subprocess.run)
        **kwargs: Additional arguments passed to subprocess.run

    Returns:
        CompletedProcess result from subprocess.run

    Note:
        An explicit 'creationflags' is OR'd with the platform default.
        An explicit 'stdin' is used as-is.
    """
    default_flags = get_subprocess_creation_flags()

    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    if "stdin" not in kwargs:
        kwargs["stdin"] = subprocess.DEVNULL

    return subprocess.run(cmd, **kwargs)


def format_command(executable: Path, args: Sequence[str]) -> str:
    """Render a command line for log output."""
    return " ".join([str(executable), *args])


def run_process(executable: Path, args: Sequence[str], cwd: Path) -> ProcessResult:
    """Run one external command and wait for it to finish.

    Args:
        executable: Path to the program to start
        args: Arguments, excluding the executable itself
        cwd: Working directory for the process

    Returns:
        ProcessResult with the exit code and captured stdout/stderr

    Raises:
        LaunchError: If the process could not be started
    """
    cmd = [str(executable), *args]
    logger.debug("Executing: %s (cwd=%s)", format_command(executable, args), cwd)

    try:
        # capture_output closes both pipes before returning
        completed = safe_run(cmd, cwd=str(cwd), capture_output=True, check=False)
    except FileNotFoundError as e:
        raise LaunchError(executable, f"executable or working directory not found ({e})") from e
    except PermissionError as e:
        raise LaunchError(executable, f"permission denied ({e})") from e
    except OSError as e:
        raise LaunchError(executable, str(e)) from e

    logger.debug("%s return code: %d", executable.name, completed.returncode)
    return ProcessResult(
        exit_code=completed.returncode,
        stdout=completed.stdout or b"",
        stderr=completed.stderr or b"",
    )
