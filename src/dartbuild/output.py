"""
Timestamped user-facing output for dartbuild.

Every line is prefixed with the time elapsed since program start in
MM:SS.cc format, which makes it easy to see which dart2js invocation or
test file a long run spent its time on.

Example output:
    00:00.04 dartbuild v0.1.0
    00:00.05 [1/3] Scanning src/main/dart for stale sources...
    00:00.09      12 candidate(s), 3 stale
    00:00.10 [2/3] Compiling 3 dart files...
    00:02.41      [ok] web/main.dart
    00:04.73      [FAILED exit 1] web/broken.dart

Usage:
    from dartbuild.output import log, log_phase, log_detail, log_outcome

    log_phase(1, 3, "Scanning sources...")
    log_detail("3 stale")
    log_outcome("web/main.dart", ok=True)

Debug diagnostics (command lines, return codes) go through the standard
``logging`` module instead; this module is only for lines a user reads.
"""

import sys
import time
from types import TracebackType
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: TextIO = sys.stdout
_verbose: bool = True
_output_file: Optional[TextIO] = None


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    Called automatically on the first log line if not called explicitly.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    """
    Set verbose mode for logging.

    Args:
        verbose: If False, messages logged with verbose_only=True are dropped.
    """
    global _verbose
    _verbose = verbose


def set_output_file(output_file: Optional[TextIO]) -> None:
    """
    Mirror all output lines into a file (in addition to the stream).

    Args:
        output_file: File object to receive output, or None to disable
    """
    global _output_file
    _output_file = output_file


def get_elapsed() -> float:
    """Seconds elapsed since the timer was initialized."""
    global _start_time
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore


def format_timestamp() -> str:
    """Format the current elapsed time as MM:SS.cc."""
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _print(message: str) -> None:
    line = f"{format_timestamp()} {message}\n"
    _output_stream.write(line)
    _output_stream.flush()

    if _output_file is not None:
        _output_file.write(line)
        _output_file.flush()


def log(message: str, verbose_only: bool = False) -> None:
    """
    Log a message with timestamp.

    Args:
        message: Message to log
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(message)


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """
    Log an orchestration phase as ``[N/M] message``.

    Args:
        phase: Current phase number
        total: Total number of phases
        message: Phase description
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"[{phase}/{total}] {message}")


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """
    Log an indented detail line.

    Args:
        message: Detail message
        indent: Number of spaces to indent (default 6)
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def log_outcome(name: str, ok: bool, exit_code: Optional[int] = None, verbose_only: bool = False) -> None:
    """
    Log the outcome of one external invocation.

    Format: ``[ok] name`` or ``[FAILED exit N] name``

    Args:
        name: Display name of the candidate (usually a relative path)
        ok: Whether the invocation succeeded
        exit_code: Exit code to show on failure (None for launch errors)
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    if ok:
        tag = "ok"
    elif exit_code is None:
        tag = "FAILED to launch"
    else:
        tag = f"FAILED exit {exit_code}"
    _print(f"      [{tag}] {name}")


def log_header(title: str, version: str) -> None:
    """Log the program banner."""
    _print(f"{title} v{version}")
    _print("")


def log_error(message: str) -> None:
    """Log an error message."""
    _print(f"ERROR: {message}")


def log_warning(message: str) -> None:
    """Log a warning message."""
    _print(f"WARNING: {message}")


class TimedLogger:
    """
    Context manager that logs an operation and how long it took.

    Usage:
        with TimedLogger("Running tests", phase=(2, 2)):
            ...
    """

    def __init__(self, operation: str, phase: Optional[tuple[int, int]] = None, verbose_only: bool = False):
        self.operation = operation
        self.phase = phase
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        if self.phase:
            log_phase(self.phase[0], self.phase[1], f"{self.operation}...", self.verbose_only)
        else:
            log(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)", verbose_only=self.verbose_only)
        return None
