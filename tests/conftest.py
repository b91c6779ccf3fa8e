"""Pytest configuration and fixtures for dartbuild tests.

This conftest addresses Python 3.13 compatibility issues with pytest's capture fixtures.
Python 3.13 changed how stdout/stderr are handled, causing "I/O operation on closed file"
errors during test teardown. This is a known issue: https://github.com/pytest-dev/pytest/issues/11439

It also provides a scripted process runner so orchestrators can be tested
without a Dart SDK installed.
"""

import io
import os
import sys
import warnings
from pathlib import Path
from typing import Iterable, Optional, Sequence

import pytest

from dartbuild import output
from dartbuild.subprocess_utils import LaunchError, ProcessResult

# Suppress ResourceWarnings from file cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)


class FakeRunner:
    """Scripted stand-in for run_process.

    Candidates are matched by file name against every argument.

    Args:
        exit_codes: File name -> exit code (default 0)
        launch_failures: File names whose invocation raises LaunchError
        write_outputs: Create the file named by a "-o<path>" argument on success
        stdout: Bytes returned as stdout for every call
    """

    def __init__(
        self,
        exit_codes: Optional[dict[str, int]] = None,
        launch_failures: Iterable[str] = (),
        write_outputs: bool = False,
        stdout: bytes = b"",
    ):
        self.exit_codes = exit_codes or {}
        self.launch_failures = set(launch_failures)
        self.write_outputs = write_outputs
        self.stdout = stdout
        self.calls: list[tuple[Path, list[str], Path]] = []

    def __call__(self, executable: Path, args: Sequence[str], cwd: Path) -> ProcessResult:
        self.calls.append((executable, list(args), cwd))
        names = [Path(arg).name for arg in args]
        for name in names:
            if name in self.launch_failures:
                raise LaunchError(executable, "No such file or directory")

        exit_code = 0
        for name in names:
            if name in self.exit_codes:
                exit_code = self.exit_codes[name]

        if exit_code == 0 and self.write_outputs:
            for arg in args:
                if arg.startswith("-o"):
                    target = Path(arg[2:])
                    target.parent.mkdir(parents=True, exist_ok=True)
                    target.write_text("// compiled\n")
        return ProcessResult(exit_code=exit_code, stdout=self.stdout, stderr=b"" if exit_code == 0 else b"error\n")

    @property
    def candidates(self) -> list[str]:
        """File names of the invoked candidates, in call order."""
        result = []
        for _, args, _ in self.calls:
            plain = [arg for arg in args if not arg.startswith("-")]
            result.append(Path(plain[-1]).name)
        return result


def set_mtime(path: Path, seconds: float) -> None:
    """Set both atime and mtime of ``path`` with nanosecond precision."""
    ns = int(seconds * 1_000_000_000)
    os.utime(path, ns=(ns, ns))


def write_file(root: Path, relative: str, content: str = "main() {}\n") -> Path:
    """Create ``root/relative`` (and its parents) and return its path."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def fake_sdk(tmp_path):
    """A minimal Dart SDK directory with executable (but inert) tools."""
    sdk = tmp_path / "dart-sdk"
    (sdk / "bin").mkdir(parents=True)
    (sdk / "version").write_text("1.0.0_r30188\n")
    for tool in ("dart", "dart2js", "pub"):
        path = sdk / "bin" / tool
        path.write_text("#!/bin/sh\nexit 0\n")
        path.chmod(0o755)
    return sdk


@pytest.fixture
def make_runner():
    """Factory for FakeRunner instances."""
    return FakeRunner


@pytest.fixture
def touch():
    """Return the mtime helper."""
    return set_mtime


@pytest.fixture
def make_file():
    """Return the file creation helper."""
    return write_file


@pytest.fixture(autouse=True)
def _quiet_output(monkeypatch):
    """Send timestamped output lines to a buffer instead of the real stdout."""
    buffer = io.StringIO()
    monkeypatch.setattr(output, "_output_stream", buffer)
    monkeypatch.setattr(output, "_verbose", True)
    monkeypatch.setattr(output, "_output_file", None)
    return buffer


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test.

    This prevents "I/O operation on closed file" errors in Python 3.13
    when tests raise exceptions that close stdout/stderr.
    """
    yield

    # Restore if they were closed during the test
    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_runtest_call(item):  # noqa: ARG001
    """Wrap test execution to handle stdout/stderr closure gracefully."""
    yield

    # After test execution, ensure streams aren't closed
    if hasattr(sys.stdout, "closed") and sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if hasattr(sys.stderr, "closed") and sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.hookimpl(hookwrapper=True, trylast=True)
def pytest_runtest_teardown(item):  # noqa: ARG001
    """Ensure streams are restored during teardown phase."""
    yield

    # Final restoration after teardown
    if hasattr(sys.stdout, "closed") and sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if hasattr(sys.stderr, "closed") and sys.stderr.closed:
        sys.stderr = sys.__stderr__
