"""Shared orchestrator interface, result model, and error taxonomy.

Both the compilation orchestrator and the test orchestrator produce one
``RunOutcome`` per external invocation and fold them into a single
``AggregateVerdict``. Fatal conditions are raised as named exceptions;
per-candidate failures are only ever part of the verdict.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence


class BuildOrchestratorError(Exception):
    """Base class for errors raised by dartbuild orchestrators."""


class ConfigurationError(BuildOrchestratorError):
    """Invalid configuration (bad toolchain, output root, compile roots).

    Always fatal and never retried.
    """


class NoTestsExecutedError(BuildOrchestratorError):
    """Raised when no test files were found and empty runs are not tolerated."""

    def __init__(self, test_root: Path):
        self.test_root = test_root
        super().__init__(
            f"No tests were executed in {test_root}! "
            "(Drop --fail-if-no-tests to ignore this error.)"
        )


class BuildFailedError(BuildOrchestratorError):
    """Raised by AggregateVerdict.raise_for_status() for a failed compile batch."""

    def __init__(self, verdict: "AggregateVerdict"):
        self.verdict = verdict
        super().__init__(f"dart2js failed for {verdict.failed} of {verdict.total} file(s)")


class TestFailuresError(BuildOrchestratorError):
    """Raised by AggregateVerdict.raise_for_status() for a failed test batch."""

    __test__ = False

    def __init__(self, verdict: "AggregateVerdict"):
        self.verdict = verdict
        super().__init__(
            f"There are test failures ({verdict.failed} of {verdict.total}).\n\n"
            "Please refer to output for the individual test results."
        )


class RunStatus(Enum):
    """Classification of one external invocation."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class CompilationUnit:
    """One stale source file paired with the output file it compiles to."""

    source: Path
    output: Path


@dataclass(frozen=True)
class RunOutcome:
    """Result of running one candidate through the process boundary.

    Attributes:
        candidate: Source or test file that was processed
        exit_code: Process exit code, or None if the process never started
        stdout: Captured standard output
        stderr: Captured standard error
        output: Output file for compile runs (None for test runs)
        launch_error: Reason the process could not be started, if any
    """

    candidate: Path
    exit_code: Optional[int]
    stdout: bytes = b""
    stderr: bytes = b""
    output: Optional[Path] = None
    launch_error: Optional[str] = None

    @property
    def status(self) -> RunStatus:
        if self.launch_error is None and self.exit_code == 0:
            return RunStatus.SUCCESS
        return RunStatus.FAILURE

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.SUCCESS


@dataclass(frozen=True)
class AggregateVerdict:
    """Policy-applied conclusion of one orchestration pass.

    Attributes:
        kind: "compile" or "test", selects the error raise_for_status() raises
        total: Number of candidates attempted
        succeeded: Number of successful invocations
        failed: Number of failed invocations
        success: Final proceed (True) / abort (False) decision
        skipped: True if the pass was skipped entirely by configuration
        outcomes: Per-candidate outcomes in execution order
    """

    kind: str
    total: int
    succeeded: int
    failed: int
    success: bool
    skipped: bool = False
    outcomes: tuple[RunOutcome, ...] = field(default_factory=tuple)

    @classmethod
    def fold(cls, kind: str, outcomes: Sequence[RunOutcome], tolerate_failures: bool = False) -> "AggregateVerdict":
        """Fold per-candidate outcomes into a verdict.

        Args:
            kind: "compile" or "test"
            outcomes: Outcomes in execution order
            tolerate_failures: If True, failures do not abort the verdict

        Returns:
            AggregateVerdict with counts and the policy-applied decision
        """
        succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
        failed = len(outcomes) - succeeded
        return cls(
            kind=kind,
            total=len(outcomes),
            succeeded=succeeded,
            failed=failed,
            success=failed == 0 or tolerate_failures,
            outcomes=tuple(outcomes),
        )

    @classmethod
    def skipped_pass(cls, kind: str) -> "AggregateVerdict":
        """Verdict for a pass disabled by configuration."""
        return cls(kind=kind, total=0, succeeded=0, failed=0, success=True, skipped=True)

    def summary(self) -> str:
        """Human-readable one-line summary."""
        if self.skipped:
            return f"{self.kind}: skipped"
        verdict = "SUCCESS" if self.success else "FAILURE"
        return f"{self.kind}: {self.total} processed, {self.succeeded} succeeded, {self.failed} failed - {verdict}"

    def raise_for_status(self) -> None:
        """Raise the named failure if this verdict aborts the run."""
        if self.success:
            return
        if self.kind == "test":
            raise TestFailuresError(self)
        raise BuildFailedError(self)


class IBuildOrchestrator(ABC):
    """Interface shared by the compile and test orchestrators."""

    @abstractmethod
    def execute(self, params: Any) -> AggregateVerdict:
        """Run one orchestration pass and return its verdict.

        Raises:
            ConfigurationError: On invalid configuration
            LaunchError: If an external process could not be started
        """
