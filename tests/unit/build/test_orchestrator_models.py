"""Unit tests for run outcomes and aggregate verdicts."""

from pathlib import Path

import pytest

from dartbuild.build.compile_orchestrator import CompileOrchestrator
from dartbuild.build.dart_test_orchestrator import DartTestOrchestrator
from dartbuild.build.orchestrator import (
    AggregateVerdict,
    BuildFailedError,
    IBuildOrchestrator,
    RunOutcome,
    RunStatus,
    TestFailuresError,
)


def _outcome(name: str, exit_code, launch_error=None) -> RunOutcome:
    return RunOutcome(candidate=Path(name), exit_code=exit_code, launch_error=launch_error)


class TestRunOutcome:
    def test_zero_exit_is_success(self):
        assert _outcome("a.dart", 0).status is RunStatus.SUCCESS

    def test_nonzero_exit_is_failure(self):
        assert _outcome("a.dart", 3).status is RunStatus.FAILURE

    def test_launch_error_is_failure(self):
        outcome = _outcome("a.dart", None, launch_error="not found")
        assert not outcome.succeeded


class TestAggregateVerdict:
    def test_empty_batch_succeeds(self):
        verdict = AggregateVerdict.fold("compile", [])
        assert verdict.total == 0
        assert verdict.success is True
        assert not verdict.skipped

    def test_counts_add_up(self):
        outcomes = [_outcome("a", 0), _outcome("b", 1), _outcome("c", 0), _outcome("d", None, "gone")]
        verdict = AggregateVerdict.fold("compile", outcomes)
        assert verdict.total == 4
        assert verdict.succeeded == 2
        assert verdict.failed == 2
        assert verdict.succeeded + verdict.failed == verdict.total
        assert verdict.success is False
        assert verdict.outcomes == tuple(outcomes)

    def test_tolerated_failures_pass(self):
        verdict = AggregateVerdict.fold("test", [_outcome("a", 1)], tolerate_failures=True)
        assert verdict.failed == 1
        assert verdict.success is True
        verdict.raise_for_status()

    def test_summary(self):
        verdict = AggregateVerdict.fold("compile", [_outcome("a", 0), _outcome("b", 1)])
        assert verdict.summary() == "compile: 2 processed, 1 succeeded, 1 failed - FAILURE"
        assert AggregateVerdict.skipped_pass("test").summary() == "test: skipped"

    def test_raise_for_status_picks_error_by_kind(self):
        with pytest.raises(BuildFailedError):
            AggregateVerdict.fold("compile", [_outcome("a", 1)]).raise_for_status()
        with pytest.raises(TestFailuresError):
            AggregateVerdict.fold("test", [_outcome("a", 1)]).raise_for_status()


class TestOrchestratorInterface:
    """Both orchestrators implement the shared interface."""

    @pytest.mark.parametrize("orchestrator_class", [CompileOrchestrator, DartTestOrchestrator])
    def test_implements_interface(self, orchestrator_class):
        assert issubclass(orchestrator_class, IBuildOrchestrator)
        assert callable(getattr(orchestrator_class, "execute"))

    def test_interface_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            IBuildOrchestrator()  # type: ignore[abstract]
