"""
Dart test orchestration.

Every test file matched by the test source set is run as its own dart VM
process, every time; there is no staleness filtering for tests. A failing
test file never stops the remaining files from running. After the batch,
the verdict policy applies:

    no test files   -> NoTestsExecutedError if fail_if_no_tests,
                       otherwise a successful no-op verdict
    any failures    -> failed verdict, unless ignore_failures, in which
                       case the failures are logged and the verdict passes
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from ..output import TimedLogger, log, log_detail, log_error, log_outcome, log_phase
from ..subprocess_utils import LaunchError, ProcessRunner, format_command, run_process
from .command_line import DartVmOptions
from .orchestrator import AggregateVerdict, IBuildOrchestrator, NoTestsExecutedError, RunOutcome
from .source_scanner import DEFAULT_DART_EXCLUDES, DEFAULT_DART_INCLUDES, SourceSet, scan_sources

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DartTestParams:
    """Configuration of one test pass.

    Attributes:
        executable: dart VM executable
        source_set: Test root with include/exclude filters
        base_args: Fixed argument prefix (VM flags)
        working_dir: Working directory for every test process
        skip_tests: Skip running tests entirely
        fail_if_no_tests: Raise NoTestsExecutedError when nothing matched
        ignore_failures: Report success even if some test files failed
    """

    executable: Path
    source_set: SourceSet
    base_args: tuple[str, ...] = ()
    working_dir: Path = Path(".")
    skip_tests: bool = False
    fail_if_no_tests: bool = False
    ignore_failures: bool = False

    @classmethod
    def create(
        cls,
        executable: Path,
        test_dir: Path,
        includes: Optional[Iterable[str]] = None,
        excludes: Optional[Iterable[str]] = None,
        options: DartVmOptions = DartVmOptions(),
        working_dir: Optional[Path] = None,
        skip_tests: bool = False,
        fail_if_no_tests: bool = False,
        ignore_failures: bool = False,
    ) -> "DartTestParams":
        """Create DartTestParams with dart defaults resolved."""
        return cls(
            executable=executable,
            source_set=SourceSet.create(test_dir, includes, excludes, DEFAULT_DART_INCLUDES, DEFAULT_DART_EXCLUDES),
            base_args=tuple(options.to_args()),
            working_dir=working_dir if working_dir is not None else Path.cwd(),
            skip_tests=skip_tests,
            fail_if_no_tests=fail_if_no_tests,
            ignore_failures=ignore_failures,
        )


class DartTestOrchestrator(IBuildOrchestrator):
    """Runs each discovered test file as an independent dart process."""

    def __init__(self, runner: ProcessRunner = run_process):
        self.runner = runner

    def execute(self, params: DartTestParams) -> AggregateVerdict:
        """Run every test file and apply the verdict policy.

        Args:
            params: Test configuration

        Returns:
            AggregateVerdict; success is False on test failures unless
            ignore_failures is set

        Raises:
            NoTestsExecutedError: If no test files matched and fail_if_no_tests is set
            LaunchError: If the dart VM cannot be started
        """
        if params.skip_tests:
            log("Tests are skipped.")
            return AggregateVerdict.skipped_pass("test")

        test_root = params.source_set.root.absolute()
        log_phase(1, 2, f"Discovering tests in {test_root}...")
        test_files = scan_sources(params.source_set)
        log_detail(f"{len(test_files)} test file(s)")

        if not test_files:
            if params.fail_if_no_tests:
                raise NoTestsExecutedError(test_root)
            log("No tests to run.")
            return AggregateVerdict.fold("test", [])

        outcomes: list[RunOutcome] = []
        with TimedLogger(f"Running {len(test_files)} test file(s)", phase=(2, 2)):
            for test_file in test_files:
                outcomes.append(self._run_test_file(test_file, test_root, params, outcomes))

        verdict = AggregateVerdict.fold("test", outcomes, tolerate_failures=params.ignore_failures)
        if verdict.failed and params.ignore_failures:
            log_error(
                f"There are test failures ({verdict.failed} of {verdict.total}). "
                "Please refer to output for the individual test results."
            )
        log_detail(verdict.summary())
        return verdict

    def _run_test_file(
        self,
        test_file: Path,
        test_root: Path,
        params: DartTestParams,
        outcomes: list[RunOutcome],
    ) -> RunOutcome:
        """Run one test file; a launch failure aborts with every outcome so far."""
        display_name = test_file.relative_to(test_root).as_posix()
        args = [*params.base_args, str(test_file)]
        logger.debug("Execute test command: %s", format_command(params.executable, args))
        try:
            result = self.runner(params.executable, args, params.working_dir)
        except LaunchError as e:
            failed = RunOutcome(candidate=test_file, exit_code=None, launch_error=e.reason)
            log_outcome(display_name, ok=False)
            raise e.with_candidate(test_file, [*outcomes, failed]) from e

        logger.debug("test return code: %d", result.exit_code)
        outcome = RunOutcome(
            candidate=test_file,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
        )
        log_outcome(display_name, ok=outcome.succeeded, exit_code=result.exit_code)
        return outcome
