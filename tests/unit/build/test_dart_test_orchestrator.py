"""Unit tests for the Dart test orchestrator."""

import os
from pathlib import Path

import pytest

from dartbuild.build.command_line import DartVmOptions
from dartbuild.build.dart_test_orchestrator import DartTestOrchestrator, DartTestParams
from dartbuild.build.orchestrator import NoTestsExecutedError, TestFailuresError
from dartbuild.subprocess_utils import LaunchError

DART = Path("/sdk/bin/dart")


@pytest.fixture
def tests_root(tmp_path, make_file):
    root = tmp_path / "src" / "main" / "dart" / "test"
    make_file(root, "a_test.dart")
    make_file(root, "nested/b_test.dart")
    make_file(root, "packages/unittest/unittest.dart")
    return root


def _params(tests_root: Path, **kwargs) -> DartTestParams:
    kwargs.setdefault("working_dir", tests_root.parent)
    return DartTestParams.create(executable=DART, test_dir=tests_root, **kwargs)


def test_runs_every_test_file_every_time(tests_root, make_runner):
    runner = make_runner()
    orchestrator = DartTestOrchestrator(runner)

    orchestrator.execute(_params(tests_root))
    orchestrator.execute(_params(tests_root))

    assert runner.candidates == ["a_test.dart", "b_test.dart", "a_test.dart", "b_test.dart"]


def test_invocation_shape(tests_root, make_runner):
    runner = make_runner()
    options = DartVmOptions(checked=True, package_root="/pkgs/")
    DartTestOrchestrator(runner).execute(_params(tests_root, options=options))

    executable, args, cwd = runner.calls[0]
    assert executable == DART
    assert args == ["--checked", "--package-root=/pkgs/", str(tests_root / "a_test.dart")]
    assert cwd == tests_root.parent


def test_all_passing(tests_root, make_runner):
    verdict = DartTestOrchestrator(make_runner()).execute(_params(tests_root))

    assert verdict.kind == "test"
    assert verdict.total == 2
    assert verdict.succeeded == 2
    assert verdict.success is True
    verdict.raise_for_status()


def test_failure_does_not_stop_remaining_tests(tests_root, make_runner):
    runner = make_runner(exit_codes={"a_test.dart": 255})
    verdict = DartTestOrchestrator(runner).execute(_params(tests_root))

    assert runner.candidates == ["a_test.dart", "b_test.dart"]
    assert verdict.failed == 1
    assert verdict.succeeded == 1
    assert verdict.success is False
    with pytest.raises(TestFailuresError):
        verdict.raise_for_status()


def test_ignore_failures_keeps_counts_but_passes(tests_root, make_runner, _quiet_output):
    runner = make_runner(exit_codes={"a_test.dart": 1, "b_test.dart": 1})
    verdict = DartTestOrchestrator(runner).execute(_params(tests_root, ignore_failures=True))

    assert verdict.failed == 2
    assert verdict.success is True
    assert "ERROR: There are test failures (2 of 2)" in _quiet_output.getvalue()


def test_no_tests_is_a_successful_no_op(tmp_path, make_runner):
    empty = tmp_path / "test"
    empty.mkdir()
    runner = make_runner()
    verdict = DartTestOrchestrator(runner).execute(_params(empty))

    assert runner.calls == []
    assert verdict.total == 0
    assert verdict.success is True


def test_missing_test_directory_counts_as_no_tests(tmp_path, make_runner):
    verdict = DartTestOrchestrator(make_runner()).execute(_params(tmp_path / "missing"))
    assert verdict.total == 0
    assert verdict.success is True


def test_fail_if_no_tests(tmp_path, make_runner):
    with pytest.raises(NoTestsExecutedError) as exc_info:
        DartTestOrchestrator(make_runner()).execute(_params(tmp_path / "missing", fail_if_no_tests=True))
    assert exc_info.value.test_root == (tmp_path / "missing").absolute()


def test_skip_tests_wins_over_fail_if_no_tests(tmp_path, make_runner):
    runner = make_runner()
    verdict = DartTestOrchestrator(runner).execute(
        _params(tmp_path / "missing", skip_tests=True, fail_if_no_tests=True)
    )

    assert runner.calls == []
    assert verdict.skipped is True
    assert verdict.success is True


def test_launch_error_stops_the_batch(tests_root, make_runner):
    runner = make_runner(launch_failures={"a_test.dart"})

    with pytest.raises(LaunchError) as exc_info:
        DartTestOrchestrator(runner).execute(_params(tests_root))

    assert runner.candidates == ["a_test.dart"]
    assert exc_info.value.candidate == tests_root / "a_test.dart"
    assert len(exc_info.value.outcomes) == 1
    assert not exc_info.value.outcomes[0].succeeded


def test_custom_include_pattern(tests_root, make_runner):
    runner = make_runner()
    DartTestOrchestrator(runner).execute(_params(tests_root, includes=["nested/**/*_test.dart"]))
    assert runner.candidates == ["b_test.dart"]


def test_empty_excludes_include_package_files(tests_root, make_runner):
    runner = make_runner()
    DartTestOrchestrator(runner).execute(_params(tests_root, excludes=[]))
    assert "unittest.dart" in runner.candidates


def test_symlinked_directories_are_followed(tmp_path, tests_root, make_file, make_runner):
    shared = tmp_path / "shared"
    make_file(shared, "c_test.dart")
    try:
        os.symlink(shared, tests_root / "linked", target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("Symlinks not supported on this platform")

    runner = make_runner()
    DartTestOrchestrator(runner).execute(_params(tests_root))

    assert "c_test.dart" in runner.candidates
