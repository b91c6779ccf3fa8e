"""Unit tests for the pub command."""

import sys

import pytest

from dartbuild.commands.pub import PubError, raise_on_pub_failure, run_pub
from dartbuild.toolchain import DartSdk

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="fake SDK uses POSIX tool names")


def test_install_runs_in_source_dir(fake_sdk, tmp_path, make_runner):
    runner = make_runner()
    outcome = run_pub(DartSdk(fake_sdk), tmp_path, runner=runner)

    executable, args, cwd = runner.calls[0]
    assert executable == fake_sdk / "bin" / "pub"
    assert args == ["install"]
    assert cwd == tmp_path
    assert outcome.succeeded


def test_update(fake_sdk, tmp_path, make_runner):
    runner = make_runner()
    run_pub(DartSdk(fake_sdk), tmp_path, update=True, runner=runner)
    assert runner.calls[0][1] == ["update"]


def test_skip_does_nothing(tmp_path, make_runner):
    runner = make_runner()
    # The SDK is never consulted when skipped
    assert run_pub(DartSdk(tmp_path / "missing"), tmp_path, skip=True, runner=runner) is None
    assert runner.calls == []


def test_nonzero_exit_returns_failed_outcome(fake_sdk, tmp_path, make_runner):
    runner = make_runner(exit_codes={"install": 65})
    outcome = run_pub(DartSdk(fake_sdk), tmp_path, runner=runner)

    assert outcome.exit_code == 65
    assert outcome.stderr == b"error\n"
    with pytest.raises(PubError, match="Pub returned error code 65") as exc_info:
        raise_on_pub_failure(outcome)
    assert exc_info.value.outcome is outcome


def test_success_does_not_raise(fake_sdk, tmp_path, make_runner):
    outcome = run_pub(DartSdk(fake_sdk), tmp_path, runner=make_runner())
    raise_on_pub_failure(outcome)
