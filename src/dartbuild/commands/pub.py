"""Invoke the pub package manager for a Dart package root."""

import logging
from pathlib import Path

from ..build.orchestrator import BuildOrchestratorError, RunOutcome
from ..output import log, log_outcome
from ..subprocess_utils import ProcessRunner, format_command, run_process
from ..toolchain import DartSdk

logger = logging.getLogger(__name__)

COMMAND_INSTALL = "install"
COMMAND_UPDATE = "update"


class PubError(BuildOrchestratorError):
    """Raised when pub exits with a nonzero code."""

    def __init__(self, outcome: RunOutcome):
        self.outcome = outcome
        super().__init__(f"Pub returned error code {outcome.exit_code}")


def run_pub(
    sdk: DartSdk,
    source_dir: Path,
    update: bool = False,
    skip: bool = False,
    runner: ProcessRunner = run_process,
) -> RunOutcome | None:
    """Run ``pub install`` (or ``pub update``) in ``source_dir``.

    Args:
        sdk: Dart SDK providing pub
        source_dir: Package root containing pubspec.yaml; used as working directory
        update: Run "pub update" instead of "pub install"
        skip: Do nothing and return None
        runner: Process invocation boundary

    Returns:
        RunOutcome of the pub invocation, or None if skipped; check
        ``succeeded`` or call ``raise_on_pub_failure``

    Raises:
        LaunchError: If pub cannot be started
    """
    if skip:
        log("Updating dependencies (pub package manager) is skipped.")
        return None

    pub = sdk.require_executable("pub")
    args = [COMMAND_UPDATE if update else COMMAND_INSTALL]

    log(f"Run pub for package root: {source_dir}")
    logger.debug("Execute pub command: %s", format_command(pub, args))
    result = runner(pub, args, source_dir)
    logger.debug("pub return code: %d", result.exit_code)

    outcome = RunOutcome(
        candidate=source_dir,
        exit_code=result.exit_code,
        stdout=result.stdout,
        stderr=result.stderr,
    )
    log_outcome(f"pub {args[0]}", ok=outcome.succeeded, exit_code=result.exit_code)
    return outcome


def raise_on_pub_failure(outcome: RunOutcome) -> None:
    """Raise PubError if pub did not succeed."""
    if not outcome.succeeded:
        raise PubError(outcome)
