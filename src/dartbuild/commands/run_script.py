"""Run a single Dart script with the dart VM."""

import logging
import os
from pathlib import Path
from typing import Optional

from ..build.command_line import DartVmOptions
from ..build.orchestrator import BuildOrchestratorError, ConfigurationError, RunOutcome
from ..output import log, log_outcome
from ..subprocess_utils import LaunchError, ProcessRunner, format_command, run_process
from ..toolchain import DartSdk

logger = logging.getLogger(__name__)


class ScriptError(BuildOrchestratorError):
    """Raised when a Dart script exits with a nonzero code."""

    def __init__(self, outcome: RunOutcome):
        self.outcome = outcome
        super().__init__(f"Dart returned error code {outcome.exit_code} for {outcome.candidate}")


def run_script(
    sdk: DartSdk,
    source_dir: Path,
    script: str,
    vm_options: DartVmOptions = DartVmOptions(),
    working_dir: Optional[Path] = None,
    runner: ProcessRunner = run_process,
) -> RunOutcome:
    """Run ``script`` (relative to ``source_dir``) and return its outcome.

    Args:
        sdk: Dart SDK providing the VM
        source_dir: Directory the script path is relative to
        script: Script path relative to source_dir
        vm_options: VM flags
        working_dir: Working directory (defaults to the current directory)
        runner: Process invocation boundary

    Returns:
        RunOutcome of the script; check ``succeeded`` or call ``raise_on_failure``

    Raises:
        ConfigurationError: If the script is not a readable file under source_dir
        LaunchError: If the dart VM cannot be started
    """
    dart = sdk.require_executable("dart")
    root = Path(os.path.normpath(source_dir.absolute()))
    script_path = Path(os.path.normpath(root / script))
    log(f"Dart script to execute: {script_path}")

    try:
        script_path.relative_to(root)
    except ValueError:
        raise ConfigurationError(f"Script must be inside the source directory {root}. script={script_path}") from None

    if not script_path.is_file():
        raise ConfigurationError(f"Script must be a file. script={script_path}")
    if not os.access(script_path, os.R_OK):
        raise ConfigurationError(f"Script must be a readable file. script={script_path}")

    args = [*vm_options.to_args(), str(script_path)]
    logger.debug("Execute dart: %s", format_command(dart, args))
    try:
        result = runner(dart, args, working_dir if working_dir is not None else Path.cwd())
    except LaunchError as e:
        raise e.with_candidate(script_path) from e

    logger.debug("dart return code: %d", result.exit_code)
    outcome = RunOutcome(
        candidate=script_path,
        exit_code=result.exit_code,
        stdout=result.stdout,
        stderr=result.stderr,
    )
    log_outcome(script, ok=outcome.succeeded, exit_code=result.exit_code)
    return outcome


def raise_on_failure(outcome: RunOutcome) -> None:
    """Raise ScriptError if the script did not succeed."""
    if not outcome.succeeded:
        raise ScriptError(outcome)
