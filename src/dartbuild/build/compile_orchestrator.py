"""
Incremental dart2js compilation.

This module drives one compilation pass:

    1. Optionally empty the output directory (force full rebuild)
    2. Select candidates: the stale sources of the source set, or the
       single bundle entry file in whole-bundle mode
    3. Derive every candidate's output path; a source outside every
       compile root fails the pass before anything runs
    4. For each candidate, in path order, create the output's parent
       directory and run dart2js synchronously
    5. Fold the per-file outcomes into one AggregateVerdict

A nonzero dart2js exit code fails that file only; the loop always moves
on to the next candidate. A dart2js that cannot be started at all stops
the pass immediately with LaunchError.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from ..output import log, log_detail, log_outcome, log_phase, log_warning
from ..subprocess_utils import LaunchError, ProcessRunner, format_command, run_process
from .command_line import DART2JS_OUTPUT_FLAG, Dart2JsOptions
from .orchestrator import (
    AggregateVerdict,
    BuildOrchestratorError,
    CompilationUnit,
    ConfigurationError,
    IBuildOrchestrator,
    RunOutcome,
)
from .path_mapper import DEFAULT_OUTPUT_SUFFIX, map_output_path
from .source_scanner import SourceSet, StaleSourceScanner, SuffixMapping, scan_sources

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompileParams:
    """Configuration of one compilation pass.

    Attributes:
        executable: dart2js executable
        source_set: Sources to consider, with include/exclude filters
        output_dir: Root directory for compiled output
        compile_roots: Roots output paths are made relative to, tried in order
        base_args: Fixed argument prefix (compiler flags)
        working_dir: Working directory for every dart2js invocation
        mapping: Source-name to artifact-name mapping for staleness checks
        output_suffix: Suffix appended to the source name for the output path
        output_flag: Flag prefix for the output path argument
        stale_millis: Timestamp tolerance in milliseconds
        force: Empty the output directory first so every source is stale
        skip: Skip the pass entirely
        bundle_entry: Entry file compiled unconditionally in whole-bundle mode
    """

    executable: Path
    source_set: SourceSet
    output_dir: Path
    compile_roots: tuple[Path, ...]
    base_args: tuple[str, ...] = ()
    working_dir: Path = Path(".")
    mapping: SuffixMapping = SuffixMapping()
    output_suffix: str = DEFAULT_OUTPUT_SUFFIX
    output_flag: str = DART2JS_OUTPUT_FLAG
    stale_millis: float = 0
    force: bool = False
    skip: bool = False
    bundle_entry: Optional[Path] = None

    @classmethod
    def create(
        cls,
        executable: Path,
        source_dir: Path,
        output_dir: Path,
        includes: Optional[Iterable[str]] = None,
        excludes: Optional[Iterable[str]] = None,
        options: Dart2JsOptions = Dart2JsOptions(),
        compile_roots: Optional[Iterable[Path]] = None,
        working_dir: Optional[Path] = None,
        stale_millis: float = 0,
        force: bool = False,
        skip: bool = False,
        bundle_entry: Optional[Path] = None,
    ) -> "CompileParams":
        """Create CompileParams with dart defaults resolved.

        The source directory doubles as the only compile root unless
        compile_roots is given.
        """
        return cls(
            executable=executable,
            source_set=SourceSet.create(source_dir, includes, excludes),
            output_dir=output_dir,
            compile_roots=tuple(compile_roots) if compile_roots is not None else (source_dir,),
            base_args=tuple(options.to_args()),
            working_dir=working_dir if working_dir is not None else Path.cwd(),
            stale_millis=stale_millis,
            force=force,
            skip=skip,
            bundle_entry=bundle_entry,
        )


def clear_output_directory(output_dir: Path) -> None:
    """Recursively delete everything inside ``output_dir``, keeping the directory.

    Raises:
        BuildOrchestratorError: If any entry cannot be removed
    """
    if not output_dir.exists():
        return
    try:
        for child in output_dir.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
    except OSError as e:
        raise BuildOrchestratorError(f"Unable to clear directory '{output_dir}': {e}") from e
    log("Cleared all compiled dart files.")


def ensure_output_directory(output_dir: Path) -> None:
    """Create the output directory if needed.

    Raises:
        ConfigurationError: If the path exists and is not a directory
    """
    if output_dir.exists() and not output_dir.is_dir():
        raise ConfigurationError(f"Fatal error compiling dart to js. Output directory is not a directory: {output_dir}")
    output_dir.mkdir(parents=True, exist_ok=True)


class CompileOrchestrator(IBuildOrchestrator):
    """Runs dart2js over every stale source of a source set."""

    def __init__(self, runner: ProcessRunner = run_process):
        """
        Initialize the orchestrator.

        Args:
            runner: Process invocation boundary (injected in tests)
        """
        self.runner = runner

    def execute(self, params: CompileParams) -> AggregateVerdict:
        """Execute one compilation pass.

        Args:
            params: Compilation configuration

        Returns:
            AggregateVerdict; success is False if any file failed to compile

        Raises:
            ConfigurationError: If the output directory is not a directory or
                a source lies outside every compile root, or force would
                clear a directory containing the sources
            BuildOrchestratorError: If the output directory cannot be cleared
            LaunchError: If dart2js cannot be started
        """
        if params.skip:
            log("Skipping dart2js execution")
            return AggregateVerdict.skipped_pass("compile")

        output_dir = params.output_dir.absolute()
        if output_dir.exists() and not output_dir.is_dir():
            raise ConfigurationError(f"Fatal error compiling dart to js. Output directory is not a directory: {output_dir}")

        if params.force:
            source_root = params.source_set.root.absolute()
            if output_dir == source_root or output_dir in source_root.parents:
                raise ConfigurationError(
                    f"Refusing to clear output directory {output_dir}: it contains the source directory {source_root}"
                )
            clear_output_directory(output_dir)

        candidates = self._collect_candidates(params, output_dir)
        # Every source must map before the first invocation
        units = [
            CompilationUnit(
                source=source,
                output=map_output_path(source, params.compile_roots, output_dir, params.output_suffix),
            )
            for source in candidates
        ]
        ensure_output_directory(output_dir)

        if not units:
            log("Nothing to compile - all dart javascripts are up to date")
            return AggregateVerdict.fold("compile", [])

        log_phase(2, 2, f"Compiling {len(units)} dart file{'' if len(units) == 1 else 's'} to {output_dir}")

        outcomes: list[RunOutcome] = []
        for unit in units:
            display_name = _display_name(unit.source, params.compile_roots)
            try:
                outcome = self._compile_unit(unit, params)
            except LaunchError as e:
                outcomes.append(RunOutcome(candidate=unit.source, exit_code=None, output=unit.output, launch_error=e.reason))
                log_outcome(display_name, ok=False)
                raise e.with_candidate(unit.source, outcomes) from e
            log_outcome(display_name, ok=outcome.succeeded, exit_code=outcome.exit_code)
            outcomes.append(outcome)

        verdict = AggregateVerdict.fold("compile", outcomes)
        log(f"Compiled {verdict.total} file{'' if verdict.total == 1 else 's'} to {output_dir}")
        log_detail(verdict.summary())
        return verdict

    def _collect_candidates(self, params: CompileParams, output_dir: Path) -> list[Path]:
        """Return the sources this pass will compile, in path order."""
        if params.bundle_entry is not None:
            entry = params.bundle_entry.absolute()
            if not entry.is_file():
                raise ConfigurationError(f"Bundle entry file does not exist: {entry}")
            log_phase(1, 2, f"Whole-bundle mode: compiling {entry.name}")
            if params.source_set.includes is not None or params.source_set.excludes is not None:
                log_warning("Include/exclude patterns are ignored in whole-bundle mode")
            return [entry]

        log_phase(1, 2, f"Scanning {params.source_set.root} for stale sources...")
        logger.debug("staleMillis: %s", params.stale_millis)
        logger.debug("outputDirectory: %s", output_dir)
        logger.debug("Source includes: %s", params.source_set.effective_includes)
        logger.debug("Source excludes: %s", params.source_set.effective_excludes)

        scanner = StaleSourceScanner(params.source_set, output_dir, params.mapping, params.stale_millis)
        candidates = scan_sources(params.source_set)
        stale = scanner.select_stale(candidates)
        log_detail(f"{len(candidates)} candidate(s), {len(stale)} stale")
        return stale

    def _compile_unit(self, unit: CompilationUnit, params: CompileParams) -> RunOutcome:
        """Run dart2js for one unit and classify the result."""
        if not unit.output.parent.exists():
            logger.debug("Create directory %s", unit.output.parent)
        unit.output.parent.mkdir(parents=True, exist_ok=True)

        args = [*params.base_args, str(unit.source), f"{params.output_flag}{unit.output}"]
        logger.debug(format_command(params.executable, args))

        result = self.runner(params.executable, args, params.working_dir)
        logger.debug("dart2js return code: %d", result.exit_code)
        return RunOutcome(
            candidate=unit.source,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            output=unit.output,
        )


def _display_name(source: Path, roots: Iterable[Path]) -> str:
    for root in roots:
        try:
            return source.relative_to(root.absolute()).as_posix()
        except ValueError:
            continue
    return str(source)
