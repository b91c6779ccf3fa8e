"""
Command-line interface for dartbuild.

This module provides the `dartbuild` CLI tool:

    dartbuild compile        # dart2js for every stale source
    dartbuild test           # run every test file with the dart VM
    dartbuild run main.dart  # run one script
    dartbuild pub            # pub install / pub update
"""

import argparse
import logging
import sys
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from rich.console import Console

from dartbuild import __version__
from dartbuild.build.command_line import Dart2JsOptions, DartVmOptions, build_package_root
from dartbuild.build.compile_orchestrator import CompileOrchestrator, CompileParams
from dartbuild.build.dart_test_orchestrator import DartTestOrchestrator, DartTestParams
from dartbuild.build.orchestrator import BuildOrchestratorError
from dartbuild.commands.pub import raise_on_pub_failure, run_pub
from dartbuild.commands.run_script import raise_on_failure, run_script
from dartbuild.output import log_detail, log_header, set_output_file, set_verbose
from dartbuild.report import render_outcomes, render_verdict
from dartbuild.subprocess_utils import LaunchError
from dartbuild.toolchain import DartSdk

DEFAULT_SOURCE_DIR = Path("src/main/dart")
DEFAULT_OUTPUT_DIR = Path("target/generated-sources/dart/dart2js")
DEFAULT_PACKAGE_PATH = "packages"

_log_handler: Optional[logging.Handler] = None


@dataclass
class CompileArgs:
    """Arguments for the compile command."""

    project_dir: Path
    dart_sdk: Optional[Path] = None
    source_dir: Path = DEFAULT_SOURCE_DIR
    package_path: str = DEFAULT_PACKAGE_PATH
    output_dir: Path = DEFAULT_OUTPUT_DIR
    compile_roots: list[Path] = field(default_factory=list)
    includes: Optional[list[str]] = None
    excludes: Optional[list[str]] = None
    stale_millis: int = 0
    force: bool = False
    skip: bool = False
    bundle_entry: Optional[Path] = None
    checked: bool = False
    compiler_verbose: bool = False
    analyze_all: bool = False
    minify: bool = False
    suppress_warnings: bool = False
    diagnostic_colors: bool = False
    verbose: bool = False
    log_file: Optional[Path] = None


@dataclass
class TestArgs:
    """Arguments for the test command."""

    __test__ = False

    project_dir: Path
    dart_sdk: Optional[Path] = None
    source_dir: Path = DEFAULT_SOURCE_DIR
    package_path: str = DEFAULT_PACKAGE_PATH
    test_dir: Optional[Path] = None
    includes: Optional[list[str]] = None
    excludes: Optional[list[str]] = None
    skip_tests: bool = False
    fail_if_no_tests: bool = False
    ignore_failures: bool = False
    checked: bool = False
    verbose: bool = False
    log_file: Optional[Path] = None


@dataclass
class RunArgs:
    """Arguments for the run command."""

    project_dir: Path
    script: str
    dart_sdk: Optional[Path] = None
    source_dir: Path = DEFAULT_SOURCE_DIR
    package_path: str = DEFAULT_PACKAGE_PATH
    checked: bool = False
    debug: bool = False
    debug_port: Optional[str] = None
    break_at: Optional[str] = None
    use_script_snapshot: Optional[str] = None
    verbose: bool = False
    log_file: Optional[Path] = None


@dataclass
class PubArgs:
    """Arguments for the pub command."""

    project_dir: Path
    dart_sdk: Optional[Path] = None
    source_dir: Path = DEFAULT_SOURCE_DIR
    update: bool = False
    skip: bool = False
    verbose: bool = False
    log_file: Optional[Path] = None


def setup_logging(verbose: bool) -> None:
    """Route debug diagnostics to stderr when verbose, warnings only otherwise."""
    global _log_handler
    root = logging.getLogger()
    if _log_handler is not None:
        root.removeHandler(_log_handler)
    _log_handler = logging.StreamHandler(sys.stderr)
    _log_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root.addHandler(_log_handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    set_verbose(verbose)


def _resolve(project_dir: Path, path: Path) -> Path:
    return path if path.is_absolute() else (project_dir / path).absolute()


@contextmanager
def _mirror_output(log_file: Optional[Path]) -> Iterator[None]:
    """Copy timestamped output lines into ``log_file`` while the block runs."""
    if log_file is None:
        yield
        return
    with open(log_file, "a", encoding="utf-8") as f:
        set_output_file(f)
        try:
            yield
        finally:
            set_output_file(None)


def _guarded(console: Console, args: Union[CompileArgs, TestArgs, RunArgs, PubArgs], body: Callable[[], int]) -> None:
    """Run a command body and exit with its status, mapping errors to exit codes."""
    setup_logging(args.verbose)
    with _mirror_output(args.log_file):
        log_header("dartbuild", __version__)
        _run_body(console, args.verbose, body)


def _run_body(console: Console, verbose: bool, body: Callable[[], int]) -> None:
    try:
        code = body()
    except LaunchError as e:
        if e.outcomes:
            render_outcomes(e.outcomes, console)
        console.print()
        console.print("[bold red]✗ Toolchain failure[/bold red]")
        console.print(str(e), markup=False)
        sys.exit(1)
    except BuildOrchestratorError as e:
        console.print()
        console.print(f"[bold red]✗ {type(e).__name__}[/bold red]")
        console.print(str(e), markup=False)
        sys.exit(1)
    except KeyboardInterrupt:
        console.print()
        console.print("[bold yellow]✗ Interrupted[/bold yellow]")
        sys.exit(130)  # Standard exit code for SIGINT
    except Exception as e:
        console.print()
        console.print("[bold red]✗ Unexpected error[/bold red]")
        console.print(f"{type(e).__name__}: {e}", markup=False)
        if verbose:
            console.print()
            console.print(traceback.format_exc(), markup=False)
        sys.exit(1)
    sys.exit(code)


def compile_command(args: CompileArgs) -> None:
    """Compile stale dart sources to javascript.

    Examples:
        dartbuild compile                          # Incremental build
        dartbuild compile --force                  # Rebuild everything
        dartbuild compile --include 'web/**/*.dart'
        dartbuild compile --bundle-entry web/index.html_bootstrap.dart
    """
    console = Console()

    def body() -> int:
        sdk = DartSdk.from_env(args.dart_sdk)
        dart2js = sdk.require_executable("dart2js")
        log_detail(f"Dart SDK {sdk.version} at {sdk.path}", verbose_only=True)

        source_dir = _resolve(args.project_dir, args.source_dir)
        compile_roots = [_resolve(args.project_dir, root) for root in args.compile_roots] or [source_dir]
        options = Dart2JsOptions(
            checked=args.checked,
            verbose=args.compiler_verbose,
            analyze_all=args.analyze_all,
            minify=args.minify,
            suppress_warnings=args.suppress_warnings,
            diagnostic_colors=args.diagnostic_colors,
            package_root=build_package_root(source_dir, args.package_path),
        )
        params = CompileParams.create(
            executable=dart2js,
            source_dir=source_dir,
            output_dir=_resolve(args.project_dir, args.output_dir),
            includes=args.includes,
            excludes=args.excludes,
            options=options,
            compile_roots=compile_roots,
            working_dir=args.project_dir,
            stale_millis=args.stale_millis,
            force=args.force,
            skip=args.skip,
            bundle_entry=_resolve(args.project_dir, args.bundle_entry) if args.bundle_entry else None,
        )
        verdict = CompileOrchestrator().execute(params)
        render_verdict(verdict, console, base=source_dir, show_output=args.verbose)
        verdict.raise_for_status()
        return 0

    _guarded(console, args, body)


def test_command(args: TestArgs) -> None:
    """Run every dart test file as an independent process.

    Examples:
        dartbuild test                             # Tests under src/main/dart/test
        dartbuild test --fail-if-no-tests
        dartbuild test --ignore-failures --checked
    """
    console = Console()

    def body() -> int:
        sdk = DartSdk.from_env(args.dart_sdk)
        dart = sdk.require_executable("dart")

        source_dir = _resolve(args.project_dir, args.source_dir)
        test_dir = _resolve(args.project_dir, args.test_dir) if args.test_dir else source_dir / "test"
        options = DartVmOptions(
            checked=args.checked,
            package_root=build_package_root(source_dir, args.package_path),
        )
        params = DartTestParams.create(
            executable=dart,
            test_dir=test_dir,
            includes=args.includes,
            excludes=args.excludes,
            options=options,
            working_dir=args.project_dir,
            skip_tests=args.skip_tests,
            fail_if_no_tests=args.fail_if_no_tests,
            ignore_failures=args.ignore_failures,
        )
        verdict = DartTestOrchestrator().execute(params)
        render_verdict(verdict, console, base=test_dir, show_output=args.verbose)
        verdict.raise_for_status()
        return 0

    _guarded(console, args, body)


def run_command(args: RunArgs) -> None:
    """Run one dart script relative to the source directory."""
    console = Console()

    def body() -> int:
        sdk = DartSdk.from_env(args.dart_sdk)
        source_dir = _resolve(args.project_dir, args.source_dir)
        options = DartVmOptions(
            checked=args.checked,
            debug=args.debug,
            debug_port=args.debug_port,
            break_at=args.break_at,
            use_script_snapshot=args.use_script_snapshot,
            package_root=build_package_root(source_dir, args.package_path),
        )
        outcome = run_script(sdk, source_dir, args.script, options, working_dir=args.project_dir)
        render_outcomes([outcome], console, base=source_dir, show_output=True)
        raise_on_failure(outcome)
        return 0

    _guarded(console, args, body)


def pub_command(args: PubArgs) -> None:
    """Fetch or update package dependencies with pub."""
    console = Console()

    def body() -> int:
        sdk = DartSdk.from_env(args.dart_sdk)
        source_dir = _resolve(args.project_dir, args.source_dir)
        outcome = run_pub(sdk, source_dir, update=args.update, skip=args.skip)
        if outcome is not None:
            render_outcomes([outcome], console, show_output=args.verbose)
            raise_on_pub_failure(outcome)
        return 0

    _guarded(console, args, body)


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    common.add_argument(
        "--dart-sdk",
        type=Path,
        default=None,
        help="Dart SDK directory (default: $DART_SDK)",
    )
    common.add_argument(
        "--source-dir",
        type=Path,
        default=DEFAULT_SOURCE_DIR,
        help=f"Dart source directory relative to the project (default: {DEFAULT_SOURCE_DIR})",
    )
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output and captured process output",
    )
    common.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also append timestamped output lines to this file",
    )
    return common


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--include",
        dest="includes",
        action="append",
        default=None,
        help="Inclusion glob, repeatable (default: **/*.dart)",
    )
    parser.add_argument(
        "--exclude",
        dest="excludes",
        action="append",
        default=None,
        help="Exclusion glob, repeatable (default: **/packages/**)",
    )
    parser.add_argument(
        "--package-path",
        default=DEFAULT_PACKAGE_PATH,
        help=f"Where to find package: imports, relative to the source dir (default: {DEFAULT_PACKAGE_PATH})",
    )


def main() -> None:
    """Main entry point for the dartbuild CLI."""
    parser = argparse.ArgumentParser(
        prog="dartbuild",
        description="Incremental dart2js compilation and Dart test runner",
    )
    parser.add_argument("--version", action="version", version=f"dartbuild {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")
    common = _common_parser()

    # Compile command
    compile_parser = subparsers.add_parser("compile", parents=[common], help="Compile stale dart sources to javascript")
    _add_filter_arguments(compile_parser)
    compile_parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help=f"Directory for compiled javascript (default: {DEFAULT_OUTPUT_DIR})",
    )
    compile_parser.add_argument(
        "--compile-root",
        dest="compile_roots",
        type=Path,
        action="append",
        default=[],
        help="Root output paths are made relative to, repeatable (default: the source dir)",
    )
    compile_parser.add_argument(
        "--stale-millis",
        type=int,
        default=0,
        help="Timestamp granularity in milliseconds for staleness checks (default: 0)",
    )
    compile_parser.add_argument("-f", "--force", action="store_true", help="Clear the output directory and compile everything")
    compile_parser.add_argument("--skip", action="store_true", help="Skip dart2js execution")
    compile_parser.add_argument(
        "--bundle-entry",
        type=Path,
        default=None,
        help="Compile only this entry file, unconditionally (whole-bundle mode)",
    )
    compile_parser.add_argument("-c", "--checked", action="store_true", help="Insert runtime type checks and enable assertions")
    compile_parser.add_argument("--compiler-verbose", action="store_true", help="Pass -v to dart2js")
    compile_parser.add_argument("--analyze-all", action="store_true", help="Analyze all code, not only code reachable from main")
    compile_parser.add_argument("--minify", action="store_true", help="Generate minified output")
    compile_parser.add_argument("--suppress-warnings", action="store_true", help="Do not display any warnings")
    compile_parser.add_argument("--diagnostic-colors", action="store_true", help="Add colors to diagnostic messages")

    # Test command
    test_parser = subparsers.add_parser("test", parents=[common], help="Run dart test files")
    _add_filter_arguments(test_parser)
    test_parser.add_argument(
        "--test-dir",
        type=Path,
        default=None,
        help="Test directory (default: <source dir>/test)",
    )
    test_parser.add_argument("--skip-tests", action="store_true", help="Do not run tests")
    test_parser.add_argument("--fail-if-no-tests", action="store_true", help="Fail if no test files were found")
    test_parser.add_argument("--ignore-failures", action="store_true", help="Report success even if tests fail")
    test_parser.add_argument("-c", "--checked", action="store_true", help="Run tests in checked mode")

    # Run command
    run_parser = subparsers.add_parser("run", parents=[common], help="Run a dart script")
    run_parser.add_argument("script", help="Script path relative to the source dir")
    run_parser.add_argument(
        "--package-path",
        default=DEFAULT_PACKAGE_PATH,
        help=f"Where to find package: imports, relative to the source dir (default: {DEFAULT_PACKAGE_PATH})",
    )
    run_parser.add_argument("-c", "--checked", action="store_true", help="Run in checked mode")
    run_parser.add_argument("--debug", action="store_true", help="Listen for debugger connections")
    run_parser.add_argument("--debug-port", default=None, help="Debugger port (default: 5858)")
    run_parser.add_argument("--break-at", default=None, help="Breakpoint location, e.g. test.dart:10")
    run_parser.add_argument("--use-script-snapshot", default=None, help="Execute the script from this snapshot file")

    # Pub command
    pub_parser = subparsers.add_parser("pub", parents=[common], help="Run pub install (or update)")
    pub_parser.add_argument("--update", action="store_true", help="Run 'pub update' instead of 'pub install'")
    pub_parser.add_argument("--skip", action="store_true", help="Skip the pub invocation")

    parsed_args = parser.parse_args()

    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    if not parsed_args.project_dir.is_dir():
        print(f"\033[1;31m✗ Error: Project directory does not exist: {parsed_args.project_dir}\033[0m")
        sys.exit(2)
    project_dir = parsed_args.project_dir.absolute()

    if parsed_args.command == "compile":
        compile_command(
            CompileArgs(
                project_dir=project_dir,
                dart_sdk=parsed_args.dart_sdk,
                source_dir=parsed_args.source_dir,
                package_path=parsed_args.package_path,
                output_dir=parsed_args.output_dir,
                compile_roots=parsed_args.compile_roots,
                includes=parsed_args.includes,
                excludes=parsed_args.excludes,
                stale_millis=parsed_args.stale_millis,
                force=parsed_args.force,
                skip=parsed_args.skip,
                bundle_entry=parsed_args.bundle_entry,
                checked=parsed_args.checked,
                compiler_verbose=parsed_args.compiler_verbose,
                analyze_all=parsed_args.analyze_all,
                minify=parsed_args.minify,
                suppress_warnings=parsed_args.suppress_warnings,
                diagnostic_colors=parsed_args.diagnostic_colors,
                verbose=parsed_args.verbose,
                log_file=parsed_args.log_file,
            )
        )
    elif parsed_args.command == "test":
        test_command(
            TestArgs(
                project_dir=project_dir,
                dart_sdk=parsed_args.dart_sdk,
                source_dir=parsed_args.source_dir,
                package_path=parsed_args.package_path,
                test_dir=parsed_args.test_dir,
                includes=parsed_args.includes,
                excludes=parsed_args.excludes,
                skip_tests=parsed_args.skip_tests,
                fail_if_no_tests=parsed_args.fail_if_no_tests,
                ignore_failures=parsed_args.ignore_failures,
                checked=parsed_args.checked,
                verbose=parsed_args.verbose,
                log_file=parsed_args.log_file,
            )
        )
    elif parsed_args.command == "run":
        run_command(
            RunArgs(
                project_dir=project_dir,
                script=parsed_args.script,
                dart_sdk=parsed_args.dart_sdk,
                source_dir=parsed_args.source_dir,
                package_path=parsed_args.package_path,
                checked=parsed_args.checked,
                debug=parsed_args.debug,
                debug_port=parsed_args.debug_port,
                break_at=parsed_args.break_at,
                use_script_snapshot=parsed_args.use_script_snapshot,
                verbose=parsed_args.verbose,
                log_file=parsed_args.log_file,
            )
        )
    elif parsed_args.command == "pub":
        pub_command(
            PubArgs(
                project_dir=project_dir,
                dart_sdk=parsed_args.dart_sdk,
                source_dir=parsed_args.source_dir,
                update=parsed_args.update,
                skip=parsed_args.skip,
                verbose=parsed_args.verbose,
                log_file=parsed_args.log_file,
            )
        )


if __name__ == "__main__":
    main()
