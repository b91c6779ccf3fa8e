"""Flag sets for the dart2js compiler and the dart VM.

Design:
    Each tool gets one frozen dataclass that declares every flag dartbuild
    knows how to pass. ``to_args()`` renders the fixed argument prefix of
    an invocation; orchestrators append the per-candidate tail (source and
    output paths) themselves.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DART2JS_OUTPUT_FLAG = "-o"


def build_package_root(source_dir: Path, package_path: str) -> str:
    """Absolute path of the "package:" import root, with a trailing separator."""
    return str((source_dir / package_path).absolute()) + os.sep


@dataclass(frozen=True)
class Dart2JsOptions:
    """dart2js compiler flags.

    Attributes:
        checked: Insert runtime type checks and enable assertions (-c)
        verbose: Display verbose compiler information (-v)
        analyze_all: Analyze all code, not only code reachable from main
        minify: Generate minified output
        suppress_warnings: Do not display any warnings
        diagnostic_colors: Add colors to diagnostic messages
        package_root: Where to find "package:" imports (-p), or None
    """

    checked: bool = False
    verbose: bool = False
    analyze_all: bool = False
    minify: bool = False
    suppress_warnings: bool = False
    diagnostic_colors: bool = False
    package_root: Optional[str] = None

    def to_args(self) -> list[str]:
        args = []
        if self.checked:
            args.append("-c")
        if self.verbose:
            args.append("-v")
        if self.analyze_all:
            args.append("--analyze-all")
        if self.minify:
            args.append("--minify")
        if self.suppress_warnings:
            args.append("--suppress-warnings")
        if self.diagnostic_colors:
            args.append("--enable-diagnostic-colors")
        if self.package_root is not None:
            args.append(f"-p{self.package_root}")
        return args


@dataclass(frozen=True)
class DartVmOptions:
    """dart VM flags used to run scripts and test files.

    Attributes:
        checked: Insert runtime type checks and enable assertions
        debug: Enable debugging and listen for debugger connections
        debug_port: Port for --debug (VM default 5858 when unset)
        break_at: Breakpoint location, e.g. "test.dart:10" or "B.foo"
        use_script_snapshot: Snapshot file to execute the script from
        package_root: Where to find "package:" imports, or None
    """

    checked: bool = False
    debug: bool = False
    debug_port: Optional[str] = None
    break_at: Optional[str] = None
    use_script_snapshot: Optional[str] = None
    package_root: Optional[str] = None

    def to_args(self) -> list[str]:
        args = []
        if self.checked:
            args.append("--checked")
        if self.debug:
            args.append("--debug" + (f":{self.debug_port}" if self.debug_port else ""))
        if self.break_at:
            args.append(f"--break_at={self.break_at}")
        if self.use_script_snapshot:
            args.append(f"--use_script_snapshot={self.use_script_snapshot}")
        if self.package_root is not None:
            args.append(f"--package-root={self.package_root}")
        return args
