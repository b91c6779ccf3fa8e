"""Output path derivation for compiled sources.

A source file under one of the compile roots maps to the same relative
location under the output root, with the output suffix appended to the
file name (``web/app.dart`` -> ``<out>/web/app.dart.js``). The existing
extension is kept, not replaced.
"""

import logging
from pathlib import Path
from typing import Sequence

from .orchestrator import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_SUFFIX = ".js"


def relative_to_root(source: Path, compile_roots: Sequence[Path]) -> Path:
    """Return ``source`` relative to the first compile root that contains it.

    Args:
        source: Source file path
        compile_roots: Candidate roots, tried in order

    Returns:
        Root-relative path

    Raises:
        ConfigurationError: If no root contains the source
    """
    absolute_source = source.absolute()
    for root in compile_roots:
        try:
            return absolute_source.relative_to(root.absolute())
        except ValueError:
            continue

    roots = ", ".join(str(root.absolute()) for root in compile_roots) or "<none>"
    raise ConfigurationError(
        f"Unable to find compile source root for dart file '{absolute_source}'. "
        f"Compile source roots are: {roots}"
    )


def map_output_path(
    source: Path,
    compile_roots: Sequence[Path],
    output_root: Path,
    suffix: str = DEFAULT_OUTPUT_SUFFIX,
) -> Path:
    """Derive the absolute output path for a source file.

    Pure function: nothing is created on disk. The caller creates the
    parent directory before invoking the compiler.

    Args:
        source: Source file path
        compile_roots: Roots the source tree may be rooted at, tried in order
        output_root: Root directory for compiled output
        suffix: Suffix appended to the source file name

    Returns:
        Absolute output file path

    Raises:
        ConfigurationError: If the source is not under any compile root
    """
    relative = relative_to_root(source, compile_roots)
    if not relative.name:
        raise ConfigurationError(f"Source '{source}' is a compile source root, not a file beneath it")
    output = output_root.absolute() / relative.with_name(relative.name + suffix)
    logger.debug("dart2js compiles '%s' to '%s'", source, output)
    return output
