"""Source discovery and staleness scanning.

Two layers:

- ``scan_sources`` enumerates every file under a ``SourceSet`` root that
  matches an inclusion glob and no exclusion glob. The test orchestrator
  uses this directly: every matching test file runs every time.
- ``StaleSourceScanner`` narrows that candidate set to the files whose
  compiled counterpart is missing or older than the source. The
  compilation orchestrator uses this for incremental rebuilds.

Glob semantics follow Ant/Maven directory scanners:
    **      matches zero or more directories
    *       matches any characters within one path segment
    ?       matches exactly one character within one path segment
    dir/    is shorthand for dir/**

Patterns are matched against the root-relative path with forward
slashes, on every platform.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .orchestrator import ConfigurationError

logger = logging.getLogger(__name__)

# Always applied on top of the configured exclusions
DEFAULT_EXCLUDES: tuple[str, ...] = (
    # Editor and OS droppings
    "**/*~",
    "**/#*#",
    "**/.#*",
    "**/%*%",
    "**/._*",
    "**/.DS_Store",
    # Version control
    "**/CVS/**",
    "**/.cvsignore",
    "**/RCS/**",
    "**/SCCS/**",
    "**/.svn/**",
    "**/.bzr/**",
    "**/.hg/**",
    "**/.hgignore",
    "**/.git/**",
    "**/.gitignore",
    "**/.gitattributes",
    "**/_darcs/**",
    # Dart package manager state
    "**/.dart_tool/**",
    "**/.pub/**",
    "**/.pub-cache/**",
)

DEFAULT_DART_INCLUDES: tuple[str, ...] = ("**/*.dart",)
DEFAULT_DART_EXCLUDES: tuple[str, ...] = ("**/packages/**",)


def _translate_segment(segment: str) -> str:
    parts = []
    for char in segment:
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
    return "".join(parts)


def _compile_glob(pattern: str) -> "re.Pattern[str]":
    segments = pattern.split("/")
    regex = []
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            regex.append(".*" if last else "(?:[^/]*/)*")
        else:
            regex.append(_translate_segment(segment) + ("" if last else "/"))
    return re.compile("".join(regex))


class GlobPattern:
    """A compiled Ant-style glob pattern."""

    def __init__(self, pattern: str):
        normalized = pattern.replace("\\", "/").lstrip("/")
        if normalized.endswith("/"):
            normalized += "**"
        self.pattern = normalized
        self._regex = _compile_glob(normalized)
        # "<prefix>/**" also rules out whole directories matching <prefix>
        self._dir_regex = _compile_glob(normalized[:-3]) if normalized.endswith("/**") and len(normalized) > 3 else None

    def matches(self, relative_path: str) -> bool:
        """Check a root-relative, slash-separated file path."""
        return self._regex.fullmatch(relative_path) is not None

    def matches_directory(self, relative_dir: str) -> bool:
        """Check whether every file below ``relative_dir`` is matched."""
        if self._dir_regex is None:
            return False
        return self._dir_regex.fullmatch(relative_dir) is not None

    def __repr__(self) -> str:
        return f"GlobPattern({self.pattern!r})"


def _freeze(patterns: Optional[Iterable[str]]) -> Optional[frozenset[str]]:
    if patterns is None:
        return None
    return frozenset(patterns)


@dataclass(frozen=True)
class SourceSet:
    """A source root plus inclusion/exclusion filters.

    Patterns are three-state:
        None       unset, the default patterns apply
        empty      set-empty; no inclusions match nothing, no exclusions
                   leave only DEFAULT_EXCLUDES
        non-empty  the given patterns apply

    Attributes:
        root: Directory the patterns are relative to
        includes: Inclusion patterns, or None for default_includes
        excludes: Exclusion patterns, or None for default_excludes
        default_includes: Patterns used when includes is unset
        default_excludes: Patterns used when excludes is unset
    """

    root: Path
    includes: Optional[frozenset[str]] = None
    excludes: Optional[frozenset[str]] = None
    default_includes: tuple[str, ...] = DEFAULT_DART_INCLUDES
    default_excludes: tuple[str, ...] = DEFAULT_DART_EXCLUDES

    @classmethod
    def create(
        cls,
        root: Path,
        includes: Optional[Iterable[str]] = None,
        excludes: Optional[Iterable[str]] = None,
        default_includes: Sequence[str] = DEFAULT_DART_INCLUDES,
        default_excludes: Sequence[str] = DEFAULT_DART_EXCLUDES,
    ) -> "SourceSet":
        """Create a SourceSet from any iterables, keeping None as 'unset'."""
        return cls(
            root=root,
            includes=_freeze(includes),
            excludes=_freeze(excludes),
            default_includes=tuple(default_includes),
            default_excludes=tuple(default_excludes),
        )

    @property
    def effective_includes(self) -> tuple[str, ...]:
        if self.includes is None:
            return self.default_includes
        return tuple(sorted(self.includes))

    @property
    def effective_excludes(self) -> tuple[str, ...]:
        configured = self.default_excludes if self.excludes is None else tuple(sorted(self.excludes))
        return configured + DEFAULT_EXCLUDES


@dataclass(frozen=True)
class SuffixMapping:
    """Maps a source file name to the artifact name used for staleness checks.

    ``SuffixMapping(".dart", ".dart.js")`` maps ``app.dart`` to ``app.dart.js``.
    """

    source_suffix: str = ".dart"
    target_suffix: str = ".dart.js"

    def target_for(self, relative: Path) -> Optional[Path]:
        """Return the expected artifact path, or None if the name does not map."""
        name = relative.name
        if not name.endswith(self.source_suffix):
            return None
        base = name[: len(name) - len(self.source_suffix)]
        return relative.with_name(base + self.target_suffix)


def _join(relative_dir: str, name: str) -> str:
    return f"{relative_dir}/{name}" if relative_dir else name


def scan_sources(source_set: SourceSet) -> list[Path]:
    """Enumerate files under the source set root that pass its filters.

    Symlinked directories are followed; each real directory is visited once.

    Args:
        source_set: Root and filters to apply

    Returns:
        Sorted absolute paths of matching files (empty if the root is missing)
    """
    root = source_set.root.absolute()
    if not root.is_dir():
        logger.debug("Source root %s does not exist, nothing to scan", root)
        return []

    includes = [GlobPattern(p) for p in source_set.effective_includes]
    excludes = [GlobPattern(p) for p in source_set.effective_excludes]
    logger.debug("Scanning %s includes=%s excludes=%s", root, includes, excludes)
    if not includes:
        return []

    matches: list[Path] = []
    visited: set[str] = set()
    for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
        real = os.path.realpath(dirpath)
        if real in visited:
            dirnames[:] = []
            continue
        visited.add(real)

        relative_dir = Path(dirpath).relative_to(root).as_posix()
        if relative_dir == ".":
            relative_dir = ""

        dirnames[:] = [
            d for d in dirnames
            if not any(p.matches_directory(_join(relative_dir, d)) for p in excludes)
        ]

        for name in filenames:
            relative = _join(relative_dir, name)
            if not any(p.matches(relative) for p in includes):
                continue
            if any(p.matches(relative) for p in excludes):
                continue
            matches.append(Path(dirpath) / name)

    return sorted(matches)


def is_stale(source: Path, target: Path, stale_millis: float = 0) -> bool:
    """Decide whether ``source`` needs to be rebuilt into ``target``.

    A source is stale if the target is missing, or if the source is newer
    than the target by more than ``stale_millis``. Equal timestamps are
    not stale.

    Args:
        source: Source file (must exist)
        target: Expected output artifact
        stale_millis: Timestamp granularity tolerance in milliseconds

    Returns:
        True if the source must be rebuilt
    """
    try:
        target_mtime = target.stat().st_mtime_ns
    except FileNotFoundError:
        return True
    source_mtime = source.stat().st_mtime_ns
    return source_mtime - target_mtime > int(stale_millis * 1_000_000)


class StaleSourceScanner:
    """Selects the sources of a SourceSet whose compiled artifact is out of date."""

    def __init__(
        self,
        source_set: SourceSet,
        output_root: Path,
        mapping: SuffixMapping = SuffixMapping(),
        stale_millis: float = 0,
    ):
        """Initialize the scanner.

        Args:
            source_set: Sources to consider
            output_root: Root the mapping's artifact paths are relative to
            mapping: Source-name to artifact-name mapping
            stale_millis: Non-negative timestamp tolerance in milliseconds

        Raises:
            ConfigurationError: If stale_millis is negative
        """
        if stale_millis < 0:
            raise ConfigurationError(f"Staleness tolerance must be non-negative, got {stale_millis}ms")
        self.source_set = source_set
        self.output_root = output_root
        self.mapping = mapping
        self.stale_millis = stale_millis

    def select_stale(self, candidates: Iterable[Path]) -> list[Path]:
        """Filter already-enumerated candidates down to the stale ones."""
        root = self.source_set.root.absolute()
        stale = []
        for source in candidates:
            target = self.mapping.target_for(source.relative_to(root))
            if target is None:
                logger.debug("No %s artifact mapping for %s, skipping", self.mapping.target_suffix, source)
                continue
            if is_stale(source, self.output_root / target, self.stale_millis):
                stale.append(source)
        return sorted(stale)

    def scan(self) -> list[Path]:
        """Return the sorted stale subset of the source set."""
        return self.select_stale(scan_sources(self.source_set))
