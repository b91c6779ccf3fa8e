"""Dart SDK location and validation.

Directory Structure:
    <sdk>/version           first line holds the SDK version
    <sdk>/bin/dart          VM (dart.exe on Windows)
    <sdk>/bin/dart2js       compiler (dart2js.bat on Windows)
    <sdk>/bin/pub           package manager (pub.bat on Windows)

The SDK is located through the DART_SDK environment variable unless a
path is given explicitly.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .build.orchestrator import ConfigurationError

logger = logging.getLogger(__name__)

DART_SDK_ENV = "DART_SDK"

# Windows launcher extension per tool
_WINDOWS_SUFFIXES = {
    "dart": ".exe",
    "dart2js": ".bat",
    "pub": ".bat",
}


class ToolchainError(ConfigurationError):
    """Raised when the Dart SDK is missing, incomplete, or not executable."""


class DartSdk:
    """A Dart SDK installation directory."""

    def __init__(self, path: Path):
        self.path = path
        self._version: Optional[str] = None

    @classmethod
    def from_env(cls, override: Optional[Path] = None) -> "DartSdk":
        """Locate the SDK from an explicit path or the DART_SDK variable.

        Raises:
            ToolchainError: If neither is set
        """
        if override is not None:
            return cls(override)
        env_value = os.environ.get(DART_SDK_ENV)
        if not env_value:
            raise ToolchainError(f"Dart-sdk required. Set {DART_SDK_ENV} or pass --dart-sdk.")
        return cls(Path(env_value))

    def validate(self) -> str:
        """Check the SDK directory and version file.

        Returns:
            The SDK version string

        Raises:
            ToolchainError: If the SDK directory or version file is invalid
        """
        logger.debug("Check for DART_SDK at %s", self.path)
        if not self.path.is_dir():
            raise ToolchainError(f"Dart-sdk required. Configuration error for dartSdk? dartSdk={self.path.absolute()}")
        version = self.version
        logger.info("Dart-sdk configured to %s (version %s)", self.path, version)
        return version

    @property
    def version(self) -> str:
        if self._version is None:
            self._version = self._read_version()
        return self._version

    def _read_version(self) -> str:
        version_file = self.path / "version"
        if not version_file.is_file():
            raise ToolchainError(f"Dart version file missing. Configuration error for dartSdk? dartSdk={self.path.absolute()}")
        try:
            with open(version_file, "r", encoding="utf-8") as f:
                first_line = f.readline().strip()
        except OSError as e:
            raise ToolchainError(f"Unable to read dart version from {version_file}: {e}") from e
        if not first_line:
            raise ToolchainError(f"Unable to read dart version. Configuration error for dartSdk? file={version_file}")
        return first_line

    def executable(self, tool: str) -> Path:
        """Path of an SDK tool ("dart", "dart2js", "pub") for this platform."""
        suffix = _WINDOWS_SUFFIXES.get(tool, "") if sys.platform == "win32" else ""
        return self.path / "bin" / f"{tool}{suffix}"

    def require_executable(self, tool: str) -> Path:
        """Validate the SDK and return an executable tool path.

        Raises:
            ToolchainError: If the SDK is invalid or the tool cannot be executed
        """
        self.validate()
        path = self.executable(tool)
        if not path.is_file() or not os.access(path, os.X_OK):
            raise ToolchainError(f"{tool} not executable! Configuration error for dartSdk? dartSdk={self.path.absolute()}")
        logger.debug("Using %s '%s'", tool, path)
        return path
