"""
Build system components for dartbuild.

This package provides:
- Source discovery and staleness scanning
- Output path mapping
- dart2js compilation orchestration
- Dart test orchestration
"""

from .compile_orchestrator import CompileOrchestrator, CompileParams
from .dart_test_orchestrator import DartTestOrchestrator, DartTestParams
from .orchestrator import (
    AggregateVerdict,
    BuildFailedError,
    BuildOrchestratorError,
    CompilationUnit,
    ConfigurationError,
    NoTestsExecutedError,
    RunOutcome,
    RunStatus,
    TestFailuresError,
)
from .path_mapper import map_output_path
from .source_scanner import SourceSet, StaleSourceScanner, SuffixMapping, scan_sources

__all__ = [
    "AggregateVerdict",
    "BuildFailedError",
    "BuildOrchestratorError",
    "CompilationUnit",
    "CompileOrchestrator",
    "CompileParams",
    "ConfigurationError",
    "DartTestOrchestrator",
    "DartTestParams",
    "NoTestsExecutedError",
    "RunOutcome",
    "RunStatus",
    "SourceSet",
    "StaleSourceScanner",
    "SuffixMapping",
    "TestFailuresError",
    "map_output_path",
    "scan_sources",
]
