"""Tests for rich rendering of outcomes and verdicts."""

import io
from pathlib import Path

from rich.console import Console

from dartbuild.build.orchestrator import AggregateVerdict, RunOutcome
from dartbuild.report import build_outcome_table, render_outcomes, render_verdict


def _console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=120, color_system=None), buffer


def _outcomes(base: Path) -> list[RunOutcome]:
    return [
        RunOutcome(candidate=base / "web" / "ok.dart", exit_code=0, stdout=b"compiled ok"),
        RunOutcome(candidate=base / "web" / "bad.dart", exit_code=1, stderr=b"Error: missing semicolon"),
        RunOutcome(candidate=base / "web" / "gone.dart", exit_code=None, launch_error="No such file"),
    ]


def test_table_has_one_row_per_outcome(tmp_path):
    table = build_outcome_table(_outcomes(tmp_path), base=tmp_path)
    assert table.row_count == 3
    assert [column.header for column in table.columns] == ["Status", "File", "Exit"]


def test_failures_show_captured_output(tmp_path):
    console, buffer = _console()
    render_outcomes(_outcomes(tmp_path), console, base=tmp_path)

    text = buffer.getvalue()
    assert "Error: missing semicolon" in text
    assert "web/gone.dart: No such file" in text
    assert "compiled ok" not in text
    assert "FAILED" in text
    assert "LAUNCH" in text


def test_show_output_includes_successes(tmp_path):
    console, buffer = _console()
    render_outcomes(_outcomes(tmp_path), console, base=tmp_path, show_output=True)
    assert "compiled ok" in buffer.getvalue()


def test_render_verdict_prints_summary(tmp_path):
    console, buffer = _console()
    verdict = AggregateVerdict.fold("compile", _outcomes(tmp_path))

    render_verdict(verdict, console, base=tmp_path)

    assert "compile: 3 processed, 1 succeeded, 2 failed - FAILURE" in buffer.getvalue()


def test_render_skipped_verdict():
    console, buffer = _console()
    render_verdict(AggregateVerdict.skipped_pass("test"), console)
    assert buffer.getvalue().strip() == "test: skipped"
