# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI tests for the scan command."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from bslscan.cli.app import app

SUCCESS_OUTPUT = (
    "INFO: Project key: demo\n"
    "INFO: ANALYSIS SUCCESSFUL, you can browse http://sonar/dashboard?id=demo\n"
    "INFO: More about the report processing at http://sonar/api/ce/task?id=AB12\n"
)


def test_scan_reports_success(fake_scanner, project_dir: Path) -> None:
    runner = CliRunner()
    binary = fake_scanner(SUCCESS_OUTPUT)

    result = runner.invoke(
        app,
        ["scan", str(project_dir), "--scanner", str(binary), "-D", "sonar.projectKey=demo", "--no-emoji"],
    )

    assert result.exit_code == 0, result.output
    assert "Scan completed" in result.output
    assert "after 1 attempt(s)" in result.output
    assert "AB12" in result.output
    assert "demo" in result.output


def test_scan_propagates_scanner_exit_code(fake_scanner, project_dir: Path) -> None:
    runner = CliRunner()
    binary = fake_scanner("ERROR: 401 Unauthorized\n", exit_code=3)

    result = runner.invoke(app, ["scan", str(project_dir), "--scanner", str(binary), "--no-emoji"])

    assert result.exit_code == 3
    assert "Diagnostics:" in result.output
    assert "Authentication failed: Invalid token or credentials" in result.output


def test_scan_lists_excluded_files_when_retries_run_out(fake_scanner, project_dir: Path) -> None:
    runner = CliRunner()
    binary = fake_scanner(
        "java.lang.IllegalStateException: Tokens of file `src/Broken.bsl` contain an invalid token\n",
        exit_code=1,
    )

    result = runner.invoke(
        app,
        ["scan", str(project_dir), "--scanner", str(binary), "--no-preprocess", "--no-emoji"],
    )

    assert result.exit_code == 1
    assert "after 10 retry attempts" in result.output
    assert "Excluded files:" in result.output
    assert "src/Broken.bsl" in result.output


def test_scan_without_scanner_fails(project_dir: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["scan", str(project_dir), "--no-emoji"])

    assert result.exit_code == 1
    assert "scanner path is not set" in result.output


def test_scan_rejects_malformed_define(project_dir: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["scan", str(project_dir), "-D", "novalue"])

    assert result.exit_code == 2


def test_scan_reports_configuration_errors(project_dir: Path) -> None:
    runner = CliRunner()
    (project_dir / "bslscan.toml").write_text("retries = 3\n", encoding="utf-8")

    result = runner.invoke(app, ["scan", str(project_dir), "--no-emoji"])

    assert result.exit_code == 2
    assert "invalid configuration for 'retries'" in result.output


def test_graceful_requires_timeout(fake_scanner, project_dir: Path) -> None:
    runner = CliRunner()
    binary = fake_scanner(SUCCESS_OUTPUT)

    result = runner.invoke(app, ["scan", str(project_dir), "--scanner", str(binary), "--graceful"])

    assert result.exit_code == 2


def test_graceful_scan_with_timeout_succeeds(fake_scanner, project_dir: Path) -> None:
    runner = CliRunner()
    binary = fake_scanner(SUCCESS_OUTPUT)

    result = runner.invoke(
        app,
        ["scan", str(project_dir), "--scanner", str(binary), "--graceful", "--timeout", "30", "--no-emoji"],
    )

    assert result.exit_code == 0, result.output
    assert "AB12" in result.output


def test_scan_accepts_scanner_path_relative_to_cwd(
    fake_scanner, project_dir: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    runner = CliRunner()
    fake_scanner(SUCCESS_OUTPUT)
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(
        app,
        ["scan", str(project_dir), "--scanner", "bin/sonar-scanner", "--no-preprocess", "--no-emoji"],
    )

    assert result.exit_code == 0, result.output
    assert "AB12" in result.output
