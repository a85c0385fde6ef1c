# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI tests for the doctor command."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from bslscan.cli.app import app


def test_doctor_reports_clean_tree(project_dir: Path) -> None:
    runner = CliRunner()
    (project_dir / "Module.bsl").write_text("А = 1;\n", encoding="utf-8")

    result = runner.invoke(app, ["doctor", str(project_dir), "--no-emoji"])

    assert result.exit_code == 0, result.output
    assert "All 1 BSL file(s) look clean" in result.output


def test_doctor_check_only_leaves_files_untouched(project_dir: Path) -> None:
    runner = CliRunner()
    module = project_dir / "Module.bsl"
    module.write_bytes(b"A = 1;\r\n")

    result = runner.invoke(app, ["doctor", str(project_dir), "--check-only", "--no-emoji"])

    assert result.exit_code == 1
    assert "Module.bsl: Windows line endings" in result.output
    assert "1 of 1 BSL file(s) need attention" in result.output
    assert module.read_bytes() == b"A = 1;\r\n"


def test_doctor_repairs_and_keeps_backups(project_dir: Path) -> None:
    runner = CliRunner()
    module = project_dir / "Module.bsl"
    module.write_bytes(b"A = 1;\r\n")

    result = runner.invoke(app, ["doctor", str(project_dir), "--no-emoji"])

    assert result.exit_code == 0, result.output
    assert "Repaired 1 BSL file(s)" in result.output
    assert module.read_bytes() == b"A = 1;\n"
    assert (project_dir / "Module.bsl.backup").read_bytes() == b"A = 1;\r\n"


def test_doctor_rejects_missing_root(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["doctor", str(tmp_path / "absent"), "--no-emoji"])

    assert result.exit_code == 2
