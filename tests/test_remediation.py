# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the remediation phase run after classification."""

from __future__ import annotations

from pathlib import Path

from bslscan.bsl.doctor import BslFileDoctor
from bslscan.core.models import ScanResult
from bslscan.errors import ProcessExitError
from bslscan.scanner.classifier import classify
from bslscan.scanner.remediation import PLUGIN_HINTS, TOKENIZATION_HINTS, remediate


def _classified(output: str, work_dir: Path) -> tuple[ScanResult, object]:
    result = ScanResult()
    classification = classify(ProcessExitError(1, output), output, result, work_dir=work_dir)
    return result, classification


def test_remediation_repairs_candidate_files(tmp_path: Path) -> None:
    source = tmp_path / "src" / "Bad.bsl"
    source.parent.mkdir()
    source.write_bytes("Процедура\u00a0Тест()\r\n".encode("utf-8"))
    output = "java.lang.IllegalStateException: Tokens of file `src/Bad.bsl` are broken\n"
    result, classification = _classified(output, tmp_path)

    outcome = remediate(classification, result, BslFileDoctor(), tmp_path, output)

    assert outcome.repaired == ["src/Bad.bsl"]
    assert "ATTEMPTED FIX: src/Bad.bsl - file has been automatically corrected" in result.diagnostics
    for hint in TOKENIZATION_HINTS:
        assert hint in result.diagnostics
    assert "EXCLUSION SUGGESTIONS:" in result.diagnostics
    assert "sonar.exclusions=**/Bad.bsl" in result.diagnostics
    assert source.read_text(encoding="utf-8") == "Процедура Тест()\n"
    assert (tmp_path / "src" / "Bad.bsl.backup").exists()


def test_remediation_records_failed_repairs(tmp_path: Path) -> None:
    output = "java.lang.IllegalStateException: Tokens of file `src/Gone.bsl` are broken\n"
    result, classification = _classified(output, tmp_path)

    outcome = remediate(classification, result, BslFileDoctor(), tmp_path, output)

    assert outcome.failed == ["src/Gone.bsl"]
    failures = [line for line in result.diagnostics if line.startswith("FAILED TO FIX: src/Gone.bsl - ")]
    assert len(failures) == 1
    assert "BSL file not found" in failures[0]


def test_remediation_is_noop_without_bsl_signature(tmp_path: Path) -> None:
    output = "ERROR: Not authorized\n"
    result, classification = _classified(output, tmp_path)
    before = list(result.diagnostics)

    outcome = remediate(classification, result, BslFileDoctor(), tmp_path, output)

    assert result.diagnostics == before
    assert outcome.repaired == []
    assert outcome.failed == []


def test_plugin_errors_get_plugin_hints(tmp_path: Path) -> None:
    output = "ERROR: com.github._1c_syntax.bsl.sonar plugin crashed\n"
    result, classification = _classified(output, tmp_path)

    remediate(classification, result, BslFileDoctor(), tmp_path, output)

    for hint in PLUGIN_HINTS:
        assert hint in result.diagnostics
