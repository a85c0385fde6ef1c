# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the scanner engine retry loop and lifecycle."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from bslscan.config import ScannerConfig
from bslscan.core.models import Invocation
from bslscan.core.properties import EXCLUSIONS_PROPERTY, ScannerProperties
from bslscan.core.runtime.context import OperationContext
from bslscan.errors import (
    ProcessExitError,
    RetryLimitExceededError,
    ScanFailedError,
    ScannerCancelledError,
    ScannerConfigError,
    UnexpectedScannerError,
)
from bslscan.scanner.classifier import NO_PATTERNS_MESSAGE
from bslscan.scanner.engine import MAX_SCAN_RETRIES, ScannerEngine

SUCCESS_OUTPUT = "INFO: Project key: demo\nINFO: ANALYSIS SUCCESSFUL ... task?id=AB12\n"
TOKENIZATION_OUTPUT = "java.lang.IllegalStateException: Tokens of file `src/X.bsl` contain an invalid token\n"


@dataclass(slots=True)
class RecordedCall:
    properties: dict[str, str]
    timeout: float | None
    env: dict[str, str]
    graceful: bool


@dataclass(slots=True)
class FakeInvoker:
    """Replay scripted outcomes; the last outcome repeats once exhausted."""

    outcomes: list[str | BaseException]
    calls: list[RecordedCall] = field(default_factory=list)

    def invoke(
        self,
        context: OperationContext,
        binary: Path | str,
        work_dir: Path | None,
        properties: ScannerProperties,
        timeout: float | None = None,
        *,
        env: Mapping[str, str] | None = None,
        graceful: bool = False,
    ) -> Invocation:
        self.calls.append(RecordedCall(properties.snapshot(), timeout, dict(env or {}), graceful))
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        return Invocation(output=outcome, exit_code=0, duration=0.25)


def _token_failure() -> ProcessExitError:
    return ProcessExitError(1, TOKENIZATION_OUTPUT)


@pytest.fixture
def scanner_config(project_dir: Path, tmp_path: Path) -> ScannerConfig:
    binary = tmp_path / "sonar-scanner"
    binary.write_text("", encoding="utf-8")
    return ScannerConfig(binary_path=binary, work_dir=project_dir, preprocess=False)


def test_success_needs_exactly_one_invocation(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([SUCCESS_OUTPUT])

    result = ScannerEngine(scanner_config, invoker=invoker).execute()

    assert len(invoker.calls) == 1
    assert result.success is True
    assert result.analysis_id == "AB12"
    assert result.project_key == "demo"
    assert result.attempts == 1
    assert result.excluded_files == []


def test_persistent_tokenization_failure_exhausts_retries(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([_token_failure()])
    engine = ScannerEngine(scanner_config, invoker=invoker)

    with pytest.raises(RetryLimitExceededError) as excinfo:
        engine.execute()

    assert len(invoker.calls) == MAX_SCAN_RETRIES + 1
    assert "src/X.bsl" in excinfo.value.excluded_files
    assert excinfo.value.failing_files == ("src/X.bsl",)
    assert f"after {MAX_SCAN_RETRIES} retry attempts" in str(excinfo.value)
    assert EXCLUSIONS_PROPERTY not in invoker.calls[0].properties
    assert invoker.calls[1].properties[EXCLUSIONS_PROPERTY] == "**/X.bsl,src/X.bsl"
    assert EXCLUSIONS_PROPERTY not in engine.properties


def test_retry_recovers_after_exclusion(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([_token_failure(), SUCCESS_OUTPUT])

    result = ScannerEngine(scanner_config, invoker=invoker).execute()

    assert result.success is True
    assert result.attempts == 2
    assert result.excluded_files == ["src/X.bsl"]


def test_same_file_reported_twice_is_excluded_once(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([_token_failure(), _token_failure(), SUCCESS_OUTPUT])

    result = ScannerEngine(scanner_config, invoker=invoker).execute()

    assert result.attempts == 3
    assert result.excluded_files == ["src/X.bsl"]
    assert invoker.calls[2].properties[EXCLUSIONS_PROPERTY] == "**/X.bsl,src/X.bsl"


def test_caller_exclusions_are_kept_and_restored(project_dir: Path, tmp_path: Path) -> None:
    binary = tmp_path / "sonar-scanner"
    binary.write_text("", encoding="utf-8")
    config = ScannerConfig(
        binary_path=binary,
        work_dir=project_dir,
        preprocess=False,
        properties={EXCLUSIONS_PROPERTY: "**/vendor/**"},
    )
    invoker = FakeInvoker([_token_failure(), SUCCESS_OUTPUT])
    engine = ScannerEngine(config, invoker=invoker)

    engine.execute()

    assert invoker.calls[0].properties[EXCLUSIONS_PROPERTY] == "**/vendor/**"
    assert invoker.calls[1].properties[EXCLUSIONS_PROPERTY] == "**/vendor/**,**/X.bsl,src/X.bsl"
    assert engine.get_property(EXCLUSIONS_PROPERTY) == "**/vendor/**"


def test_each_execute_starts_with_fresh_exclusions(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([_token_failure(), SUCCESS_OUTPUT, SUCCESS_OUTPUT])
    engine = ScannerEngine(scanner_config, invoker=invoker)

    engine.execute()
    second = engine.execute()

    assert second.excluded_files == []
    assert EXCLUSIONS_PROPERTY not in invoker.calls[2].properties


def test_authentication_failure_is_not_retried(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([ProcessExitError(1, "ERROR: 401 Unauthorized\n")])

    with pytest.raises(ScanFailedError) as excinfo:
        ScannerEngine(scanner_config, invoker=invoker).execute()

    assert not isinstance(excinfo.value, RetryLimitExceededError)
    assert len(invoker.calls) == 1
    assert excinfo.value.exit_code == 1
    assert excinfo.value.result is not None
    assert "Authentication failed: Invalid token or credentials" in excinfo.value.result.diagnostics
    assert excinfo.value.output == "ERROR: 401 Unauthorized\n"


def test_unrecognised_failure_gets_fallback_and_no_retry(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([ProcessExitError(7, "something went sideways\n")])

    with pytest.raises(ScanFailedError) as excinfo:
        ScannerEngine(scanner_config, invoker=invoker).execute()

    assert len(invoker.calls) == 1
    assert excinfo.value.result is not None
    assert excinfo.value.result.diagnostics.count(NO_PATTERNS_MESSAGE) == 1
    assert excinfo.value.result.diagnostics[0] == "Scanner execution failed with exit code 7"


def test_cancellation_is_not_retried(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([ScannerCancelledError(TOKENIZATION_OUTPUT)])

    with pytest.raises(ScanFailedError) as excinfo:
        ScannerEngine(scanner_config, invoker=invoker).execute()

    assert len(invoker.calls) == 1
    assert isinstance(excinfo.value.cause, ScannerCancelledError)
    assert excinfo.value.exit_code == -1


def test_start_failure_surfaces_as_unexpected(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([UnexpectedScannerError("failed to start scanner")])

    with pytest.raises(ScanFailedError) as excinfo:
        ScannerEngine(scanner_config, invoker=invoker).execute()

    assert isinstance(excinfo.value.cause, UnexpectedScannerError)
    assert excinfo.value.exit_code is None
    assert excinfo.value.result is not None
    assert excinfo.value.result.diagnostics == ["Unexpected scanner execution error: failed to start scanner"]


def test_timeout_and_java_opts_reach_invoker(project_dir: Path, tmp_path: Path) -> None:
    binary = tmp_path / "sonar-scanner"
    binary.write_text("", encoding="utf-8")
    config = ScannerConfig(binary_path=binary, work_dir=project_dir, preprocess=False, timeout=30, java_opts="-Xmx2g")
    invoker = FakeInvoker([SUCCESS_OUTPUT])

    ScannerEngine(config, invoker=invoker).execute()

    assert invoker.calls[0].timeout == 30
    assert invoker.calls[0].env == {"JAVA_OPTS": "-Xmx2g"}
    assert invoker.calls[0].graceful is False


def test_zero_timeout_means_unbounded(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([SUCCESS_OUTPUT])

    ScannerEngine(scanner_config, invoker=invoker).execute()

    assert invoker.calls[0].timeout is None
    assert invoker.calls[0].env == {}


def test_execute_with_timeout_runs_single_graceful_attempt(scanner_config: ScannerConfig) -> None:
    invoker = FakeInvoker([_token_failure()])

    with pytest.raises(ScanFailedError):
        ScannerEngine(scanner_config, invoker=invoker).execute_with_timeout(5)

    assert len(invoker.calls) == 1
    assert invoker.calls[0].graceful is True
    assert invoker.calls[0].timeout == 5


def test_preprocess_repairs_sources_before_first_attempt(project_dir: Path, tmp_path: Path) -> None:
    binary = tmp_path / "sonar-scanner"
    binary.write_text("", encoding="utf-8")
    source = project_dir / "Module.bsl"
    source.write_bytes("\ufeffА = 1;\n".encode("utf-8"))
    invoker = FakeInvoker([SUCCESS_OUTPUT])

    ScannerEngine(ScannerConfig(binary_path=binary, work_dir=project_dir), invoker=invoker).execute()

    assert source.read_bytes() == "А = 1;\n".encode("utf-8")
    assert (project_dir / "Module.bsl.backup").exists()


def test_validate_requires_binary(project_dir: Path) -> None:
    engine = ScannerEngine(ScannerConfig(work_dir=project_dir), invoker=FakeInvoker([SUCCESS_OUTPUT]))

    with pytest.raises(ScannerConfigError) as excinfo:
        engine.execute()

    assert excinfo.value.field == "binary_path"


def test_validate_rejects_missing_binary_and_work_dir(tmp_path: Path) -> None:
    missing = ScannerEngine(ScannerConfig(binary_path=tmp_path / "nope", work_dir=tmp_path))
    with pytest.raises(ScannerConfigError, match="scanner executable does not exist"):
        missing.validate()

    binary = tmp_path / "sonar-scanner"
    binary.write_text("", encoding="utf-8")
    no_dir = ScannerEngine(ScannerConfig(binary_path=binary, work_dir=tmp_path / "absent"))
    with pytest.raises(ScannerConfigError) as excinfo:
        no_dir.initialize()
    assert excinfo.value.field == "work_dir"


def test_configure_creates_directories_and_merges_properties(scanner_config: ScannerConfig, tmp_path: Path) -> None:
    engine = ScannerEngine(scanner_config, invoker=FakeInvoker([SUCCESS_OUTPUT]))

    engine.configure(
        properties={"sonar.projectKey": "demo"},
        work_dir=tmp_path / "new" / "work",
        temp_dir=tmp_path / "new" / "tmp",
    )

    assert (tmp_path / "new" / "work").is_dir()
    assert (tmp_path / "new" / "tmp").is_dir()
    assert engine.work_dir == tmp_path / "new" / "work"
    assert engine.get_property("sonar.projectKey") == "demo"


def test_remediation_outcome_is_logged(
    scanner_config: ScannerConfig,
    project_dir: Path,
    caplog: pytest.LogCaptureFixture,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    source = project_dir / "src" / "X.bsl"
    source.parent.mkdir()
    source.write_bytes("А = 1;\r\n".encode("utf-8"))
    monkeypatch.setattr(logging.getLogger("bslscan"), "propagate", True)
    invoker = FakeInvoker([_token_failure(), SUCCESS_OUTPUT])

    with caplog.at_level(logging.INFO, logger="bslscan.scanner.engine"):
        ScannerEngine(scanner_config, invoker=invoker).execute()

    assert "Remediation repaired 1 BSL file(s), 0 could not be fixed" in caplog.messages
    assert source.read_bytes() == "А = 1;\n".encode("utf-8")


def test_configure_reports_directories_it_cannot_create(scanner_config: ScannerConfig, tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    engine = ScannerEngine(scanner_config, invoker=FakeInvoker([SUCCESS_OUTPUT]))

    with pytest.raises(ScannerConfigError) as excinfo:
        engine.configure(temp_dir=blocker / "tmp")

    assert excinfo.value.field == "temp_dir"
    assert "failed to create directory" in str(excinfo.value)
