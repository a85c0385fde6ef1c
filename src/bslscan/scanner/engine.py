# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Scanner lifecycle and the adaptive retry loop around BSL tokenization failures."""

from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ..bsl.doctor import BslFileDoctor
from ..config import ScannerConfig
from ..core.models import ScanResult
from ..core.properties import EXCLUSIONS_PROPERTY, ScannerProperties
from ..core.runtime.context import OperationContext
from ..core.runtime.process import ProcessInvoker, ScannerInvoker, resolve_binary
from ..errors import (
    BslScanError,
    InvocationFailure,
    RetryLimitExceededError,
    ScanFailedError,
    ScannerConfigError,
    UnexpectedScannerError,
)
from .classifier import Classification, classify
from .exclusions import ExclusionLedger
from .install import download_scanner
from .output import iter_info_messages, parse_output
from .remediation import remediate

LOGGER = logging.getLogger(__name__)

MAX_SCAN_RETRIES: Final[int] = 10
JAVA_OPTS_ENV: Final[str] = "JAVA_OPTS"


@dataclass(slots=True)
class _AttemptOutcome:
    result: ScanResult
    output: str
    failure: BaseException | None = None


class ScannerEngine:
    """Run the scanner, excluding BSL files that break its tokenizer.

    Args:
        config: Scanner settings; its ``properties`` seed the property store.
        invoker: Process invoker, :class:`ProcessInvoker` by default.
        doctor: BSL repairer used by the proactive sweep and remediation.
    """

    def __init__(
        self,
        config: ScannerConfig,
        *,
        invoker: ScannerInvoker | None = None,
        doctor: BslFileDoctor | None = None,
    ) -> None:
        self._config = config
        self._invoker: ScannerInvoker = invoker or ProcessInvoker()
        self._doctor = doctor or BslFileDoctor()
        self._properties = ScannerProperties(config.properties)
        self._binary: Path | None = config.binary_path
        self._work_dir: Path | None = config.work_dir
        self._temp_dir: Path | None = config.temp_dir
        self._clone_dir: Path | None = None

    @property
    def properties(self) -> ScannerProperties:
        """Return the live property store passed to every attempt."""

        return self._properties

    @property
    def binary_path(self) -> Path | None:
        """Return the scanner executable, ``None`` until configured or downloaded."""

        return self._binary

    @property
    def work_dir(self) -> Path | None:
        """Return the directory the scanner runs in."""

        return self._work_dir

    def set_property(self, key: str, value: str) -> None:
        self._properties.set(key, value)

    def get_property(self, key: str) -> str:
        return self._properties.get(key)

    def configure(
        self,
        *,
        properties: Mapping[str, str] | None = None,
        work_dir: Path | None = None,
        temp_dir: Path | None = None,
    ) -> None:
        """Merge ``properties`` and create the working and temporary directories.

        Raises:
            ScannerConfigError: If a directory cannot be created.
        """

        LOGGER.debug("Configuring scanner")
        if properties:
            self._properties.update(properties)
        if work_dir is not None:
            self._work_dir = _ensure_directory(work_dir, "work_dir")
        if temp_dir is not None:
            self._temp_dir = _ensure_directory(temp_dir, "temp_dir")

    def download(self) -> Path:
        """Fetch the scanner distribution and use its executable.

        Returns:
            Path: The downloaded scanner executable.
        """

        downloaded = download_scanner(self._config.scanner_url, self._config.scanner_version, self._temp_dir)
        self._clone_dir = downloaded.clone_dir
        self._binary = downloaded.executable
        LOGGER.debug("Scanner path set to %s", self._binary)
        return downloaded.executable

    def validate(self) -> None:
        """Check that the scanner binary and working directory are usable.

        Raises:
            ScannerConfigError: If the binary is unset or missing, or the
                working directory does not exist.
        """

        if self._binary is None:
            raise ScannerConfigError("binary_path", "scanner path is not set, scanner may not be downloaded")
        try:
            resolved = Path(resolve_binary(self._binary))
        except FileNotFoundError as exc:
            raise ScannerConfigError("binary_path", "scanner executable does not exist") from exc
        if not resolved.exists():
            raise ScannerConfigError("binary_path", "scanner executable does not exist")
        if self._work_dir is not None and not self._work_dir.is_dir():
            raise ScannerConfigError("work_dir", "working directory does not exist")

    def initialize(self) -> None:
        """Validate the configuration before the first attempt."""

        LOGGER.debug("Initializing scanner")
        self.validate()

    def cleanup(self) -> None:
        """Remove the scanner clone created by :meth:`download`, if any."""

        if self._clone_dir is None:
            return
        LOGGER.debug("Removing scanner clone %s", self._clone_dir)
        shutil.rmtree(self._clone_dir, ignore_errors=True)
        self._clone_dir = None

    def execute(self, context: OperationContext | None = None) -> ScanResult:
        """Run the scanner, retrying while BSL files break tokenization.

        Every retry excludes the files blamed by the previous attempt through
        ``sonar.exclusions``. The caller's own ``sonar.exclusions`` value is
        kept in front of the generated patterns and restored afterwards.

        Args:
            context: Cancellation and deadline source, unbounded by default.

        Returns:
            ScanResult: Result of the first successful attempt.

        Raises:
            ScannerConfigError: If :meth:`validate` fails.
            RetryLimitExceededError: If BSL failures persist after
                :data:`MAX_SCAN_RETRIES` retries.
            ScanFailedError: For any other failure; it is never retried.
        """

        context = context or OperationContext.background()
        self.initialize()
        had_base = EXCLUSIONS_PROPERTY in self._properties
        base = self._properties.get(EXCLUSIONS_PROPERTY)
        ledger = ExclusionLedger(base)
        attempt = 0
        LOGGER.debug("Starting scanner with retry logic (max retries %d)", MAX_SCAN_RETRIES)
        try:
            while attempt <= MAX_SCAN_RETRIES:
                LOGGER.info("Scan attempt %d (%d excluded file(s))", attempt + 1, len(ledger))
                self._preprocess()
                ledger.apply(self._properties)
                outcome = self._attempt(context, timeout=self._config.timeout or None, graceful=False)
                outcome.result.attempts = attempt + 1
                outcome.result.excluded_files = list(ledger.files)
                if outcome.failure is None:
                    LOGGER.info(
                        "Scan completed successfully on attempt %d (%d excluded file(s))",
                        attempt + 1,
                        len(ledger),
                    )
                    return outcome.result

                classification = self._classify(outcome)
                if not classification.retryable:
                    LOGGER.error("Scan failed with non-recoverable error: %s", classification.error)
                    raise ScanFailedError(
                        str(classification.error),
                        result=outcome.result,
                        cause=classification.error,
                        excluded_files=ledger.files,
                        output=outcome.output,
                    ) from classification.error

                failing = classification.bsl_candidates
                LOGGER.warning("BSL tokenization errors detected on attempt %d: %s", attempt + 1, ", ".join(failing))
                if attempt >= MAX_SCAN_RETRIES:
                    LOGGER.error(
                        "Maximum retry attempts exceeded (%d); excluded files: %s",
                        MAX_SCAN_RETRIES,
                        ", ".join(ledger.files),
                    )
                    raise RetryLimitExceededError(
                        retries=MAX_SCAN_RETRIES,
                        failing_files=failing,
                        excluded_files=ledger.files,
                        result=outcome.result,
                        cause=classification.error,
                        output=outcome.output,
                    ) from classification.error

                added = ledger.add_many(failing)
                attempt += 1
                LOGGER.info(
                    "Added %d file(s) to exclusions (%d total), retrying scan as attempt %d",
                    len(added),
                    len(ledger),
                    attempt + 1,
                )
        finally:
            if had_base:
                self._properties.set(EXCLUSIONS_PROPERTY, base)
            else:
                self._properties.remove(EXCLUSIONS_PROPERTY)
        raise UnexpectedScannerError("retry loop ended without a terminal outcome")

    def execute_with_timeout(self, timeout: float, context: OperationContext | None = None) -> ScanResult:
        """Run a single attempt bounded by ``timeout`` with graceful shutdown.

        On expiry the scanner is interrupted and force-killed after a short
        grace period. No retry is attempted.

        Raises:
            ScannerConfigError: If :meth:`validate` fails.
            ScanFailedError: If the attempt fails for any reason.
        """

        context = context or OperationContext.background()
        self.initialize()
        LOGGER.debug("Executing scanner with timeout %ss", timeout)
        outcome = self._attempt(context, timeout=timeout, graceful=True)
        if outcome.failure is None:
            return outcome.result
        classification = self._classify(outcome, timeout=timeout)
        raise ScanFailedError(
            str(classification.error),
            result=outcome.result,
            cause=classification.error,
            output=outcome.output,
        ) from classification.error

    def _attempt(self, context: OperationContext, *, timeout: float | None, graceful: bool) -> _AttemptOutcome:
        """Invoke the scanner once and parse whatever it printed."""

        if self._binary is None:  # pragma: no cover - guarded by validate()
            raise ScannerConfigError("binary_path", "scanner path is not set, scanner may not be downloaded")
        result = ScanResult()
        started = time.monotonic()
        try:
            invocation = self._invoker.invoke(
                context,
                self._binary,
                self._work_dir,
                self._properties,
                timeout,
                env=self._environment(),
                graceful=graceful,
            )
        except InvocationFailure as exc:
            outcome = _AttemptOutcome(result=result, output=exc.output, failure=exc)
        except (UnexpectedScannerError, OSError) as exc:
            outcome = _AttemptOutcome(result=result, output="", failure=exc)
        else:
            result.success = True
            result.duration = invocation.duration
            parse_output(invocation.output, result)
            for message in iter_info_messages(invocation.output):
                LOGGER.debug("scanner: %s", message)
            LOGGER.debug(
                "Scanner finished in %.2fs (analysis id %r, project key %r)",
                result.duration,
                result.analysis_id,
                result.project_key,
            )
            return _AttemptOutcome(result=result, output=invocation.output)

        result.duration = time.monotonic() - started
        if outcome.output:
            parse_output(outcome.output, result)
        return outcome

    def _classify(self, outcome: _AttemptOutcome, *, timeout: float | None = None) -> Classification:
        """Classify a failed attempt and run the remediation phase on it."""

        if outcome.failure is None:  # pragma: no cover - callers check first
            raise UnexpectedScannerError("cannot classify a successful attempt")
        classification = classify(
            outcome.failure,
            outcome.output,
            outcome.result,
            timeout=timeout if timeout is not None else (self._config.timeout or None),
            work_dir=self._work_dir,
        )
        remediation = remediate(classification, outcome.result, self._doctor, self._work_dir, outcome.output)
        if remediation.repaired or remediation.failed:
            LOGGER.info(
                "Remediation repaired %d BSL file(s), %d could not be fixed",
                len(remediation.repaired),
                len(remediation.failed),
            )
        return classification

    def _preprocess(self) -> None:
        """Repair problematic BSL files under the working directory."""

        if not self._config.preprocess or self._work_dir is None:
            return
        try:
            reports = self._doctor.sweep(self._work_dir)
        except (BslScanError, OSError) as exc:
            LOGGER.warning("BSL preprocessing failed: %s", exc)
            return
        changed = [report for report in reports if report.changed]
        if changed:
            LOGGER.info("Preprocessing repaired %d BSL file(s)", len(changed))

    def _environment(self) -> dict[str, str]:
        if self._config.java_opts:
            return {JAVA_OPTS_ENV: self._config.java_opts}
        return {}


def _ensure_directory(path: Path, field: str) -> Path:
    """Create ``path`` and its parents when missing.

    Args:
        path: Directory to create.
        field: Configuration field reported when creation fails.

    Returns:
        Path: ``path`` itself.

    Raises:
        ScannerConfigError: If the directory cannot be created.
    """

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ScannerConfigError(field, f"failed to create directory {path}: {exc}") from exc
    return path


__all__ = ["MAX_SCAN_RETRIES", "ScannerEngine"]
