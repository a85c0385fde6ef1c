# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy raised by the scanner engine and its collaborators."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from .core.models import ScanResult

TIMEOUT_EXIT_CODE: Final[int] = -1


class BslScanError(Exception):
    """Base class for every error raised by :mod:`bslscan`."""


class ScannerConfigError(BslScanError):
    """Raised when scanner configuration is missing or invalid."""

    def __init__(self, field: str, message: str) -> None:
        """Record the offending configuration ``field`` alongside ``message``.

        Args:
            field: Name of the configuration field that failed validation.
            message: Human-readable explanation of the failure.
        """

        super().__init__(f"invalid configuration for '{field}': {message}")
        self.field = field
        self.message = message


class InvocationFailure(BslScanError):
    """Structured failure of a single scanner invocation.

    Attributes:
        exit_code: Process exit status, ``-1`` for timeouts and cancellation.
        output: Combined stdout/stderr captured before the failure.
        message: Short description of the failure.
    """

    def __init__(self, exit_code: int, output: str, message: str) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output
        self.message = message

    def __str__(self) -> str:
        return f"scanner failed with exit code {self.exit_code}: {self.message}"


class ScannerTimeoutError(InvocationFailure):
    """Raised when the scanner exceeds its deadline."""

    def __init__(self, output: str, timeout: float | None = None) -> None:
        super().__init__(TIMEOUT_EXIT_CODE, output, "execution timed out")
        self.timeout = timeout


class ScannerCancelledError(InvocationFailure):
    """Raised when the operation context is cancelled mid-run."""

    def __init__(self, output: str) -> None:
        super().__init__(TIMEOUT_EXIT_CODE, output, "execution cancelled")


class ProcessExitError(InvocationFailure):
    """Raised when the scanner exits with a non-zero status."""

    def __init__(self, exit_code: int, output: str, message: str | None = None) -> None:
        super().__init__(exit_code, output, message or f"process exited with status {exit_code}")


class UnexpectedScannerError(BslScanError):
    """Raised for failures that do not fit the structured invocation taxonomy."""


class ScanFailedError(BslScanError):
    """Terminal failure surfaced by :meth:`ScannerEngine.execute`.

    Attributes:
        result: Result of the final attempt, including its diagnostics.
        cause: Classified failure of the final attempt.
        excluded_files: Every file excluded across all attempts.
        output: Raw scanner output of the final attempt.
    """

    def __init__(
        self,
        message: str,
        *,
        result: ScanResult | None,
        cause: BaseException | None,
        excluded_files: Sequence[str] = (),
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.result = result
        self.cause = cause
        self.excluded_files = tuple(excluded_files)
        self.output = output

    @property
    def exit_code(self) -> int | None:
        """Return the exit code of the underlying invocation when known."""

        if isinstance(self.cause, InvocationFailure):
            return self.cause.exit_code
        return None


class RetryLimitExceededError(ScanFailedError):
    """Raised once the retry budget is spent on BSL tokenization failures."""

    def __init__(
        self,
        *,
        retries: int,
        failing_files: Sequence[str],
        excluded_files: Sequence[str],
        result: ScanResult | None,
        cause: BaseException | None,
        output: str = "",
    ) -> None:
        failing = ", ".join(failing_files)
        excluded = ", ".join(excluded_files) or "<none>"
        message = (
            f"scan failed after {retries} retry attempts due to BSL file errors. "
            f"Problematic files: {failing}. All excluded files: {excluded}"
        )
        super().__init__(message, result=result, cause=cause, excluded_files=excluded_files, output=output)
        self.retries = retries
        self.failing_files = tuple(failing_files)


class BslFileNotFoundError(BslScanError, FileNotFoundError):
    """Raised when a BSL file scheduled for repair does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"BSL file not found: {path}")
        self.path = path


class BslRepairError(BslScanError, OSError):
    """Raised when a BSL file cannot be read or rewritten."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"failed to repair BSL file {path}: {reason}")
        self.path = path
        self.reason = reason


class ScannerDownloadError(BslScanError):
    """Raised when the scanner distribution cannot be fetched."""


__all__ = [
    "BslFileNotFoundError",
    "BslRepairError",
    "BslScanError",
    "InvocationFailure",
    "ProcessExitError",
    "RetryLimitExceededError",
    "ScanFailedError",
    "ScannerCancelledError",
    "ScannerConfigError",
    "ScannerDownloadError",
    "ScannerTimeoutError",
    "TIMEOUT_EXIT_CODE",
    "UnexpectedScannerError",
]
