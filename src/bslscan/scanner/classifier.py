# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Classify failed scanner invocations into categorised diagnostics.

Classification is side-effect free with respect to the file system: it reads
the captured output, appends diagnostics to the attempt's
:class:`~bslscan.core.models.ScanResult` and reports which BSL files look
responsible. Repairing those files is the job of
:mod:`bslscan.scanner.remediation`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from ..core.models import DiagnosticCategory, ScanResult
from ..errors import (
    InvocationFailure,
    ProcessExitError,
    ScannerCancelledError,
    ScannerTimeoutError,
    UnexpectedScannerError,
)

LOGGER = logging.getLogger(__name__)

NO_PATTERNS_MESSAGE: Final[str] = "No specific error patterns detected. Check scanner output above for details."
CANCELLED_MESSAGE: Final[str] = "Scanner execution was cancelled"
TIMEOUT_ADVICE: Final[str] = "Consider increasing timeout value or optimizing project size"
MAX_LOGGED_OUTPUT: Final[int] = 2000
MIN_BSL_PATH_LENGTH: Final[int] = 5

BSL_PATH_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"""([^\s"'`<>()\[\]{},;]+\.bsl)(?![\w.]*\w)""",
    re.IGNORECASE,
)
_PATH_QUOTES: Final[str] = "\"'`"

EXIT_CODE_HEADLINES: Final[dict[int, str]] = {
    1: "Quality gate failure or analysis errors",
    2: "Invalid configuration or parameters",
    3: "Internal error or unexpected failure",
    4: "Insufficient memory or resources",
    5: "Network or connectivity issues",
}


@dataclass(frozen=True, slots=True)
class ErrorSignature:
    """One row of the diagnostic catalogue.

    A line matches when it contains every ``all_of`` substring and, when
    ``any_of`` is non-empty, at least one of the ``any_of`` substrings.

    Attributes:
        category: Category recorded for matching lines.
        template: Diagnostic text; ``{line}`` is replaced by the matched line.
        all_of: Substrings that must all be present.
        any_of: Substrings of which at least one must be present.
        remediable: Whether the category triggers automatic BSL repair.
    """

    category: DiagnosticCategory
    template: str
    all_of: tuple[str, ...] = ()
    any_of: tuple[str, ...] = ()
    remediable: bool = False

    def matches(self, line: str) -> bool:
        if not all(token in line for token in self.all_of):
            return False
        return not self.any_of or any(token in line for token in self.any_of)

    def render(self, line: str) -> str:
        return self.template.format(line=line)

    def findings(self, line: str) -> list[Finding]:
        """Return the single finding for a matching ``line``, else nothing."""

        if not self.matches(line):
            return []
        return [Finding(self.category, self.render(line), self.remediable)]


C = DiagnosticCategory

# Evaluated top to bottom for every line; one line may match several rows.
ERROR_SIGNATURES: Final[tuple[ErrorSignature, ...]] = (
    ErrorSignature(C.AUTHENTICATION, "Authentication failed: Invalid token or credentials", any_of=("Unauthorized", "401")),
    ErrorSignature(C.CONNECTIVITY, "Network error: Cannot connect to SonarQube server", any_of=("Connection refused", "ConnectException")),
    ErrorSignature(C.PROJECT_KEY, "Invalid project key configuration", all_of=("Project key", "invalid")),
    ErrorSignature(C.NO_SOURCES, "No source files found for analysis", any_of=("No sources found", "No files to analyze")),
    ErrorSignature(C.OUT_OF_MEMORY, "Insufficient memory: Increase JAVA_OPTS heap size", all_of=("OutOfMemoryError",)),
    ErrorSignature(C.PERMISSIONS, "File system permission error", any_of=("Permission denied", "Access denied")),
    ErrorSignature(C.QUALITY_GATE, "Quality gate failed: Code quality standards not met", all_of=("Quality gate", "FAILED")),
    ErrorSignature(C.VERSION, "SonarQube server version compatibility issue", all_of=("version", "not supported")),
    ErrorSignature(C.PLUGIN, "Scanner plugin error", all_of=("plugin", "failed")),
    ErrorSignature(C.EXECUTION_FAILURE, "Scanner execution failure detected", all_of=("EXECUTION FAILURE",)),
    ErrorSignature(C.TIMEOUT, "Timeout error: {line}", any_of=("timeout", "timed out")),
    ErrorSignature(C.SSL, "SSL/TLS connection error: {line}", any_of=("SSL", "TLS", "certificate")),
    ErrorSignature(C.DISK_SPACE, "Disk space error: {line}", any_of=("No space left", "disk full")),
    ErrorSignature(C.CLASSPATH, "Java classpath error: {line}", any_of=("ClassNotFoundException", "NoClassDefFoundError")),
    ErrorSignature(
        C.MISSING_CONFIG,
        "Configuration file error: {line}",
        all_of=("sonar-project.properties",),
        any_of=("not found", "missing"),
    ),
    ErrorSignature(C.SOURCE_CONTROL, "Git-related error: {line}", all_of=("git",), any_of=("not found", "failed")),
    ErrorSignature(C.ANALYSIS, "Analysis error: {line}", any_of=("Analysis failed", "analysis error")),
    ErrorSignature(C.SERVER_ERROR, "Server error: {line}", any_of=("500", "502", "503", "504")),
    ErrorSignature(
        C.BSL_TOKENIZATION,
        "BSL tokenization error: File contains invalid token sequence - check file encoding and syntax",
        all_of=("java.lang.IllegalStateException", "Tokens of file", ".bsl"),
        remediable=True,
    ),
    ErrorSignature(C.BSL_PLUGIN, "BSL plugin error: {line}", all_of=("com.github._1c_syntax.bsl",)),
    ErrorSignature(C.BSL_ENCODING, "BSL encoding error: {line}", all_of=(".bsl",), any_of=("encoding", "charset")),
    ErrorSignature(C.BSL_SYNTAX, "BSL syntax error: {line}", all_of=(".bsl", "syntax")),
)


@dataclass(frozen=True, slots=True)
class Finding:
    """A categorised diagnostic extracted from one output line."""

    category: DiagnosticCategory
    message: str
    remediable: bool = False


def _prefixed_findings(line: str) -> list[Finding]:
    """Return findings for ``ERROR:`` lines and suspicious ``WARN:`` lines."""

    if line.startswith("ERROR:"):
        message = line.removeprefix("ERROR:").strip()
        if message:
            return [Finding(C.SCANNER_ERROR, f"Scanner error: {message}")]
    elif line.startswith("WARN:"):
        message = line.removeprefix("WARN:").strip()
        if message and any(token in message for token in ("fail", "error", "invalid")):
            return [Finding(C.SCANNER_WARNING, f"Scanner warning: {message}")]
    return []


def _platform_findings(line: str) -> list[Finding]:
    """Return findings for 1C platform failures mentioned in ``line``."""

    if any(token in line for token in ("1C", "1c")) and any(token in line for token in ("error", "ERROR", "failed")):
        return [Finding(C.PLATFORM_1C, f"1C platform error: {line}")]
    return []


LineRule = Callable[[str], list[Finding]]
_PREFIX_RULE_AT: Final[int] = next(
    index for index, signature in enumerate(ERROR_SIGNATURES) if signature.category is C.EXECUTION_FAILURE
)
# ERROR:/WARN: lines are reported between the plugin row and the EXECUTION FAILURE row.
_LINE_RULES: Final[tuple[LineRule, ...]] = (
    *(signature.findings for signature in ERROR_SIGNATURES[:_PREFIX_RULE_AT]),
    _prefixed_findings,
    *(signature.findings for signature in ERROR_SIGNATURES[_PREFIX_RULE_AT:]),
    _platform_findings,
)


def analyze_output(output: str) -> list[Finding]:
    """Run the diagnostic catalogue over every line of ``output``.

    Args:
        output: Raw combined scanner output.

    Returns:
        list[Finding]: Findings in output order, rule order within a line.
    """

    findings: list[Finding] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        for rule in _LINE_RULES:
            findings.extend(rule(line))
    return findings


def analyze_timeout(output: str) -> list[str]:
    """Describe the phase the scanner was in when it timed out."""

    diagnostics: list[str] = []
    for raw_line in reversed(output.splitlines()):
        line = raw_line.strip()
        if not line:
            continue
        phase = _timeout_phase(line)
        if phase is not None:
            diagnostics.append(phase)
            break
    diagnostics.append(TIMEOUT_ADVICE)
    return diagnostics


def _timeout_phase(line: str) -> str | None:
    if "Analyzing" in line:
        return "Timeout occurred during file analysis phase"
    if "Uploading" in line or "Sending" in line:
        return "Timeout occurred during result upload to server"
    if "Downloading" in line:
        return "Timeout occurred during dependency download"
    if "Starting" in line:
        return "Timeout occurred during scanner initialization"
    return None


def exit_code_message(exit_code: int, analysis: Sequence[str]) -> str:
    """Return the headline for ``exit_code`` with ``analysis`` appended."""

    headline = EXIT_CODE_HEADLINES.get(exit_code)
    if headline is None:
        message = f"Scanner execution failed with exit code {exit_code}"
    else:
        message = f"Scanner execution failed: {headline}"
    if analysis:
        message += " (" + ", ".join(analysis) + ")"
    return message


def extract_bsl_files(output: str, work_dir: Path | None = None) -> list[str]:
    """Return the distinct BSL file paths mentioned in ``output``.

    Quotes and backticks around paths are dropped, Java package names such as
    ``com.github._1c_syntax.bsl.parser`` are ignored and absolute paths inside
    ``work_dir`` are made relative to it.

    Args:
        output: Raw combined scanner output.
        work_dir: Scanner working directory used to relativise paths.

    Returns:
        list[str]: Candidate paths in first-seen order.
    """

    seen: dict[str, None] = {}
    for match in BSL_PATH_PATTERN.finditer(output):
        candidate = match.group(1).strip().strip(_PATH_QUOTES)
        if len(candidate) < MIN_BSL_PATH_LENGTH:
            continue
        candidate = _relative_to_work_dir(candidate, work_dir)
        seen.setdefault(candidate, None)
    return list(seen)


def _relative_to_work_dir(candidate: str, work_dir: Path | None) -> str:
    """Express an absolute ``candidate`` relative to ``work_dir`` when inside it.

    Args:
        candidate: Path text extracted from scanner output.
        work_dir: Scanner working directory, or ``None`` when unknown.

    Returns:
        str: POSIX-style relative path, or ``candidate`` unchanged.
    """

    path = Path(candidate)
    if work_dir is None or not path.is_absolute():
        return candidate
    try:
        return path.relative_to(work_dir).as_posix()
    except ValueError:
        return candidate


def suggest_exclusions(output: str) -> list[str]:
    """Return ``sonar.exclusions`` suggestions for BSL files named in ``output``."""

    suggestions: list[str] = []
    names = [Path(path).name for path in extract_bsl_files(output)]
    for name in dict.fromkeys(names):
        suggestions.append(f"sonar.exclusions=**/{name}")
    if any("commonmodule" in path.lower() for path in extract_bsl_files(output)):
        suggestions.append("sonar.exclusions=**/CommonModules/**/*.bsl")
    if names:
        suggestions.extend(
            (
                "# Consider excluding problematic BSL files:",
                "sonar.exclusions=**/*Server*.bsl,**/*Сервер*.bsl",
                "sonar.exclusions=**/CommonModules/**/*.bsl",
                "sonar.exclusions=**/*.bsl  # Exclude all BSL files if issues persist",
            )
        )
    return suggestions


@dataclass(slots=True)
class Classification:
    """Structured outcome of classifying one failed attempt.

    Attributes:
        error: Refined failure raised to the caller when the attempt is final.
        findings: Categorised diagnostics extracted from the output.
        bsl_candidates: BSL files the output blames, relative to the work dir.
    """

    error: BaseException
    findings: list[Finding] = field(default_factory=list)
    bsl_candidates: list[str] = field(default_factory=list)

    @property
    def categories(self) -> set[DiagnosticCategory]:
        """Return the distinct categories of the findings."""

        return {finding.category for finding in self.findings}

    @property
    def remediable(self) -> bool:
        """Return whether the BSL tokenization signature was found."""

        return any(finding.remediable for finding in self.findings)

    @property
    def retryable(self) -> bool:
        """Return whether excluding files could change the next attempt's outcome.

        A cancelled run is never retried; the next attempt would be cancelled too.
        """

        if isinstance(self.error, ScannerCancelledError):
            return False
        return isinstance(self.error, InvocationFailure) and bool(self.bsl_candidates)


def classify(
    failure: BaseException,
    output: str,
    result: ScanResult,
    *,
    timeout: float | None = None,
    work_dir: Path | None = None,
) -> Classification:
    """Classify ``failure`` and append categorised diagnostics to ``result``.

    Args:
        failure: Exception raised by the process invoker.
        output: Raw combined output captured for the attempt.
        result: Attempt result receiving diagnostics.
        timeout: Configured timeout, quoted in timeout diagnostics.
        work_dir: Scanner working directory used to relativise BSL paths.

    Returns:
        Classification: Refined error plus findings and BSL candidates.
    """

    _log_failure_output(failure, output)
    candidates = extract_bsl_files(output, work_dir) if isinstance(failure, InvocationFailure) else []

    if isinstance(failure, ScannerTimeoutError):
        limit = failure.timeout if failure.timeout is not None else timeout
        result.add_diagnostic(f"Scanner execution timed out after {_format_seconds(limit)}")
        result.extend_diagnostics(analyze_timeout(output))
        LOGGER.error("Scanner execution timed out after %s", _format_seconds(limit))
        return Classification(error=failure, bsl_candidates=candidates)

    if isinstance(failure, ScannerCancelledError):
        result.add_diagnostic(CANCELLED_MESSAGE)
        return Classification(error=failure, bsl_candidates=candidates)

    if isinstance(failure, ProcessExitError):
        findings = analyze_output(output)
        analysis = [finding.message for finding in findings]
        headline = exit_code_message(failure.exit_code, analysis)
        result.add_diagnostic(headline)
        if analysis:
            result.extend_diagnostics(analysis)
        else:
            result.add_diagnostic(NO_PATTERNS_MESSAGE)
        LOGGER.error(
            "Scanner failed (exit code %s): %s; %d diagnostic(s)",
            failure.exit_code,
            EXIT_CODE_HEADLINES.get(failure.exit_code, "unknown error"),
            len(analysis),
        )
        refined = ProcessExitError(failure.exit_code, output, headline)
        return Classification(error=refined, findings=findings, bsl_candidates=candidates)

    result.add_diagnostic(f"Unexpected scanner execution error: {failure}")
    LOGGER.error("Unexpected scanner execution error (%s): %s", type(failure).__name__, failure)
    if isinstance(failure, UnexpectedScannerError):
        return Classification(error=failure)
    wrapped = UnexpectedScannerError(f"scanner execution failed: {failure}")
    wrapped.__cause__ = failure
    return Classification(error=wrapped)


def _format_seconds(value: float | None) -> str:
    """Render a timeout for diagnostics, e.g. ``30s``."""

    if value is None:
        return "the configured deadline"
    return f"{value:g}s"


def _log_failure_output(failure: BaseException, output: str) -> None:
    LOGGER.error("Scanner execution failed: %s (output length %d)", failure, len(output))
    if not output:
        return
    if len(output) > MAX_LOGGED_OUTPUT:
        LOGGER.error("Scanner output (last %d chars):\n%s", MAX_LOGGED_OUTPUT, output[-MAX_LOGGED_OUTPUT:])
    else:
        LOGGER.error("Scanner output:\n%s", output)


__all__ = [
    "Classification",
    "ERROR_SIGNATURES",
    "ErrorSignature",
    "Finding",
    "NO_PATTERNS_MESSAGE",
    "analyze_output",
    "analyze_timeout",
    "classify",
    "exit_code_message",
    "extract_bsl_files",
    "suggest_exclusions",
]
