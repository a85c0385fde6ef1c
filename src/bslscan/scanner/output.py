# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Best-effort parser for the scanner's free-text console output.

The scanner's console format is not a versioned protocol, so every matcher
below is applied independently to each stripped line and unknown lines are
skipped without complaint. Parsing never raises.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Final

from ..core.models import ScanResult

ERROR_PREFIX: Final[str] = "ERROR:"
WARN_PREFIX: Final[str] = "WARN:"
INFO_PREFIX: Final[str] = "INFO:"
WARNING_LABEL: Final[str] = "Warning: "
ANALYSIS_SUCCESS_MARKER: Final[str] = "ANALYSIS SUCCESSFUL"
QUALITY_GATE_MARKER: Final[str] = "Quality gate"
REPORT_URL_PREFIX: Final[str] = "INFO: More about the report processing at"

WARNINGS_METRIC: Final[str] = "warnings"
ISSUES_METRIC: Final[str] = "issues_count"
QUALITY_GATE_METRIC: Final[str] = "quality_gate"

ANALYSIS_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"task\?id=([A-Za-z0-9_-]+)")
PROJECT_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(?:INFO:\s*)?Project key:\s*(.*)$")
TASK_URL_PATTERN: Final[re.Pattern[str]] = re.compile(r"(https?://\S+)")
PROGRESS_PATTERN: Final[re.Pattern[str]] = re.compile(r"(\d+)/(\d+)\s+files")

MetricExtractor = Callable[[re.Match[str]], dict[str, str]]


@dataclass(frozen=True, slots=True)
class MetricMatcher:
    """Map a regex match on one output line to named metric values."""

    pattern: re.Pattern[str]
    extract: MetricExtractor

    def apply(self, line: str, result: ScanResult) -> None:
        match = self.pattern.search(line)
        if match is not None:
            result.metrics.update(self.extract(match))


def _single(name: str) -> MetricExtractor:
    """Return an extractor storing the first capture group under ``name``."""

    return lambda match: {name: match.group(1)}


METRIC_MATCHERS: Final[tuple[MetricMatcher, ...]] = (
    MetricMatcher(
        re.compile(r"Total time:\s*([0-9:.]+)\s*(s|min)"),
        lambda match: {"execution_time": match.group(1) + match.group(2)},
    ),
    MetricMatcher(
        re.compile(r"Final Memory:\s*([0-9]+)M/([0-9]+)M"),
        lambda match: {"memory_used": f"{match.group(1)}M", "memory_total": f"{match.group(2)}M"},
    ),
    MetricMatcher(re.compile(r"(\d+)\s+issues?\s+found"), _single(ISSUES_METRIC)),
    MetricMatcher(re.compile(r"Coverage\s+(\d+\.\d+)%"), _single("coverage")),
    MetricMatcher(re.compile(r"Duplicated lines\s+(\d+\.\d+)%"), _single("duplicated_lines")),
    MetricMatcher(re.compile(r"Lines of code\s+(\d+)"), _single("lines_of_code")),
    MetricMatcher(re.compile(r"Cyclomatic complexity\s+(\d+)"), _single("cyclomatic_complexity")),
    MetricMatcher(re.compile(r"Technical Debt\s+([0-9]+[dhm]+)"), _single("technical_debt")),
)


def parse_output(output: str, result: ScanResult) -> None:
    """Populate ``result`` from the scanner's combined output.

    Args:
        output: Raw combined stdout/stderr text.
        result: Result receiving identifiers, metrics and diagnostics.
    """

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        for matcher in METRIC_MATCHERS:
            matcher.apply(line, result)
        _parse_markers(line, result)
        _parse_log_entry(line, result)


def _parse_markers(line: str, result: ScanResult) -> None:
    """Extract identifiers, the quality gate status and report links."""

    if ANALYSIS_SUCCESS_MARKER in line:
        match = ANALYSIS_ID_PATTERN.search(line)
        if match is not None:
            result.analysis_id = match.group(1)

    key_match = PROJECT_KEY_PATTERN.match(line)
    if key_match is not None:
        result.project_key = key_match.group(1).strip()

    if QUALITY_GATE_MARKER in line:
        if "PASSED" in line:
            result.metrics[QUALITY_GATE_METRIC] = "PASSED"
        elif "FAILED" in line:
            result.metrics[QUALITY_GATE_METRIC] = "FAILED"

    if line.startswith(REPORT_URL_PREFIX):
        result.metrics["report_url"] = line.removeprefix(REPORT_URL_PREFIX).strip()

    if "http" in line and "api/ce/task" in line:
        url_match = TASK_URL_PATTERN.search(line)
        if url_match is not None:
            result.metrics["task_url"] = url_match.group(1)

    if "Analyzing" in line or "Processed" in line:
        progress = PROGRESS_PATTERN.search(line)
        if progress is not None:
            result.metrics["files_processed"] = progress.group(1)
            result.metrics["files_total"] = progress.group(2)


def _parse_log_entry(line: str, result: ScanResult) -> None:
    """Record ``ERROR:`` and ``WARN:`` lines as diagnostics."""

    if line.startswith(ERROR_PREFIX):
        message = line.removeprefix(ERROR_PREFIX).strip()
        if message:
            result.add_diagnostic(message)
        return
    if line.startswith(WARN_PREFIX):
        message = line.removeprefix(WARN_PREFIX).strip()
        if message:
            result.metrics[WARNINGS_METRIC] = str(_warning_count(result) + 1)
            result.add_diagnostic(f"{WARNING_LABEL}{message}")


def _warning_count(result: ScanResult) -> int:
    try:
        return int(result.metrics.get(WARNINGS_METRIC, "0"))
    except ValueError:
        return 0


def iter_info_messages(output: str) -> Sequence[str]:
    """Return the text of every ``INFO:`` line, used for debug logging."""

    messages: list[str] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if line.startswith(INFO_PREFIX):
            message = line.removeprefix(INFO_PREFIX).strip()
            if message:
                messages.append(message)
    return messages


__all__ = [
    "ISSUES_METRIC",
    "METRIC_MATCHERS",
    "MetricMatcher",
    "QUALITY_GATE_METRIC",
    "WARNINGS_METRIC",
    "iter_info_messages",
    "parse_output",
]
