# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Repair BSL files blamed by a classified failure and record remediation hints."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from ..bsl.doctor import BslFileDoctor
from ..core.models import DiagnosticCategory, ScanResult
from ..errors import BslFileNotFoundError, BslRepairError
from .classifier import Classification, suggest_exclusions

LOGGER = logging.getLogger(__name__)

RERUN_HINT: Final[str] = "RECOMMENDATION: Re-run the scanner to check if the issue is resolved"
TOKENIZATION_HINTS: Final[tuple[str, ...]] = (
    "RECOMMENDATION: Check BSL file encoding (should be UTF-8) and verify syntax correctness",
    "RECOMMENDATION: Try excluding problematic BSL files using sonar.exclusions property",
    "RECOMMENDATION: Update BSL plugin to latest version or check plugin compatibility",
)
PLUGIN_HINTS: Final[tuple[str, ...]] = (
    "RECOMMENDATION: Verify BSL plugin installation and version compatibility",
    "RECOMMENDATION: Check SonarQube server logs for BSL plugin issues",
)
EXCLUSION_SUGGESTIONS_HEADER: Final[str] = "EXCLUSION SUGGESTIONS:"


@dataclass(slots=True)
class RemediationOutcome:
    """Files the remediation phase repaired or failed to repair."""

    repaired: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def remediate(
    classification: Classification,
    result: ScanResult,
    doctor: BslFileDoctor,
    work_dir: Path | None,
    output: str = "",
) -> RemediationOutcome:
    """Repair candidate files and append remediation diagnostics to ``result``.

    Nothing happens unless ``classification`` carries the BSL tokenization
    signature or a BSL plugin finding. Repair failures are logged and recorded
    as diagnostics, never raised.

    Args:
        classification: Classified failure of the current attempt.
        result: Attempt result receiving diagnostics.
        doctor: Repairer applied to each candidate file.
        work_dir: Directory relative candidate paths are resolved against.
        output: Raw output used to derive exclusion suggestions.

    Returns:
        RemediationOutcome: Candidates repaired and candidates that failed.
    """

    outcome = RemediationOutcome()
    if classification.remediable:
        for candidate in classification.bsl_candidates:
            path = _resolve(candidate, work_dir)
            try:
                doctor.fix(path)
            except (BslFileNotFoundError, BslRepairError) as exc:
                LOGGER.error("Failed to fix BSL file %s: %s", candidate, exc)
                result.add_diagnostic(f"FAILED TO FIX: {candidate} - {exc}")
                outcome.failed.append(candidate)
                continue
            result.add_diagnostic(f"ATTEMPTED FIX: {candidate} - file has been automatically corrected")
            result.add_diagnostic(RERUN_HINT)
            outcome.repaired.append(candidate)
        result.extend_diagnostics(TOKENIZATION_HINTS)

    if DiagnosticCategory.BSL_PLUGIN in classification.categories:
        result.extend_diagnostics(PLUGIN_HINTS)

    if classification.remediable:
        suggestions = suggest_exclusions(output)
        if suggestions:
            result.add_diagnostic(EXCLUSION_SUGGESTIONS_HEADER)
            result.extend_diagnostics(suggestions)
    return outcome


def _resolve(candidate: str, work_dir: Path | None) -> Path:
    """Return the file a candidate path refers to.

    Args:
        candidate: Path reported by the scanner, usually relative.
        work_dir: Directory relative candidates are resolved against.

    Returns:
        Path: ``candidate`` joined onto ``work_dir`` unless already absolute.
    """

    path = Path(candidate)
    if path.is_absolute() or work_dir is None:
        return path
    return work_dir / path


__all__ = ["PLUGIN_HINTS", "RemediationOutcome", "TOKENIZATION_HINTS", "remediate"]
