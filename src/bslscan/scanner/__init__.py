# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Scanner execution: output parsing, failure classification and the retry engine."""

from __future__ import annotations

from .classifier import Classification, classify, extract_bsl_files, suggest_exclusions
from .engine import MAX_SCAN_RETRIES, ScannerEngine
from .exclusions import ExclusionLedger
from .output import parse_output

__all__ = [
    "Classification",
    "ExclusionLedger",
    "MAX_SCAN_RETRIES",
    "ScannerEngine",
    "classify",
    "extract_bsl_files",
    "parse_output",
    "suggest_exclusions",
]
