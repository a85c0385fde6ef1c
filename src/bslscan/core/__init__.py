# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Core building blocks: models, property store, runtime helpers."""

from __future__ import annotations

from .models import DiagnosticCategory, Invocation, ScanResult
from .properties import EXCLUSIONS_PROPERTY, ScannerProperties

__all__ = [
    "DiagnosticCategory",
    "EXCLUSIONS_PROPERTY",
    "Invocation",
    "ScanResult",
    "ScannerProperties",
]
