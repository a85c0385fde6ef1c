# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Helpers for 1C:Enterprise BSL source files."""

from __future__ import annotations

from .doctor import BslFileDoctor, RepairReport, ValidationReport

__all__ = ["BslFileDoctor", "RepairReport", "ValidationReport"]
