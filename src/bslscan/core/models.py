# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Result models shared by the scanner engine and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DiagnosticCategory(str, Enum):
    """Named diagnostic categories recognised in scanner output."""

    AUTHENTICATION = "authentication"
    CONNECTIVITY = "connectivity"
    PROJECT_KEY = "project_key"
    NO_SOURCES = "no_sources"
    OUT_OF_MEMORY = "out_of_memory"
    PERMISSIONS = "permissions"
    QUALITY_GATE = "quality_gate"
    VERSION = "version"
    PLUGIN = "plugin"
    EXECUTION_FAILURE = "execution_failure"
    TIMEOUT = "timeout"
    SSL = "ssl"
    DISK_SPACE = "disk_space"
    CLASSPATH = "classpath"
    MISSING_CONFIG = "missing_config"
    SOURCE_CONTROL = "source_control"
    ANALYSIS = "analysis"
    SERVER_ERROR = "server_error"
    BSL_TOKENIZATION = "bsl_tokenization"
    BSL_PLUGIN = "bsl_plugin"
    BSL_ENCODING = "bsl_encoding"
    BSL_SYNTAX = "bsl_syntax"
    SCANNER_ERROR = "scanner_error"
    SCANNER_WARNING = "scanner_warning"
    PLATFORM_1C = "platform_1c"


class ScanResult(BaseModel):
    """Outcome of a single scanner attempt.

    ``success`` is true only when the scanner exited with status ``0``. The
    ``diagnostics`` list is append-only; ``metrics`` maps metric names such as
    ``issues_count`` or ``quality_gate`` to the raw text captured from output.
    """

    model_config = ConfigDict(validate_assignment=True)

    success: bool = False
    analysis_id: str = ""
    project_key: str = ""
    duration: float = 0.0
    diagnostics: list[str] = Field(default_factory=list)
    metrics: dict[str, str] = Field(default_factory=dict)
    attempts: int = 1
    excluded_files: list[str] = Field(default_factory=list)

    def add_diagnostic(self, message: str) -> None:
        """Append ``message`` to the diagnostics list."""

        self.diagnostics.append(message)

    def extend_diagnostics(self, messages: list[str] | tuple[str, ...]) -> None:
        """Append every entry of ``messages`` in order."""

        self.diagnostics.extend(messages)


@dataclass(frozen=True, slots=True)
class Invocation:
    """Successful scanner invocation captured by the process invoker."""

    output: str
    exit_code: int
    duration: float


__all__ = ["DiagnosticCategory", "Invocation", "ScanResult"]
