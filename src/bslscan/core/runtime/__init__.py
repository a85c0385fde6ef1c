# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Runtime helpers: operation contexts and process execution."""

from .context import ContextState, OperationContext
from .process import GRACEFUL_SHUTDOWN_SECONDS, ProcessInvoker, ScannerInvoker, build_command, terminate_process

__all__ = [
    "ContextState",
    "GRACEFUL_SHUTDOWN_SECONDS",
    "OperationContext",
    "ProcessInvoker",
    "ScannerInvoker",
    "build_command",
    "terminate_process",
]
