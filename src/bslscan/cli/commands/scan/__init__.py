# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Scan CLI command."""

from __future__ import annotations

import typer

from .command import scan_command

__all__ = ["register"]


def register(app: typer.Typer) -> None:
    """Register the scan command with ``app``.

    Args:
        app: Typer application receiving the scan command registration.
    """

    app.command(name="scan")(scan_command)
