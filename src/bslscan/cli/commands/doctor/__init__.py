# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Doctor CLI command package."""

from __future__ import annotations

import typer

from .command import doctor_command

__all__ = ["register"]


def register(app: typer.Typer) -> None:
    """Register the BSL doctor command on the Typer application.

    Args:
        app: Typer application receiving the doctor command.
    """

    app.command(name="doctor")(doctor_command)
