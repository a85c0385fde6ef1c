# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Doctor CLI command: find and repair BSL files that break tokenization."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ....bsl.doctor import BslFileDoctor
from ....core.logging import configure_logging, fail, ok, warn
from ....errors import BslFileNotFoundError, BslRepairError

ROOT_ARGUMENT = Annotated[
    Path,
    typer.Argument(help="Directory searched recursively for .bsl and .os files."),
]
FIX_OPTION = Annotated[
    bool,
    typer.Option("--fix/--check-only", help="Repair problematic files or only report them."),
]
VERBOSE_OPTION = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Emit debug logging."),
]
NO_EMOJI_OPTION = Annotated[
    bool,
    typer.Option("--no-emoji", help="Disable emoji in output."),
]


def doctor_command(
    root: ROOT_ARGUMENT = Path("."),
    fix: FIX_OPTION = True,
    verbose: VERBOSE_OPTION = False,
    no_emoji: NO_EMOJI_OPTION = False,
) -> None:
    """Report BSL files likely to break the scanner and optionally repair them.

    Raises:
        typer.Exit: ``1`` when problems remain, ``2`` when ``root`` is invalid.
    """

    configure_logging(verbose=verbose)
    use_emoji = not no_emoji
    doctor = BslFileDoctor()
    root_path = root.expanduser().resolve()
    try:
        report = doctor.find_and_validate(root_path)
    except NotADirectoryError as exc:
        fail(str(exc), use_emoji=use_emoji)
        raise typer.Exit(code=2) from exc

    total = len(report.valid) + len(report.problematic)
    if not report.problematic:
        ok(f"All {total} BSL file(s) look clean", use_emoji=use_emoji)
        raise typer.Exit(code=0)

    for path in report.problematic:
        reasons = ", ".join(doctor.diagnose(path))
        warn(f"{_display(path, root_path)}: {reasons}", use_emoji=use_emoji)

    if not fix:
        fail(f"{len(report.problematic)} of {total} BSL file(s) need attention", use_emoji=use_emoji)
        raise typer.Exit(code=1)

    remaining = _repair(doctor, report.problematic, root_path, use_emoji=use_emoji)
    if remaining:
        fail(f"{len(remaining)} BSL file(s) still need attention", use_emoji=use_emoji)
        raise typer.Exit(code=1)
    ok(f"Repaired {len(report.problematic)} BSL file(s); originals kept as .backup", use_emoji=use_emoji)


def _repair(doctor: BslFileDoctor, paths: list[Path], root: Path, *, use_emoji: bool) -> list[Path]:
    remaining: list[Path] = []
    for path in paths:
        try:
            doctor.fix(path)
        except (BslFileNotFoundError, BslRepairError) as exc:
            fail(str(exc), use_emoji=use_emoji)
            remaining.append(path)
            continue
        if doctor.is_problematic(path):
            warn(f"{_display(path, root)} still has problems after repair", use_emoji=use_emoji)
            remaining.append(path)
    return remaining


def _display(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


__all__ = ["doctor_command"]
