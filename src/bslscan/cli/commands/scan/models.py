# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Data structures for the scan CLI command."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any

import typer

ROOT_ARGUMENT = Annotated[
    Path,
    typer.Argument(help="Project directory handed to the scanner as its working directory."),
]
SCANNER_OPTION = Annotated[
    Path | None,
    typer.Option("--scanner", "-s", help="Scanner executable (path or name on PATH)."),
]
CONFIG_OPTION = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Configuration file used instead of bslscan.toml."),
]
DEFINE_OPTION = Annotated[
    list[str] | None,
    typer.Option("--define", "-D", help="Scanner property as key=value; may be repeated."),
]
TIMEOUT_OPTION = Annotated[
    float | None,
    typer.Option("--timeout", "-t", min=0.0, help="Seconds allowed per scanner run; 0 disables the limit."),
]
NO_PREPROCESS_OPTION = Annotated[
    bool,
    typer.Option("--no-preprocess", help="Skip the BSL repair sweep before each attempt."),
]
GRACEFUL_OPTION = Annotated[
    bool,
    typer.Option("--graceful", help="Run a single attempt and interrupt the scanner cleanly on timeout."),
]
VERBOSE_OPTION = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Emit debug logging."),
]
NO_EMOJI_OPTION = Annotated[
    bool,
    typer.Option("--no-emoji", help="Disable emoji in output."),
]


@dataclass(slots=True)
class ScanCLIOptions:
    """Normalised CLI inputs for the scan command."""

    root: Path
    config_file: Path | None
    scanner: Path | None
    timeout: float | None
    properties: dict[str, str] = field(default_factory=dict)
    preprocess: bool = True
    graceful: bool = False
    verbose: bool = False
    use_emoji: bool = True

    def config_overrides(self) -> dict[str, Any]:
        """Return the configuration values supplied on the command line."""

        overrides: dict[str, Any] = {}
        if self.scanner is not None:
            overrides["binary_path"] = self.scanner
        if self.timeout is not None:
            overrides["timeout"] = self.timeout
        if not self.preprocess:
            overrides["preprocess"] = False
        if self.properties:
            overrides["properties"] = dict(self.properties)
        return overrides


def parse_defines(defines: Sequence[str] | None) -> dict[str, str]:
    """Split ``key=value`` definitions into a property mapping.

    Raises:
        typer.BadParameter: If a definition lacks ``=`` or has an empty key.
    """

    properties: dict[str, str] = {}
    for definition in defines or ():
        key, separator, value = definition.partition("=")
        key = key.strip()
        if not separator or not key:
            raise typer.BadParameter(f"expected key=value, got '{definition}'", param_hint="--define")
        properties[key] = value
    return properties


def build_scan_options(
    *,
    root: Path,
    scanner: Path | None,
    config_file: Path | None,
    defines: Sequence[str] | None,
    timeout: float | None,
    no_preprocess: bool,
    graceful: bool,
    verbose: bool,
    no_emoji: bool,
) -> ScanCLIOptions:
    """Construct ``ScanCLIOptions`` from Typer parameters."""

    return ScanCLIOptions(
        root=root.expanduser().resolve(),
        config_file=config_file.expanduser() if config_file is not None else None,
        scanner=scanner.expanduser() if scanner is not None else None,
        timeout=timeout,
        properties=parse_defines(defines),
        preprocess=not no_preprocess,
        graceful=graceful,
        verbose=verbose,
        use_emoji=not no_emoji,
    )


__all__ = [
    "CONFIG_OPTION",
    "DEFINE_OPTION",
    "GRACEFUL_OPTION",
    "NO_EMOJI_OPTION",
    "NO_PREPROCESS_OPTION",
    "ROOT_ARGUMENT",
    "SCANNER_OPTION",
    "ScanCLIOptions",
    "TIMEOUT_OPTION",
    "VERBOSE_OPTION",
    "build_scan_options",
    "parse_defines",
]
