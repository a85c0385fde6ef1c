# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Scan CLI command."""

from __future__ import annotations

from pathlib import Path

import typer
from rich import box
from rich.table import Table

from ....config import ScannerConfig, load_config
from ....core.logging import configure_logging, fail, info, ok, warn
from ....core.models import ScanResult
from ....errors import BslScanError, ScanFailedError
from ....runtime.console import detect_tty, get_console_manager
from ....scanner.engine import ScannerEngine
from .models import (
    CONFIG_OPTION,
    DEFINE_OPTION,
    GRACEFUL_OPTION,
    NO_EMOJI_OPTION,
    NO_PREPROCESS_OPTION,
    ROOT_ARGUMENT,
    SCANNER_OPTION,
    TIMEOUT_OPTION,
    VERBOSE_OPTION,
    ScanCLIOptions,
    build_scan_options,
)


def scan_command(
    root: ROOT_ARGUMENT = Path("."),
    scanner: SCANNER_OPTION = None,
    config_file: CONFIG_OPTION = None,
    define: DEFINE_OPTION = None,
    timeout: TIMEOUT_OPTION = None,
    no_preprocess: NO_PREPROCESS_OPTION = False,
    graceful: GRACEFUL_OPTION = False,
    verbose: VERBOSE_OPTION = False,
    no_emoji: NO_EMOJI_OPTION = False,
) -> None:
    """Run the scanner, excluding BSL files that break tokenization.

    Raises:
        typer.Exit: With the scanner's exit code (or 1) when the scan fails.
    """

    options = build_scan_options(
        root=root,
        scanner=scanner,
        config_file=config_file,
        defines=define,
        timeout=timeout,
        no_preprocess=no_preprocess,
        graceful=graceful,
        verbose=verbose,
        no_emoji=no_emoji,
    )
    configure_logging(verbose=options.verbose)
    use_emoji = options.use_emoji

    try:
        config = load_config(options.root, config_file=options.config_file, overrides=options.config_overrides())
    except BslScanError as exc:
        fail(str(exc), use_emoji=use_emoji)
        raise typer.Exit(code=2) from exc
    if options.graceful and not config.timeout:
        raise typer.BadParameter("--graceful requires a positive timeout", param_hint="--timeout")

    engine = ScannerEngine(config)
    try:
        result = _run(engine, config, options)
    except ScanFailedError as exc:
        _report_failure(exc, use_emoji=use_emoji)
        exit_code = exc.exit_code if exc.exit_code is not None and exc.exit_code > 0 else 1
        raise typer.Exit(code=exit_code) from exc
    except BslScanError as exc:
        fail(str(exc), use_emoji=use_emoji)
        raise typer.Exit(code=1) from exc
    finally:
        engine.cleanup()

    _report_success(result, use_emoji=use_emoji)


def _run(engine: ScannerEngine, config: ScannerConfig, options: ScanCLIOptions) -> ScanResult:
    if config.binary_path is None and config.scanner_version:
        info(f"Downloading scanner {config.scanner_version}", use_emoji=options.use_emoji)
        engine.download()
    if options.graceful:
        return engine.execute_with_timeout(config.timeout)
    return engine.execute()


def _report_success(result: ScanResult, *, use_emoji: bool) -> None:
    ok(f"Scan completed in {result.duration:.1f}s after {result.attempts} attempt(s)", use_emoji=use_emoji)
    color = detect_tty()
    console = get_console_manager().get(color=color, emoji=use_emoji)
    table = Table(title="Scan result", box=box.SIMPLE, expand=False)
    table.add_column("Field", style="bold" if color else "")
    table.add_column("Value", overflow="fold")
    if result.analysis_id:
        table.add_row("Analysis ID", result.analysis_id)
    if result.project_key:
        table.add_row("Project key", result.project_key)
    for name, value in sorted(result.metrics.items()):
        table.add_row(name, value)
    console.print(table)
    if result.excluded_files:
        warn(f"{len(result.excluded_files)} file(s) excluded from analysis:", use_emoji=use_emoji)
        for path in result.excluded_files:
            typer.echo(f"    {path}")
    for message in result.diagnostics:
        typer.echo(f"  {message}")


def _report_failure(error: ScanFailedError, *, use_emoji: bool) -> None:
    fail(str(error), use_emoji=use_emoji)
    if error.result is not None:
        if error.result.diagnostics:
            typer.echo("")
            typer.echo("Diagnostics:")
            for message in error.result.diagnostics:
                typer.echo(f"    {message}")
    if error.excluded_files:
        typer.echo("")
        typer.echo("Excluded files:")
        for path in error.excluded_files:
            typer.echo(f"    {path}")


__all__ = ["scan_command"]
