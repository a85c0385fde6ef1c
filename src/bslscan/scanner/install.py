# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Fetch a scanner distribution by shallow-cloning its repository."""

from __future__ import annotations

import logging
import shutil

# Bandit: git is invoked with an argument list, never through a shell.
import subprocess  # nosec B404
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ..core.runtime.process import resolve_binary
from ..errors import ScannerDownloadError

LOGGER = logging.getLogger(__name__)

SCANNER_EXECUTABLES: Final[frozenset[str]] = frozenset({"sonar-scanner", "sonar-scanner.bat"})
CLONE_PREFIX: Final[str] = "sonar-scanner-"


@dataclass(frozen=True, slots=True)
class DownloadedScanner:
    """Location of a cloned scanner distribution."""

    clone_dir: Path
    executable: Path


def download_scanner(url: str, version: str, temp_dir: Path | None = None) -> DownloadedScanner:
    """Clone ``url`` at tag ``version`` and locate the scanner executable.

    Args:
        url: Git URL of the scanner distribution.
        version: Branch or tag to check out.
        temp_dir: Parent directory for the clone, the system temp dir when
            ``None``.

    Returns:
        DownloadedScanner: Clone directory and executable path.

    Raises:
        ScannerDownloadError: If the clone fails or no executable is found. The
            clone directory is removed in both cases.
    """

    if not url or not version:
        raise ScannerDownloadError("scanner url and version are required to download the scanner")
    parent = temp_dir if temp_dir is not None else Path(tempfile.gettempdir())
    try:
        parent.mkdir(parents=True, exist_ok=True)
        clone_dir = Path(tempfile.mkdtemp(prefix=CLONE_PREFIX, dir=parent))
    except OSError as exc:
        raise ScannerDownloadError(f"failed to create clone directory under {parent}: {exc}") from exc

    LOGGER.debug("Cloning scanner repository %s at %s into %s", url, version, clone_dir)
    try:
        _clone(url, version, clone_dir)
        executable = find_scanner_executable(clone_dir)
    except ScannerDownloadError:
        _remove_clone(clone_dir)
        raise
    LOGGER.debug("Scanner executable located at %s", executable)
    return DownloadedScanner(clone_dir=clone_dir, executable=executable)


def _clone(url: str, version: str, destination: Path) -> None:
    try:
        git = resolve_binary("git")
    except FileNotFoundError as exc:
        raise ScannerDownloadError(str(exc)) from exc
    command = [git, "clone", "--branch", version, "--depth", "1", url, str(destination)]
    try:
        # Bandit: fixed git subcommand; url and version come from validated configuration.
        subprocess.run(command, check=True, capture_output=True, text=True)  # nosec B603
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
        raise ScannerDownloadError(f"failed to clone scanner repository: {detail}") from exc
    except OSError as exc:
        raise ScannerDownloadError(f"failed to clone scanner repository: {exc}") from exc


def find_scanner_executable(directory: Path) -> Path:
    """Return the first scanner executable found below ``directory``.

    Raises:
        ScannerDownloadError: If no executable exists inside ``directory``.
    """

    root = directory.resolve()
    for candidate in sorted(root.rglob("*")):
        if candidate.name in SCANNER_EXECUTABLES and candidate.is_file():
            if not candidate.resolve().is_relative_to(root):
                raise ScannerDownloadError(f"invalid scanner path: {candidate}")
            return candidate
    raise ScannerDownloadError("scanner executable not found in extracted files")


def _remove_clone(clone_dir: Path) -> None:
    try:
        shutil.rmtree(clone_dir)
    except OSError as exc:
        LOGGER.warning("Failed to remove clone directory %s after error: %s", clone_dir, exc)


__all__ = ["DownloadedScanner", "download_scanner", "find_scanner_executable"]
