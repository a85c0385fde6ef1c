# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Heuristic repair of BSL sources that break the scanner's tokenizer.

The repairs are text heuristics, not grammar-driven transformations. The
allow-listed character set in particular drops anything outside letters,
digits, whitespace and common punctuation, so exotic but valid characters are
lost on rewrite. A ``.backup`` sibling holding the original bytes is always
written before a file is changed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from ..errors import BslFileNotFoundError, BslRepairError

LOGGER = logging.getLogger(__name__)

BSL_SUFFIXES: Final[frozenset[str]] = frozenset({".bsl", ".os"})
BACKUP_SUFFIX: Final[str] = ".backup"
BOM: Final[str] = "\ufeff"
NBSP: Final[str] = "\u00a0"
COMMENT_PREFIX: Final[str] = "//"

_ALLOWED_PUNCTUATION: Final[str] = r"()\[\]{}.,;:=+\-*/\\|&<>!@#$%^~`\"'_"
DISALLOWED_CHAR_PATTERN: Final[re.Pattern[str]] = re.compile(rf"[^\w\t\f\r\n {_ALLOWED_PUNCTUATION}]")
GLUED_COMMENT_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?<=[^\s/])//")
KEYWORD_PATTERN: Final[re.Pattern[str]] = re.compile(r"\b(процедура|функция)\b", re.IGNORECASE)
CANONICAL_KEYWORDS: Final[dict[str, str]] = {"процедура": "Процедура", "функция": "Функция"}


@dataclass(frozen=True, slots=True)
class RepairReport:
    """Outcome of repairing one file.

    Attributes:
        path: Repaired file.
        fixes: Names of the passes that changed the content.
        backup: Backup written before the rewrite, ``None`` when unchanged.
    """

    path: Path
    fixes: tuple[str, ...] = ()
    backup: Path | None = None

    @property
    def changed(self) -> bool:
        return self.backup is not None


@dataclass(slots=True)
class ValidationReport:
    """Partition of BSL sources found under a directory."""

    valid: list[Path] = field(default_factory=list)
    problematic: list[Path] = field(default_factory=list)


TextPass = Callable[[str], str]


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n")


def replace_nbsp(text: str) -> str:
    return text.replace(NBSP, " ")


def strip_bom(text: str) -> str:
    return text.removeprefix(BOM)


def strip_trailing_whitespace(text: str) -> str:
    return "\n".join(line.rstrip(" \t") for line in text.split("\n"))


def ensure_final_newline(text: str) -> str:
    """Terminate ``text`` with exactly one newline."""

    return text.rstrip("\n") + "\n"


def repair_line(line: str) -> str:
    """Apply the per-line syntax heuristics to ``line``.

    Disallowed characters are dropped, a ``//`` glued to the preceding token
    gets a separating space, an odd number of double quotes is balanced by a
    trailing quote and the ``процедура``/``функция`` keywords are capitalised.
    """

    line = DISALLOWED_CHAR_PATTERN.sub("", line)
    if COMMENT_PREFIX in line:
        line = GLUED_COMMENT_PATTERN.sub(" //", line)
    if line.count('"') % 2:
        line += '"'
    return KEYWORD_PATTERN.sub(lambda match: CANONICAL_KEYWORDS[match.group(1).lower()], line)


def repair_syntax(text: str) -> str:
    return "\n".join(repair_line(line) for line in text.split("\n"))


# Order matters: the syntax pass may leave trailing blanks behind, so the
# whitespace passes run after it.
REPAIR_PASSES: Final[tuple[tuple[str, TextPass], ...]] = (
    ("line-endings", normalize_line_endings),
    ("non-breaking-spaces", replace_nbsp),
    ("byte-order-mark", strip_bom),
    ("syntax", repair_syntax),
    ("trailing-whitespace", strip_trailing_whitespace),
    ("final-newline", ensure_final_newline),
)


def _is_comment(line: str) -> bool:
    return line.strip().startswith(COMMENT_PREFIX)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def detect_problems(text: str) -> list[str]:
    """Return human-readable reasons why ``text`` may break tokenization."""

    problems: list[str] = []
    if "\r\n" in text:
        problems.append("Windows line endings")
    if text.startswith(BOM):
        problems.append("byte-order mark")
    if NBSP in text:
        problems.append("non-breaking space")
    for number, line in enumerate(text.split("\n"), start=1):
        if not line.strip() or _is_comment(line):
            continue
        if line.count('"') % 2:
            problems.append(f"unbalanced quotes on line {number}")
            break
    match = DISALLOWED_CHAR_PATTERN.search(text)
    if match is not None:
        problems.append(f"disallowed character U+{ord(match.group(0)):04X}")
    return problems


class BslFileDoctor:
    """Detect and repair BSL files that trip the scanner's tokenizer."""

    def diagnose(self, path: Path) -> list[str]:
        """Return the problems found in ``path`` without modifying it.

        An unreadable file is reported as a single problem.
        """

        try:
            data = path.read_bytes()
        except OSError as exc:
            return [f"unreadable: {exc.strerror or exc}"]
        return detect_problems(_decode(data))

    def is_problematic(self, path: Path) -> bool:
        """Return ``True`` when ``path`` shows any known tokenization hazard."""

        return bool(self.diagnose(path))

    def fix(self, path: Path) -> RepairReport:
        """Repair ``path`` in place.

        Args:
            path: BSL source to repair.

        Returns:
            RepairReport: Passes applied and the backup location, if any.

        Raises:
            BslFileNotFoundError: If ``path`` does not exist.
            BslRepairError: If the file cannot be read, backed up or rewritten.
        """

        if not path.exists():
            raise BslFileNotFoundError(path)
        LOGGER.info("Attempting to fix BSL tokenization issues in %s", path)
        try:
            original = path.read_bytes()
        except OSError as exc:
            raise BslRepairError(path, f"read failed: {exc}") from exc

        text = _decode(original)
        content = text
        fixes: list[str] = []
        for name, repair in REPAIR_PASSES:
            updated = repair(content)
            if updated != content:
                fixes.append(name)
                content = updated

        if content == text and content.encode("utf-8") == original:
            LOGGER.debug("No BSL fixes required for %s", path)
            return RepairReport(path=path)

        backup = path.with_name(path.name + BACKUP_SUFFIX)
        try:
            backup.write_bytes(original)
        except OSError as exc:
            raise BslRepairError(path, f"backup failed: {exc}") from exc
        try:
            path.write_text(content, encoding="utf-8", newline="")
        except OSError as exc:
            raise BslRepairError(path, f"write failed: {exc}") from exc
        LOGGER.info("Applied BSL fixes to %s: %s", path, ", ".join(fixes) or "re-encoded as UTF-8")
        return RepairReport(path=path, fixes=tuple(fixes), backup=backup)

    def find_and_validate(self, root: Path) -> ValidationReport:
        """Partition every ``.bsl``/``.os`` file below ``root``.

        Raises:
            NotADirectoryError: If ``root`` is not a directory.
        """

        if not root.is_dir():
            msg = f"BSL source root is not a directory: {root}"
            raise NotADirectoryError(msg)
        report = ValidationReport()
        for path in iter_bsl_files(root):
            if self.is_problematic(path):
                report.problematic.append(path)
            else:
                report.valid.append(path)
        return report

    def sweep(self, root: Path) -> list[RepairReport]:
        """Repair every problematic file below ``root``; failures are logged."""

        reports: list[RepairReport] = []
        for path in self.find_and_validate(root).problematic:
            try:
                reports.append(self.fix(path))
            except (BslFileNotFoundError, BslRepairError) as exc:
                LOGGER.error("Failed to fix BSL file during preprocessing: %s", exc)
        return reports


def iter_bsl_files(root: Path) -> Iterable[Path]:
    """Yield BSL sources below ``root`` in a stable order."""

    for path in sorted(root.rglob("*")):
        if path.suffix.lower() in BSL_SUFFIXES and path.is_file():
            yield path


__all__ = [
    "BslFileDoctor",
    "RepairReport",
    "ValidationReport",
    "detect_problems",
    "iter_bsl_files",
    "repair_line",
]
