# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Per-run ledger of BSL files excluded from subsequent scanner attempts."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import PurePath

from ..core.properties import EXCLUSIONS_PROPERTY, ScannerProperties


class ExclusionLedger:
    """Ordered set of excluded paths owned by one engine run.

    Args:
        base: Value of ``sonar.exclusions`` supplied by the caller; it is kept
            as the leading entry of every projection.
    """

    __slots__ = ("_base", "_files")

    def __init__(self, base: str = "") -> None:
        self._base = base.strip()
        self._files: list[str] = []

    @property
    def base(self) -> str:
        return self._base

    @property
    def files(self) -> tuple[str, ...]:
        """Return the excluded paths in insertion order."""

        return tuple(self._files)

    def add(self, path: str) -> bool:
        """Record ``path`` unless already present.

        Returns:
            bool: ``True`` when ``path`` was newly added.
        """

        if not path or path in self._files:
            return False
        self._files.append(path)
        return True

    def add_many(self, paths: Iterable[str]) -> list[str]:
        """Record every path in ``paths`` and return the newly added ones."""

        return [path for path in paths if self.add(path)]

    def patterns(self) -> list[str]:
        """Return the exclusion globs, caller base first.

        Each file contributes ``**/<basename>`` and, when relative, the path
        itself so the scanner matches it from the project root.
        """

        patterns: list[str] = [self._base] if self._base else []
        for path in self._files:
            pure = PurePath(path)
            patterns.append(f"**/{pure.name}")
            if not pure.is_absolute():
                patterns.append(path)
        return patterns

    def render(self) -> str:
        """Return the comma-joined ``sonar.exclusions`` value."""

        return ",".join(self.patterns())

    def apply(self, properties: ScannerProperties) -> None:
        """Write the projection into ``properties``.

        The property is left untouched while no file has been excluded so the
        caller's original value, or its absence, is preserved.
        """

        if not self._files:
            return
        properties.set(EXCLUSIONS_PROPERTY, self.render())

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self) -> str:
        return f"ExclusionLedger(base={self._base!r}, files={self._files!r})"


__all__ = ["ExclusionLedger"]
