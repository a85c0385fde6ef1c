# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Mutable store of ``sonar.*`` properties passed to the scanner."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Final

PROPERTY_FLAG_PREFIX: Final[str] = "-D"
EXCLUSIONS_PROPERTY: Final[str] = "sonar.exclusions"


class ScannerProperties:
    """Key/value mapping rendered as ``-D<key>=<value>`` scanner flags."""

    __slots__ = ("_values",)

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = {}
        if initial:
            self.update(initial)

    def get(self, key: str) -> str:
        """Return the value stored for ``key`` or an empty string."""

        return self._values.get(key, "")

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

        self._values[key] = str(value)

    def update(self, values: Mapping[str, str]) -> None:
        """Merge ``values`` into the store; later writes win."""

        for key, value in values.items():
            self.set(key, value)

    def remove(self, key: str) -> None:
        """Drop ``key`` when present."""

        self._values.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Return a detached copy of the stored properties."""

        return dict(self._values)

    def as_flags(self) -> list[str]:
        """Render the properties as scanner command-line flags.

        Flags are sorted by key so logged command lines are reproducible; the
        scanner itself does not depend on their order.
        """

        return [f"{PROPERTY_FLAG_PREFIX}{key}={value}" for key, value in sorted(self._values.items())]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ScannerProperties({self._values!r})"


__all__ = ["EXCLUSIONS_PROPERTY", "PROPERTY_FLAG_PREFIX", "ScannerProperties"]
