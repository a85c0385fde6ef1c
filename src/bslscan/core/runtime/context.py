# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Cancellation and deadline propagation for long-running operations."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum


class ContextState(str, Enum):
    """Describe whether an operation may keep running."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline_exceeded"


@dataclass(slots=True)
class OperationContext:
    """Carry a shared cancellation flag and an optional monotonic deadline.

    Child contexts created with :meth:`with_timeout` share the parent's
    cancellation event, so cancelling the parent stops every child, while a
    child deadline never extends the parent's.
    """

    deadline: float | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def background(cls) -> OperationContext:
        """Return a context that is never cancelled and has no deadline."""

        return cls()

    def with_timeout(self, seconds: float) -> OperationContext:
        """Return a child context expiring ``seconds`` from now.

        Args:
            seconds: Positive timeout in seconds.

        Returns:
            OperationContext: Child sharing this context's cancellation event.
        """

        candidate = time.monotonic() + seconds
        deadline = candidate if self.deadline is None else min(self.deadline, candidate)
        return OperationContext(deadline=deadline, _cancelled=self._cancelled)

    def cancel(self) -> None:
        """Signal cancellation to this context and all of its children."""

        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Return seconds left before the deadline, ``None`` when unbounded."""

        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def state(self) -> ContextState:
        """Return the current state, cancellation taking precedence."""

        if self._cancelled.is_set():
            return ContextState.CANCELLED
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return ContextState.DEADLINE_EXCEEDED
        return ContextState.ACTIVE


__all__ = ["ContextState", "OperationContext"]
