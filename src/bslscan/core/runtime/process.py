# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shell-free execution of the scanner binary with deadline and cancellation support."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import signal

# Bandit: subprocess usage is intentional; the scanner is launched from a
# validated path with an argument list and never through a shell.
import subprocess  # nosec B404
import threading
import time
from collections.abc import Mapping
from functools import partial
from pathlib import Path
from typing import IO, Final, Protocol

from ...errors import ProcessExitError, ScannerCancelledError, ScannerTimeoutError, UnexpectedScannerError
from ..models import Invocation
from ..properties import ScannerProperties
from .context import ContextState, OperationContext

LOGGER = logging.getLogger(__name__)

GRACEFUL_SHUTDOWN_SECONDS: Final[float] = 5.0
_POLL_INTERVAL_SECONDS: Final[float] = 0.1
_DRAIN_JOIN_SECONDS: Final[float] = 5.0
_READ_CHUNK_BYTES: Final[int] = 64 * 1024


class ScannerInvoker(Protocol):
    """Callable surface the retry controller needs from a process invoker."""

    def invoke(
        self,
        context: OperationContext,
        binary: Path | str,
        work_dir: Path | None,
        properties: ScannerProperties,
        timeout: float | None = None,
        *,
        env: Mapping[str, str] | None = None,
        graceful: bool = False,
    ) -> Invocation:
        """Run the scanner once and return its captured output."""
        ...


def resolve_binary(binary: Path | str) -> str:
    """Return an executable path for ``binary``.

    Args:
        binary: Absolute path, path relative to the current directory, or a
            bare command name looked up on ``PATH``.

    Returns:
        str: Absolute path suitable for :class:`subprocess.Popen` with any
            ``cwd``.

    Raises:
        FileNotFoundError: If a bare command name cannot be found on ``PATH``.
    """

    candidate = Path(binary)
    if candidate.is_absolute():
        return str(candidate)
    # The child runs in the scanner working directory, so pin relative paths now.
    if candidate.exists():
        return str(candidate.resolve())
    resolved = shutil.which(str(binary))
    if resolved is None:
        msg = f"Executable '{binary}' was not found on PATH"
        raise FileNotFoundError(msg)
    return resolved


def build_command(binary: Path | str, properties: ScannerProperties) -> list[str]:
    """Return the argument list for one scanner run.

    Args:
        binary: Scanner executable.
        properties: Properties rendered as one ``-D<key>=<value>`` flag each.

    Returns:
        list[str]: Command followed by its property flags.
    """

    return [resolve_binary(binary), *properties.as_flags()]


def terminate_process(
    process: subprocess.Popen[bytes],
    *,
    grace: float = GRACEFUL_SHUTDOWN_SECONDS,
) -> None:
    """Interrupt ``process``, wait up to ``grace`` seconds, then force-kill it.

    Args:
        process: Running child process.
        grace: Seconds to wait after the interrupt before killing.
    """

    if process.poll() is not None:
        return
    LOGGER.debug("Attempting to stop scanner process %s", process.pid)
    try:
        _send_interrupt(process)
    except OSError as exc:
        LOGGER.warning("Failed to send interrupt signal to %s: %s", process.pid, exc)
    try:
        process.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        LOGGER.warning("Graceful shutdown failed, force killing process %s", process.pid)
        process.kill()
        process.wait()
        LOGGER.debug("Scanner process %s killed", process.pid)
        return
    LOGGER.debug("Scanner process %s terminated with status %s", process.pid, process.returncode)


def _send_interrupt(process: subprocess.Popen[bytes]) -> None:
    if os.name == "nt":
        process.terminate()
        return
    process.send_signal(signal.SIGINT)


class _OutputDrain:
    """Collect a child's combined output on a background thread."""

    def __init__(self, stream: IO[bytes]) -> None:
        self._stream = stream
        self._chunks: list[bytes] = []
        self._thread = threading.Thread(target=self._run, name="scanner-output-drain", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        with self._stream:
            for chunk in iter(partial(self._stream.read, _READ_CHUNK_BYTES), b""):
                self._chunks.append(chunk)

    def join(self, timeout: float = _DRAIN_JOIN_SECONDS) -> str:
        """Wait for the drain to finish and return the decoded output."""

        self._thread.join(timeout)
        if self._thread.is_alive():
            # A grandchild still holds the pipe open; keep what has been read.
            LOGGER.warning("Scanner output stream still open after process exit; output may be truncated")
        return b"".join(list(self._chunks)).decode("utf-8", errors="replace")


class ProcessInvoker:
    """Launch the scanner binary and capture its combined output."""

    def __init__(self, *, poll_interval: float = _POLL_INTERVAL_SECONDS) -> None:
        self._poll_interval = poll_interval

    def invoke(
        self,
        context: OperationContext,
        binary: Path | str,
        work_dir: Path | None,
        properties: ScannerProperties,
        timeout: float | None = None,
        *,
        env: Mapping[str, str] | None = None,
        graceful: bool = False,
    ) -> Invocation:
        """Run the scanner once.

        Args:
            context: Parent operation context supplying cancellation.
            binary: Scanner executable.
            work_dir: Working directory for the child process.
            properties: Properties rendered as ``-D`` flags.
            timeout: Seconds before the run is terminated; ``None`` or ``0``
                leaves the run bounded only by ``context``.
            env: Variables layered over :data:`os.environ`.
            graceful: Interrupt first and force-kill after
                :data:`GRACEFUL_SHUTDOWN_SECONDS` instead of killing at once.

        Returns:
            Invocation: Captured output of a run that exited with status ``0``.

        Raises:
            ScannerTimeoutError: The deadline elapsed before the scanner exited.
            ScannerCancelledError: ``context`` was cancelled.
            ProcessExitError: The scanner exited with a non-zero status.
            UnexpectedScannerError: The scanner could not be started.
        """

        exec_context = context.with_timeout(timeout) if timeout and timeout > 0 else context
        try:
            command = build_command(binary, properties)
        except FileNotFoundError as exc:
            raise UnexpectedScannerError(str(exc)) from exc
        merged_env = os.environ.copy()
        if env:
            merged_env.update(env)

        LOGGER.debug("Starting scanner: %s (cwd=%s, timeout=%s)", shlex.join(command), work_dir, timeout)
        started = time.monotonic()
        try:
            # Bandit: argument list built from validated configuration, no shell expansion.
            process = subprocess.Popen(  # nosec B603
                command,
                cwd=str(work_dir) if work_dir is not None else None,
                env=merged_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as exc:
            raise UnexpectedScannerError(f"failed to start scanner '{command[0]}': {exc}") from exc

        if process.stdout is None:  # pragma: no cover - PIPE always yields a stream
            raise UnexpectedScannerError("scanner output stream is unavailable")
        drain = _OutputDrain(process.stdout)
        drain.start()
        state = self._wait(process, exec_context, graceful=graceful)
        output = drain.join()
        duration = time.monotonic() - started

        if state is ContextState.CANCELLED:
            raise ScannerCancelledError(output)
        if state is ContextState.DEADLINE_EXCEEDED:
            raise ScannerTimeoutError(output, timeout)
        if process.returncode != 0:
            raise ProcessExitError(process.returncode, output)
        LOGGER.debug("Scanner exited cleanly in %.2fs", duration)
        return Invocation(output=output, exit_code=0, duration=duration)

    def _wait(
        self,
        process: subprocess.Popen[bytes],
        context: OperationContext,
        *,
        graceful: bool,
    ) -> ContextState:
        """Block until ``process`` exits or ``context`` stops being active."""

        while process.poll() is None:
            state = context.state()
            if state is not ContextState.ACTIVE:
                LOGGER.warning("Stopping scanner process %s: %s", process.pid, state.value)
                if graceful:
                    terminate_process(process)
                else:
                    process.kill()
                    process.wait()
                return state
            wait_for = self._poll_interval
            remaining = context.remaining()
            if remaining is not None:
                wait_for = max(min(wait_for, remaining), 0.001)
            try:
                process.wait(timeout=wait_for)
            except subprocess.TimeoutExpired:
                continue
        return ContextState.ACTIVE


__all__ = [
    "GRACEFUL_SHUTDOWN_SECONDS",
    "ProcessInvoker",
    "ScannerInvoker",
    "build_command",
    "resolve_binary",
    "terminate_process",
]
