# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import os
import stat
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

_SCANNER_TEMPLATE = """\
import os
import sys
import time

sys.stdout.write({output!r})
sys.stdout.write("ARGS " + " ".join(sys.argv[1:]) + "\\n")
sys.stdout.write("JAVA_OPTS=" + os.environ.get("JAVA_OPTS", "") + "\\n")
sys.stdout.flush()
sys.stderr.write("WARN: from stderr\\n")
sys.stderr.flush()
time.sleep({sleep!r})
sys.exit({exit_code!r})
"""

FakeScannerFactory = Callable[..., Path]


@pytest.fixture
def fake_scanner(tmp_path: Path) -> FakeScannerFactory:
    """Return a factory writing an executable that mimics the scanner.

    The executable prints ``output``, echoes its arguments and ``JAVA_OPTS``,
    writes one line to stderr, sleeps ``sleep`` seconds and exits with
    ``exit_code``.
    """

    if os.name == "nt":
        pytest.skip("fake scanner relies on a POSIX shell wrapper")

    def _make(output: str = "", exit_code: int = 0, *, sleep: float = 0.0, name: str = "sonar-scanner") -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        script = bin_dir / f"{name}.py"
        script.write_text(_SCANNER_TEMPLATE.format(output=output, sleep=sleep, exit_code=exit_code), encoding="utf-8")
        wrapper = bin_dir / name
        wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n', encoding="utf-8")
        wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return wrapper

    return _make


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Return an empty project directory used as the scanner working directory."""

    root = tmp_path / "project"
    root.mkdir()
    return root
