# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for console output helpers and logging setup."""

from __future__ import annotations

import logging

import pytest
from rich.logging import RichHandler

from bslscan.core import logging as console_logging
from bslscan.core.logging import configure_logging, emoji, fail, ok


def test_public_helpers_are_the_used_surface() -> None:
    assert sorted(console_logging.__all__) == ["configure_logging", "emoji", "fail", "info", "ok", "warn"]


def test_configure_logging_installs_single_rich_handler() -> None:
    configure_logging(verbose=True, use_color=False)
    configure_logging(verbose=False, use_color=False)

    logger = logging.getLogger("bslscan")
    handlers = [handler for handler in logger.handlers if isinstance(handler, RichHandler)]
    assert len(handlers) == 1
    assert logger.level == logging.INFO
    assert logger.propagate is False


def test_status_lines_respect_emoji_flag(capsys: pytest.CaptureFixture[str]) -> None:
    ok("scan finished", use_emoji=False, use_color=False)
    fail("scan failed", use_emoji=True, use_color=False)

    out = capsys.readouterr().out
    assert "scan finished" in out
    assert "✅" not in out
    assert "❌ scan failed" in out
    assert emoji("✅", False) == ""
