# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Scanner configuration model and its layered TOML loader.

Sources are merged in increasing precedence: built-in defaults, the
``[tool.bslscan]`` table of ``pyproject.toml``, a ``bslscan.toml`` file (or an
explicit configuration path) and finally caller overrides such as CLI flags.
``$VAR`` and ``${VAR}`` references in string values are expanded from the
environment; unknown variables are left untouched.
"""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ScannerConfigError

PYPROJECT_FILENAME: Final[str] = "pyproject.toml"
CONFIG_FILENAME: Final[str] = "bslscan.toml"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "bslscan"
DEFAULT_SCANNER_URL: Final[str] = "https://github.com/SonarSource/sonar-scanner-cli.git"

_ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$(\w+)|\$\{([^}]+)\}")
_PATH_FIELDS: Final[tuple[str, ...]] = ("binary_path", "work_dir", "temp_dir")


class ScannerConfig(BaseModel):
    """Settings consumed by :class:`bslscan.scanner.engine.ScannerEngine`."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    binary_path: Path | None = None
    work_dir: Path | None = None
    temp_dir: Path | None = None
    java_opts: str = ""
    properties: dict[str, str] = Field(default_factory=dict)
    timeout: float = Field(default=0.0, ge=0.0)
    scanner_url: str = DEFAULT_SCANNER_URL
    scanner_version: str = ""
    preprocess: bool = True

    @field_validator("properties", mode="before")
    @classmethod
    def _coerce_properties(cls, value: Any) -> dict[str, str]:
        """Return ``value`` with every scalar rendered as scanner-ready text.

        Raises:
            ValueError: If *value* is not a table of scalars.
        """

        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("properties must be a table of key/value pairs")
        coerced: dict[str, str] = {}
        for key, item in value.items():
            if isinstance(item, (Mapping, list)):
                raise ValueError(f"property '{key}' must be a scalar value")
            coerced[str(key)] = str(item).lower() if isinstance(item, bool) else str(item)
        return coerced


def load_config(
    root: Path,
    *,
    config_file: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> ScannerConfig:
    """Build a :class:`ScannerConfig` for the project rooted at ``root``.

    Args:
        root: Project directory; relative paths in configuration files are
            resolved against it and it becomes the default working directory.
        config_file: Explicit configuration file replacing ``bslscan.toml``.
        overrides: Highest-precedence values, typically from CLI flags.
        env: Environment used for variable expansion, defaults to
            :data:`os.environ`.

    Returns:
        ScannerConfig: Validated configuration.

    Raises:
        ScannerConfigError: If a document is malformed, an explicit file is
            missing or the merged values fail validation.
    """

    root = root.resolve()
    environment = os.environ if env is None else env
    merged: dict[str, Any] = {"work_dir": root}
    merged = _deep_merge(merged, _load_pyproject(root / PYPROJECT_FILENAME))
    if config_file is not None:
        if not config_file.is_file():
            raise ScannerConfigError("config", f"configuration file not found: {config_file}")
        merged = _deep_merge(merged, _read_toml(config_file))
    else:
        merged = _deep_merge(merged, _read_toml(root / CONFIG_FILENAME))
    merged = _expand_env(merged, environment)
    merged = _resolve_paths(merged, root)
    if overrides:
        merged = _deep_merge(merged, {key: value for key, value in overrides.items() if value is not None})

    try:
        return ScannerConfig.model_validate(merged)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ())) or "config"
        raise ScannerConfigError(field, error.get("msg", str(exc))) from exc


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ScannerConfigError("config", f"{path} is not valid TOML: {exc}") from exc
    except OSError as exc:
        raise ScannerConfigError("config", f"unable to read {path}: {exc}") from exc


def _load_pyproject(path: Path) -> dict[str, Any]:
    tool_section = _read_toml(path).get(PYPROJECT_TOOL_KEY)
    if not isinstance(tool_section, Mapping):
        return {}
    section = tool_section.get(PYPROJECT_SECTION_KEY)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ScannerConfigError("config", f"[tool.{PYPROJECT_SECTION_KEY}] in {path} must be a table")
    return dict(section)


def _resolve_paths(data: Mapping[str, Any], root: Path) -> dict[str, Any]:
    resolved = dict(data)
    for key in _PATH_FIELDS:
        value = resolved.get(key)
        if value in (None, ""):
            resolved.pop(key, None)
            continue
        path = Path(value)
        # A bare executable name is looked up on PATH at run time.
        if key == "binary_path" and len(path.parts) == 1:
            resolved[key] = path
            continue
        resolved[key] = path if path.is_absolute() else root / path
    return resolved


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _expand_env(data: Mapping[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    return {key: _expand_env_value(value, env) for key, value in data.items()}


def _expand_env_value(value: Any, env: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return _ENV_VAR_PATTERN.sub(lambda match: _lookup(match, env), value)
    if isinstance(value, Mapping):
        return {key: _expand_env_value(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_value(item, env) for item in value]
    return value


def _lookup(match: re.Match[str], env: Mapping[str, str]) -> str:
    key = match.group(1) or match.group(2)
    return env.get(key, match.group(0))


__all__ = ["CONFIG_FILENAME", "ScannerConfig", "load_config"]
