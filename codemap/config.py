"""Scan configuration, read from ``.codemap.yml`` at the repository root."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from codemap.errors import ConfigError

CONFIG_FILE = ".codemap.yml"


@dataclass
class ScanConfig:
    """Which files a scan covers."""

    patterns: list[str] = field(default_factory=lambda: ["**/*"])
    include_ignored: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=lambda: [".codemap/**"])


def load_config(repo_root: str | Path) -> ScanConfig:
    """Load ``.codemap.yml`` from ``repo_root``, or defaults if it is absent.

    Example file::

        patterns:
          - "src/**"
          - "docs/**/*.md"
        include_ignored:
          - "generated/models/**"
        exclude:
          - "**/*.min.js"
    """
    path = Path(repo_root) / CONFIG_FILE
    if not path.is_file():
        return ScanConfig()

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(path, f"YAML parse error: {e}") from e

    if data is None:
        return ScanConfig()
    if not isinstance(data, dict):
        raise ConfigError(path, "top level must be a mapping")

    defaults = ScanConfig()
    return ScanConfig(
        patterns=_string_list(path, data, "patterns", defaults.patterns),
        include_ignored=_string_list(path, data, "include_ignored", defaults.include_ignored),
        exclude=_string_list(path, data, "exclude", defaults.exclude),
    )


def _string_list(path: Path, data: dict, key: str, default: list[str]) -> list[str]:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(path, f"'{key}' must be a string or a list of strings")
    return value
