"""Configuration management for folderlink.

Settings come from keyword overrides, then ``FOLDERLINK_*`` environment
variables (a ``.env`` file is loaded first), then the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any

from dotenv import find_dotenv, load_dotenv

from folderlink.exceptions import ConfigError

ENV_PREFIX = "FOLDERLINK_"

DEFAULT_BASE_URL = "http://127.0.0.1:6806"
DEFAULT_ASSETS_DIR = "/assets/"
DEFAULT_BATCH_SIZE = 10
DEFAULT_MAX_CONCURRENT_SUBDIRS = 3
DEFAULT_MAX_CONCURRENT_READS = 5
DEFAULT_MAX_DEPTH = 7
DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024  # 100 MiB
DEFAULT_MAX_FILE_COUNT = 1000
DEFAULT_TIMEOUT = 60.0

DEFAULT_HIDDEN_DIRS = ("node_modules", ".git", ".vscode", ".idea")
DEFAULT_SENSITIVE_DIRS = ("/etc", "/root", "/home", "C:\\Windows", "C:\\ProgramData")

_INT_FIELDS = (
    "batch_size",
    "max_concurrent_subdirs",
    "max_concurrent_reads",
    "max_depth",
    "max_file_size",
    "max_file_count",
)


@dataclass(frozen=True)
class Settings:
    """Limits and endpoints for one uploader.

    Attributes:
        base_url: Root URL of the asset store HTTP API
        assets_dir: Destination directory identifier passed with each upload
        batch_size: Files per upload call
        max_concurrent_subdirs: Subdirectory scan workers per directory
        max_concurrent_reads: Simultaneous file reads per batch
        max_depth: Directory depth at which a subtree is cut off
        max_file_size: Files larger than this many bytes are skipped
        max_file_count: Files past this count are dropped from the scan
        timeout: HTTP timeout in seconds
        protected_root: Directory that must never be uploaded from
        hidden_dirs: Directory names always excluded from scans
        sensitive_dirs: Symlink targets under these are flagged unsafe
    """

    base_url: str = DEFAULT_BASE_URL
    assets_dir: str = DEFAULT_ASSETS_DIR
    batch_size: int = DEFAULT_BATCH_SIZE
    max_concurrent_subdirs: int = DEFAULT_MAX_CONCURRENT_SUBDIRS
    max_concurrent_reads: int = DEFAULT_MAX_CONCURRENT_READS
    max_depth: int = DEFAULT_MAX_DEPTH
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_file_count: int = DEFAULT_MAX_FILE_COUNT
    timeout: float = DEFAULT_TIMEOUT
    protected_root: str | None = None
    hidden_dirs: tuple[str, ...] = field(default=DEFAULT_HIDDEN_DIRS)
    sensitive_dirs: tuple[str, ...] = field(default=DEFAULT_SENSITIVE_DIRS)

    def __post_init__(self) -> None:
        for name in _INT_FIELDS:
            value = getattr(self, name)
            if name == "max_depth":
                if value < 0:
                    raise ConfigError(f"{name} must be >= 0, got {value}")
            elif value <= 0:
                raise ConfigError(f"{name} must be > 0, got {value}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be > 0, got {self.timeout}")

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with the non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


def _parse_int(key: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from e


def _parse_float(key: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from e


def _parse_list(raw: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_settings(*, dotenv: bool = True, **overrides: Any) -> Settings:
    """Load settings from the environment.

    Args:
        dotenv: Load a ``.env`` file from the working directory first
        **overrides: Values that take precedence over the environment

    Returns:
        A validated Settings instance

    Raises:
        ConfigError: If an environment value cannot be parsed or a limit is invalid
    """
    if dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    values: dict[str, Any] = {}
    for f in fields(Settings):
        key = ENV_PREFIX + f.name.upper()
        raw = os.getenv(key)
        if raw is None or raw == "":
            continue
        if f.name in _INT_FIELDS:
            values[f.name] = _parse_int(key, raw)
        elif f.name == "timeout":
            values[f.name] = _parse_float(key, raw)
        elif f.name in ("hidden_dirs", "sensitive_dirs"):
            values[f.name] = _parse_list(raw)
        else:
            values[f.name] = raw

    values.update({key: value for key, value in overrides.items() if value is not None})
    unknown = set(values) - {f.name for f in fields(Settings)}
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
    return Settings(**values)
