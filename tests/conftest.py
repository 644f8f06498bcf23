"""Pytest fixtures for folderlink tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from helpers import FakeTransport, make_tree

from folderlink import (
    CancellationToken,
    DirectoryScanner,
    FailureLog,
    NameCache,
    PathValidator,
    Settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep FOLDERLINK_* variables from the host out of the tests."""
    for key in list(os.environ):
        if key.startswith("FOLDERLINK_"):
            monkeypatch.delenv(key)


@pytest.fixture
def settings() -> Settings:
    """Default settings."""
    return Settings()


@pytest.fixture
def failures() -> FailureLog:
    return FailureLog()


@pytest.fixture
def cancel_token() -> CancellationToken:
    return CancellationToken()


@pytest.fixture
def transport() -> FakeTransport:
    """Transport that accepts every file."""
    return FakeTransport()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A protected workspace directory next to the upload sources."""
    path = tmp_path / "workspace"
    make_tree(path, {"data": {"note.sy": "{}"}})
    return path


@pytest.fixture
def sample_folder(tmp_path: Path) -> Path:
    """A small folder with nested files, hidden entries and a name collision."""
    return make_tree(
        tmp_path / "photos",
        {
            "a.txt": "root a",
            "b.md": "root b",
            ".hidden": "secret",
            "~lock.txt": "lock",
            "node_modules": {"pkg.js": "x"},
            "sub": {"a.txt": "sub a", "c.png": b"\x89PNG"},
            "empty": {},
        },
    )


@pytest.fixture
def make_scanner(failures: FailureLog, cancel_token: CancellationToken):
    """Factory for scanners sharing the test's failure log and cancel token."""

    def _make(settings: Settings | None = None, protected_root: Path | None = None) -> DirectoryScanner:
        return DirectoryScanner(
            PathValidator(protected_root),
            settings or Settings(),
            failures=failures,
            cancel_token=cancel_token,
            names=NameCache(),
        )

    return _make
