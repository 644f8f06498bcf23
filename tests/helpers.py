"""Shared test helpers for folderlink tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from folderlink.exceptions import UploadError
from folderlink.models import UploadFile


class FakeTransport:
    """In-memory upload and insertion collaborator.

    Every submitted name is accepted and mapped to ``/assets/<name>`` unless
    it appears in ``reject``. Batches whose 1-based number is in
    ``fail_batches`` raise UploadError.
    """

    def __init__(
        self,
        *,
        reject: Sequence[str] = (),
        fail_batches: Sequence[int] = (),
        on_upload: Callable[[int, Sequence[UploadFile]], Any] | None = None,
        insert_error: Exception | None = None,
    ) -> None:
        self.reject = set(reject)
        self.fail_batches = set(fail_batches)
        self.on_upload = on_upload
        self.insert_error = insert_error
        self.calls: list[tuple[str, list[UploadFile]]] = []
        self.inserted: list[tuple[str, str]] = []

    async def upload_assets(self, assets_dir: str, files: Sequence[UploadFile]) -> dict[str, str]:
        self.calls.append((assets_dir, list(files)))
        number = len(self.calls)
        if self.on_upload is not None:
            self.on_upload(number, files)
        if number in self.fail_batches:
            raise UploadError("upload rejected", code=500)
        return {f.name: f"/assets/{f.name}" for f in files if f.name not in self.reject}

    async def insert_markdown(self, markdown: str, anchor_id: str) -> None:
        if self.insert_error is not None:
            raise self.insert_error
        self.inserted.append((markdown, anchor_id))

    @property
    def uploaded_names(self) -> list[str]:
        return [f.name for _, files in self.calls for f in files]


def make_tree(root: Path, layout: dict[str, Any]) -> Path:
    """Create files and folders under ``root``.

    Keys are names; a dict value makes a directory, bytes or str a file.
    """
    root.mkdir(parents=True, exist_ok=True)
    for name, value in layout.items():
        target = root / name
        if isinstance(value, dict):
            make_tree(target, value)
        elif isinstance(value, bytes):
            target.write_bytes(value)
        else:
            target.write_text(value)
    return root


def nested_dirs(root: Path, levels: int) -> Path:
    """Create ``levels`` nested directories under ``root``, each with one file."""
    current = root
    for i in range(levels):
        current = current / f"d{i + 1}"
        current.mkdir(parents=True)
        (current / f"f{i + 1}.txt").write_text(str(i))
    return current
