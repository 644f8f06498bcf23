"""Upload names: basename memoization and per-batch collision renaming."""

from __future__ import annotations

import os
import threading
from collections.abc import Iterable
from pathlib import Path

from folderlink.models import RenameMap


class NameCache:
    """Basename-by-path memo owned by a single operation.

    Cleared when the operation starts and again when it ends.
    """

    def __init__(self) -> None:
        self._names: dict[Path, str] = {}
        self._lock = threading.Lock()

    def get(self, path: Path | str) -> str:
        key = Path(path)
        with self._lock:
            name = self._names.get(key)
            if name is None:
                name = key.name
                self._names[key] = name
            return name

    def clear(self) -> None:
        with self._lock:
            self._names.clear()

    def __len__(self) -> int:
        return len(self._names)


def upload_names(paths: Iterable[Path | str], names: NameCache | None = None) -> list[str]:
    """Compute collision-free upload names for one batch, by position.

    The first path with a given basename keeps it. The N-th later path with
    the same basename is renamed to ``{stem}_{N}{ext}``, splitting at the
    last extension boundary.

    Example:
        >>> upload_names(["a.txt", "sub/a.txt", "a.txt", "b.txt"])
        ['a.txt', 'a_1.txt', 'a_2.txt', 'b.txt']
    """
    seen: dict[str, int] = {}
    used: set[str] = set()
    result: list[str] = []
    for raw in paths:
        path = Path(raw)
        original = names.get(path) if names is not None else path.name
        count = seen.get(original, 0)
        candidate = original
        if count or original in used:
            stem, ext = os.path.splitext(original)
            count = max(count, 1)
            candidate = f"{stem}_{count}{ext}"
            # a literal file may already carry a generated name
            while candidate in used:
                count += 1
                candidate = f"{stem}_{count}{ext}"
        seen[original] = count + 1
        used.add(candidate)
        result.append(candidate)
    return result


def disambiguate(paths: Iterable[Path | str], names: NameCache | None = None) -> RenameMap:
    """Map each renamed path of one batch to its upload name.

    Paths that keep their basename are absent from the result. The map is
    keyed by path, so every path must appear once; use ``upload_names`` for
    positional input that may repeat a path.

    Raises:
        ValueError: If a path appears more than once
    """
    ordered = [Path(p) for p in paths]
    if len(set(ordered)) != len(ordered):
        raise ValueError("disambiguate() needs distinct paths")
    renames: RenameMap = {}
    for path, name in zip(ordered, upload_names(ordered, names)):
        if name != (names.get(path) if names is not None else path.name):
            renames[path] = name
    return renames
