"""Recursive directory scanning into a tree of nodes."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path

from folderlink.cancellation import CancellationToken
from folderlink.config import Settings
from folderlink.models import ErrorKind, FailureLog, NodeKind, ScanResult, TreeNode
from folderlink.names import NameCache
from folderlink.validator import PathValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Entry:
    """What one stat pass learned about a directory entry."""

    name: str
    path: Path
    kind: NodeKind
    size: int = 0
    identity: tuple[int, int] | None = None
    link_target: str | None = None
    error: OSError | None = None


class DirectoryScanner:
    """Walks a directory into a ``ScanResult``.

    Symlinks are never followed; each one is recorded as an inert node
    holding its raw target. Subdirectories of one directory are scanned by
    a small pool of workers. The visited-identity set and the file counter
    are shared by all workers and guarded by locks.
    """

    def __init__(
        self,
        validator: PathValidator,
        settings: Settings | None = None,
        *,
        failures: FailureLog | None = None,
        cancel_token: CancellationToken | None = None,
        names: NameCache | None = None,
    ) -> None:
        self._validator = validator
        self._settings = settings or Settings()
        self.failures = failures if failures is not None else FailureLog()
        self._cancel = cancel_token or CancellationToken()
        self._names = names or NameCache()
        self._hidden = frozenset(self._settings.hidden_dirs)

        self._visited: set[tuple[int, int]] = set()
        self._visited_lock = threading.Lock()
        self._file_count = 0
        self._count_lock = threading.Lock()
        self._ceiling_logged = False

    @property
    def file_count(self) -> int:
        return self._file_count

    def include(self, name: str) -> bool:
        """Name filter: no dotfiles, no ``~`` files, no tooling directories."""
        if name.startswith(".") or name.startswith("~"):
            return False
        return name not in self._hidden

    async def scan(self, path: str | Path, depth: int = 0) -> ScanResult:
        """Scan ``path`` recursively.

        Args:
            path: Directory to scan
            depth: Depth of ``path`` below the scan root

        Returns:
            ScanResult with the directory's children in listing order. An
            empty result when cancelled; ``error=DEPTH_EXCEEDED`` when
            ``depth`` reached the configured maximum.

        Raises:
            OSError: If ``path`` itself cannot be listed
        """
        if self._cancel.cancelled:
            return ScanResult()
        if depth >= self._settings.max_depth:
            return ScanResult(error=ErrorKind.DEPTH_EXCEEDED)

        root = Path(path)
        if depth == 0:
            st = await asyncio.to_thread(os.stat, root)
            self._mark_visited((st.st_dev, st.st_ino))

        entries = await asyncio.to_thread(self._read_directory, root)

        # one slot per entry keeps listing order independent of completion order
        slots: list[tuple[TreeNode, list[Path]] | None] = [None] * len(entries)
        subdirs: list[tuple[int, _Entry]] = []

        for index, entry in enumerate(entries):
            if entry.error is not None:
                self.failures.append(entry.path, ErrorKind.UNREADABLE)
                logger.warning(f"Cannot read {entry.name}: {entry.error}")
                continue

            if entry.kind is NodeKind.FILE:
                slots[index] = self._file_slot(entry)
            elif entry.kind is NodeKind.SYMLINK:
                safe = self._validator.symlink_target_is_safe(entry.link_target or "", root)
                if not safe:
                    logger.warning(f"Symlink points to an unsafe location: {entry.name}")
                slots[index] = (TreeNode.symlink(entry.name, entry.link_target, safe), [])
            elif self._validator.is_protected(entry.path):
                logger.warning(f"Skipping folder inside the workspace directory: {entry.name}")
            elif entry.identity is not None and not self._mark_visited(entry.identity):
                logger.warning(f"Directory cycle detected, skipping: {entry.name}")
            else:
                subdirs.append((index, entry))

        await self._scan_subdirectories(subdirs, slots, depth)

        result = ScanResult()
        for slot in slots:
            if slot is None:
                continue
            node, paths = slot
            result.tree.append(node)
            result.file_paths.extend(paths)
        return result

    async def _scan_subdirectories(
        self,
        subdirs: list[tuple[int, _Entry]],
        slots: list[tuple[TreeNode, list[Path]] | None],
        depth: int,
    ) -> None:
        if not subdirs:
            return
        cursor = iter(subdirs)

        async def worker() -> None:
            for index, entry in cursor:
                if self._cancel.cancelled:
                    return
                slots[index] = await self.scan_child(entry.path, entry.name, depth + 1)

        workers = min(self._settings.max_concurrent_subdirs, len(subdirs))
        await asyncio.gather(*(worker() for _ in range(workers)))

    async def scan_child(
        self, path: Path, name: str, depth: int
    ) -> tuple[TreeNode, list[Path]] | None:
        """Scan one subdirectory and wrap it as a directory node."""
        try:
            result = await self.scan(path, depth)
        except OSError as e:
            self.failures.append(path, ErrorKind.UNREADABLE)
            logger.warning(f"Skipping folder {name}: {e}")
            return None

        if result.error is ErrorKind.DEPTH_EXCEEDED:
            logger.warning(f"Directory depth limit ({self._settings.max_depth}) reached: {path}")
            return TreeNode.placeholder(name), []
        return TreeNode.directory(name, result.tree), result.file_paths

    def _file_slot(self, entry: _Entry) -> tuple[TreeNode, list[Path]] | None:
        if entry.size > self._settings.max_file_size:
            size_mb = entry.size / 1024 / 1024
            logger.warning(f"File too large ({size_mb:.1f}MB), skipped: {entry.name}")
            self.failures.append(entry.path, ErrorKind.TOO_LARGE)
            return None
        if not self._claim_file_slot():
            return None
        name = self._names.get(entry.path)
        return TreeNode.file(name, entry.path), [entry.path]

    def _claim_file_slot(self) -> bool:
        with self._count_lock:
            if self._file_count >= self._settings.max_file_count:
                if not self._ceiling_logged:
                    self._ceiling_logged = True
                    logger.warning(
                        f"File limit ({self._settings.max_file_count}) reached, "
                        "remaining files are ignored"
                    )
                return False
            self._file_count += 1
            return True

    def _mark_visited(self, identity: tuple[int, int]) -> bool:
        """Add ``identity`` to the visited set; False if it was already there."""
        with self._visited_lock:
            if identity in self._visited:
                return False
            self._visited.add(identity)
            return True

    def _read_directory(self, path: Path) -> list[_Entry]:
        """List and stat the entries of ``path`` that pass the name filter."""
        entries: list[_Entry] = []
        with os.scandir(path) as it:
            for dir_entry in it:
                if not self.include(dir_entry.name):
                    continue
                entry_path = Path(dir_entry.path)
                try:
                    if dir_entry.is_symlink():
                        entries.append(
                            _Entry(
                                dir_entry.name,
                                entry_path,
                                NodeKind.SYMLINK,
                                link_target=os.readlink(dir_entry.path),
                            )
                        )
                    elif dir_entry.is_file(follow_symlinks=False):
                        st = dir_entry.stat(follow_symlinks=False)
                        entries.append(
                            _Entry(dir_entry.name, entry_path, NodeKind.FILE, size=st.st_size)
                        )
                    elif dir_entry.is_dir(follow_symlinks=False):
                        st = os.lstat(dir_entry.path)
                        entries.append(
                            _Entry(
                                dir_entry.name,
                                entry_path,
                                NodeKind.DIRECTORY,
                                identity=(st.st_dev, st.st_ino),
                            )
                        )
                except OSError as e:
                    entries.append(_Entry(dir_entry.name, entry_path, NodeKind.FILE, error=e))
        return entries
